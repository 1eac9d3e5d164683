"""
Swap negotiation state machine.

Pure decision logic with no database access: given a snapshot of a swap
request, the acting user and an intended action, decide whether the action is
legal and which side effects (books to hold or release, ownership transfer,
event to publish) the service layer must apply.

Transitions:
    PENDING       --accept(owner)-------------> ACCEPTED
    PENDING       --counter_offer(owner)------> COUNTER_OFFER
    PENDING       --cancel(either)------------> CANCELLED
    COUNTER_OFFER --accept(requester)---------> ACCEPTED
    COUNTER_OFFER --cancel(either)------------> CANCELLED
    ACCEPTED      --complete(both, eventually)-> COMPLETED
    ACCEPTED      --cancel(either)------------> CANCELLED

CANCELLED and COMPLETED are terminal. The only action accepted on a terminal
request is adding a missing rating to a COMPLETED one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .completion import (
    Party,
    check_rating,
    has_confirmed,
    has_rated,
    other_party,
    party_for,
)
from .exceptions import SwapConflictError, SwapPermissionError, SwapValidationError

PENDING = 'PENDING'
COUNTER_OFFER = 'COUNTER_OFFER'
ACCEPTED = 'ACCEPTED'
CANCELLED = 'CANCELLED'
COMPLETED = 'COMPLETED'

ACTIVE_STATES = frozenset({PENDING, COUNTER_OFFER, ACCEPTED})
TERMINAL_STATES = frozenset({CANCELLED, COMPLETED})


class SwapAction(str, Enum):
    CREATE = 'create'
    COUNTER_OFFER = 'counter_offer'
    ACCEPT = 'accept'
    CANCEL = 'cancel'
    COMPLETE = 'complete'
    ADD_RATING = 'add_rating'


BOTH_PARTIES = frozenset({Party.REQUESTER, Party.OWNER})

# (current status, action) -> (parties allowed to act, next status)
# COMPLETE stays ACCEPTED until the second confirmation; see decide().
TRANSITIONS = {
    (PENDING, SwapAction.ACCEPT): (frozenset({Party.OWNER}), ACCEPTED),
    (PENDING, SwapAction.COUNTER_OFFER): (frozenset({Party.OWNER}), COUNTER_OFFER),
    (PENDING, SwapAction.CANCEL): (BOTH_PARTIES, CANCELLED),
    (COUNTER_OFFER, SwapAction.ACCEPT): (frozenset({Party.REQUESTER}), ACCEPTED),
    (COUNTER_OFFER, SwapAction.CANCEL): (BOTH_PARTIES, CANCELLED),
    (ACCEPTED, SwapAction.CANCEL): (BOTH_PARTIES, CANCELLED),
    (ACCEPTED, SwapAction.COMPLETE): (BOTH_PARTIES, COMPLETED),
    (COMPLETED, SwapAction.ADD_RATING): (BOTH_PARTIES, COMPLETED),
}

ACTION_VERBS = {
    SwapAction.COUNTER_OFFER: 'counter-offer',
    SwapAction.ACCEPT: 'accept',
    SwapAction.CANCEL: 'cancel',
    SwapAction.COMPLETE: 'complete',
    SwapAction.ADD_RATING: 'rate',
}

PERMISSION_MESSAGES = {
    (PENDING, SwapAction.ACCEPT): 'Only the book owner can accept this swap request.',
    (PENDING, SwapAction.COUNTER_OFFER): 'Only the book owner can make a counter-offer.',
    (COUNTER_OFFER, SwapAction.ACCEPT): 'Only the requester can accept a counter-offer.',
}


@dataclass(frozen=True)
class BookState:
    """Owner and availability of one book as read under lock."""

    book_id: int
    owner_id: int
    is_available: bool

    @classmethod
    def from_book(cls, book):
        return cls(book_id=book.pk, owner_id=book.owner_id, is_available=book.is_available)


@dataclass(frozen=True)
class SwapSnapshot:
    """The fields of a swap request the state machine decides on."""

    status: str
    requester_id: int
    owner_id: int
    book_id: int
    offered_book_id: Optional[int] = None
    counter_offered_book_id: Optional[int] = None
    requester_completed_at: Optional[object] = None
    owner_completed_at: Optional[object] = None
    requester_rating: Optional[int] = None
    owner_rating: Optional[int] = None

    @classmethod
    def from_request(cls, swap):
        return cls(
            status=swap.status,
            requester_id=swap.requester_id,
            owner_id=swap.owner_id,
            book_id=swap.book_id,
            offered_book_id=swap.offered_book_id,
            counter_offered_book_id=swap.counter_offered_book_id,
            requester_completed_at=swap.requester_completed_at,
            owner_completed_at=swap.owner_completed_at,
            requester_rating=swap.requester_rating,
            owner_rating=swap.owner_rating,
        )

    @property
    def final_offered_book_id(self):
        return self.counter_offered_book_id or self.offered_book_id

    @property
    def held_book_ids(self):
        return tuple(b for b in (self.book_id, self.final_offered_book_id) if b is not None)

    @property
    def referenced_book_ids(self):
        return tuple(
            b for b in (self.book_id, self.offered_book_id, self.counter_offered_book_id)
            if b is not None
        )


@dataclass(frozen=True)
class Decision:
    """
    Outcome of a legal action.

    Attributes:
        action: The action decided on
        actor_party: Party performing it (REQUESTER for CREATE)
        from_status: Status before the action (None for CREATE)
        to_status: Status after the action
        hold: Book ids to mark unavailable
        release: Book ids whose availability must be recomputed
        transfer_ownership: True when the ownership transfer must run
        event_type: Name of the lifecycle event to publish after commit
    """

    action: SwapAction
    actor_party: Party
    from_status: Optional[str]
    to_status: str
    event_type: str
    hold: Tuple[int, ...] = field(default_factory=tuple)
    release: Tuple[int, ...] = field(default_factory=tuple)
    transfer_ownership: bool = False

    @property
    def changes_status(self):
        return self.from_status != self.to_status


def decide_create(requester_id, book, offered_book=None):
    """
    Decide whether `requester_id` may open a swap request for `book`.

    Args:
        requester_id: Primary key of the requesting user
        book: BookState of the requested book
        offered_book: BookState of the book offered in exchange, or None

    Returns:
        Decision: PENDING request holding the requested and offered books

    Raises:
        SwapValidationError: Self-swap, or the offered book is not the requester's
        SwapConflictError: Either book is no longer available
    """
    if book.owner_id == requester_id:
        raise SwapValidationError('You cannot request a swap for your own book.', code='self_swap')

    if offered_book is not None:
        if offered_book.book_id == book.book_id:
            raise SwapValidationError(
                'The offered book must differ from the requested book.',
                code='same_book',
            )
        if offered_book.owner_id != requester_id:
            raise SwapValidationError('You can only offer books you own.', code='not_book_owner')

    if not book.is_available:
        raise SwapConflictError('This book is no longer available for swapping.', code='book_unavailable')
    if offered_book is not None and not offered_book.is_available:
        raise SwapConflictError('The offered book is no longer available.', code='book_unavailable')

    hold = (book.book_id,) if offered_book is None else (book.book_id, offered_book.book_id)
    return Decision(
        action=SwapAction.CREATE,
        actor_party=Party.REQUESTER,
        from_status=None,
        to_status=PENDING,
        event_type='SwapCreated',
        hold=hold,
    )


def decide(snapshot, actor_id, action, counter_book=None, rating=None):
    """
    Decide the outcome of `action` by `actor_id` on an existing request.

    Args:
        snapshot: SwapSnapshot read under lock
        actor_id: Primary key of the acting user
        action: SwapAction other than CREATE
        counter_book: BookState of the proposed book (COUNTER_OFFER only)
        rating: Star rating (COMPLETE and ADD_RATING)

    Returns:
        Decision

    Raises:
        SwapValidationError: Terminal or otherwise wrong state, bad input
        SwapPermissionError: Actor is not allowed to perform the action
        SwapConflictError: The counter-offered book is no longer available
    """
    action = SwapAction(action)
    if action == SwapAction.CREATE:
        raise ValueError('Use decide_create() for new swap requests.')

    status = snapshot.status
    verb = ACTION_VERBS[action]

    if status in TERMINAL_STATES and (status, action) not in TRANSITIONS:
        raise SwapValidationError(
            f'Cannot {verb} a swap request that is {status.lower()}.',
            code='terminal_state',
        )

    party = party_for(snapshot, actor_id)
    if party is None:
        raise SwapPermissionError('You are not a participant in this swap request.')

    rule = TRANSITIONS.get((status, action))
    if rule is None:
        if action == SwapAction.ADD_RATING:
            message = 'Ratings can only be added to completed swaps.'
        else:
            message = f'Cannot {verb} a swap request in status {status}.'
        raise SwapValidationError(message, code='invalid_state')

    allowed, next_status = rule
    if party not in allowed:
        raise SwapPermissionError(
            PERMISSION_MESSAGES.get((status, action), 'You cannot perform this action.')
        )

    if action == SwapAction.ACCEPT:
        return Decision(
            action=action,
            actor_party=party,
            from_status=status,
            to_status=next_status,
            event_type='SwapAccepted',
        )

    if action == SwapAction.COUNTER_OFFER:
        return _decide_counter_offer(snapshot, party, counter_book)

    if action == SwapAction.CANCEL:
        return Decision(
            action=action,
            actor_party=party,
            from_status=status,
            to_status=next_status,
            event_type='SwapCancelled',
            release=snapshot.referenced_book_ids,
        )

    if action == SwapAction.COMPLETE:
        return _decide_complete(snapshot, party, rating)

    # ADD_RATING
    if has_rated(snapshot, party):
        raise SwapValidationError('You have already rated this swap.', code='already_rated')
    check_rating(rating, required=True)
    return Decision(
        action=action,
        actor_party=party,
        from_status=status,
        to_status=status,
        event_type='RatingAdded',
    )


def _decide_counter_offer(snapshot, party, counter_book):
    if counter_book is None:
        raise SwapValidationError('A counter-offer book is required.', code='counter_book_required')
    if counter_book.book_id == snapshot.book_id:
        raise SwapValidationError(
            'The counter-offer book must differ from the requested book.',
            code='same_book',
        )
    if counter_book.owner_id != snapshot.owner_id:
        raise SwapValidationError('You can only counter-offer books you own.', code='not_book_owner')
    if not counter_book.is_available:
        raise SwapConflictError(
            'The counter-offer book is no longer available.',
            code='book_unavailable',
        )

    release = () if snapshot.offered_book_id is None else (snapshot.offered_book_id,)
    return Decision(
        action=SwapAction.COUNTER_OFFER,
        actor_party=party,
        from_status=snapshot.status,
        to_status=COUNTER_OFFER,
        event_type='CounterOffered',
        hold=(counter_book.book_id,),
        release=release,
    )


def _decide_complete(snapshot, party, rating):
    if has_confirmed(snapshot, party):
        raise SwapValidationError(
            'You have already marked this swap as completed.',
            code='already_completed',
        )
    check_rating(rating)

    if not has_confirmed(snapshot, other_party(party)):
        return Decision(
            action=SwapAction.COMPLETE,
            actor_party=party,
            from_status=snapshot.status,
            to_status=ACCEPTED,
            event_type='PartialCompletion',
        )

    return Decision(
        action=SwapAction.COMPLETE,
        actor_party=party,
        from_status=snapshot.status,
        to_status=COMPLETED,
        event_type='SwapFullyCompleted',
        release=snapshot.referenced_book_ids,
        transfer_ownership=True,
    )
