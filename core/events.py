"""
Swap lifecycle events.

One frozen dataclass per transition. Each carries enough about the swap, its
parties and its books for a notification collaborator to render a message
without querying the database again. `event_type` tags the variant.
"""

from dataclasses import asdict, dataclass
from typing import ClassVar, Optional


@dataclass(frozen=True, kw_only=True)
class UserSummary:
    id: int
    username: str
    email: str
    first_name: str = ''
    last_name: str = ''

    @classmethod
    def from_user(cls, user):
        return cls(
            id=user.pk,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
        )


@dataclass(frozen=True, kw_only=True)
class BookSummary:
    id: int
    title: str
    authors: str
    owner_id: int

    @classmethod
    def from_book(cls, book):
        if book is None:
            return None
        return cls(id=book.pk, title=book.title, authors=book.authors, owner_id=book.owner_id)


@dataclass(frozen=True, kw_only=True)
class SwapEvent:
    """Fields shared by every lifecycle event."""

    event_type: ClassVar[str] = 'SwapEvent'

    swap_id: int
    status: str
    requester: UserSummary
    owner: UserSummary
    requested_book: BookSummary
    offered_book: Optional[BookSummary] = None
    counter_offered_book: Optional[BookSummary] = None
    message: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class SwapCreated(SwapEvent):
    event_type: ClassVar[str] = 'SwapCreated'


@dataclass(frozen=True, kw_only=True)
class CounterOffered(SwapEvent):
    event_type: ClassVar[str] = 'CounterOffered'


@dataclass(frozen=True, kw_only=True)
class SwapAccepted(SwapEvent):
    event_type: ClassVar[str] = 'SwapAccepted'

    accepted_by: UserSummary


@dataclass(frozen=True, kw_only=True)
class SwapCancelled(SwapEvent):
    event_type: ClassVar[str] = 'SwapCancelled'

    cancelled_by: UserSummary


@dataclass(frozen=True, kw_only=True)
class PartialCompletion(SwapEvent):
    event_type: ClassVar[str] = 'PartialCompletion'

    confirmed_by: UserSummary
    other_party: UserSummary


@dataclass(frozen=True, kw_only=True)
class SwapFullyCompleted(SwapEvent):
    event_type: ClassVar[str] = 'SwapFullyCompleted'


@dataclass(frozen=True, kw_only=True)
class RatingAdded(SwapEvent):
    event_type: ClassVar[str] = 'RatingAdded'

    rated_by: UserSummary
    rating: int


EVENT_TYPES = {
    cls.event_type: cls
    for cls in (
        SwapCreated,
        CounterOffered,
        SwapAccepted,
        SwapCancelled,
        PartialCompletion,
        SwapFullyCompleted,
        RatingAdded,
    )
}


def build_event(event_type, swap, actor, **extra):
    """
    Build the event variant named `event_type` for `swap`.

    Args:
        event_type: Key of EVENT_TYPES
        swap: SwapRequest after the transition, with related rows loaded
        actor: User who performed the action
        **extra: Variant-specific fields (e.g. rating)

    Returns:
        SwapEvent

    Raises:
        KeyError: If `event_type` is unknown
    """
    event_class = EVENT_TYPES[event_type]
    actor_summary = UserSummary.from_user(actor)

    message = swap.counter_offer_message if event_class is CounterOffered else swap.message
    fields = {
        'swap_id': swap.pk,
        'status': swap.status,
        'requester': UserSummary.from_user(swap.requester),
        'owner': UserSummary.from_user(swap.owner),
        'requested_book': BookSummary.from_book(swap.book),
        'offered_book': BookSummary.from_book(swap.offered_book),
        'counter_offered_book': BookSummary.from_book(swap.counter_offered_book),
        'message': message,
    }

    if event_class is SwapAccepted:
        fields['accepted_by'] = actor_summary
    elif event_class is SwapCancelled:
        fields['cancelled_by'] = actor_summary
    elif event_class is PartialCompletion:
        other = swap.owner if actor.pk == swap.requester_id else swap.requester
        fields['confirmed_by'] = actor_summary
        fields['other_party'] = UserSummary.from_user(other)
    elif event_class is RatingAdded:
        fields['rated_by'] = actor_summary

    fields.update(extra)
    return event_class(**fields)


def to_payload(event):
    """Plain-dict form of an event, tagged with its event_type."""
    payload = asdict(event)
    payload['event_type'] = event.event_type
    return payload
