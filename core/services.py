"""
Swap request service layer.

One function per action. Each runs as a single transaction that locks the
swap request row first and then every touched book row in primary-key order,
asks the state machine for a decision, applies the resulting ledger updates,
completion bookkeeping and ownership transfer, and schedules the lifecycle
event for delivery after commit.

Race detection: the request's version and status are read before the
transaction starts. If, once the row is locked, the version moved on and a
request that was active has become terminal, the caller lost a race and
gets SwapConflictError rather than the ValidationError reserved for acting
on a request already known to be terminal. Callers may also pass
`expected_version` for explicit optimistic concurrency.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from .completion import attach_rating, record_completion
from .events import build_event
from .exceptions import (
    InvariantViolationError,
    SwapConflictError,
    SwapError,
    SwapNotFoundError,
    SwapValidationError,
)
from .ledger import hold_books, lock_books, release_books
from .models import SwapRequest
from .signals import publish_event
from .state_machine import (
    ACTIVE_STATES,
    BookState,
    SwapAction,
    SwapSnapshot,
    decide,
    decide_create,
)
from .transactions import retry_on_conflict, swap_atomic
from .transfer import OwnershipTransferExecutor
from .validators import FEEDBACK_MAX_LENGTH, MESSAGE_MAX_LENGTH, normalize_optional_text

User = get_user_model()
logger = logging.getLogger(__name__)


def clean_text(value, max_length, field_name):
    """
    Normalize optional free text and enforce its maximum length.

    Raises:
        SwapValidationError: If the text is too long
    """
    value = normalize_optional_text(value)
    if value is not None and len(value) > max_length:
        raise SwapValidationError(
            f'{field_name} must be at most {max_length} characters.',
            code='too_long',
        )
    return value


def resolve_user(user):
    """
    Accept a User instance or primary key and return the User.

    Raises:
        SwapNotFoundError: If no such user exists
    """
    if isinstance(user, User):
        return user
    try:
        return User.objects.get(pk=user)
    except (User.DoesNotExist, ValueError, TypeError):
        raise SwapNotFoundError('User', user)


@retry_on_conflict
def observe_swap(swap_id):
    """
    Read a request's current version and status without locking.

    Returns:
        tuple: (version, status)

    Raises:
        SwapNotFoundError: If the request does not exist
    """
    try:
        observed = SwapRequest.objects.filter(pk=swap_id).values_list('version', 'status').first()
    except (ValueError, TypeError):
        observed = None
    if observed is None:
        raise SwapNotFoundError('Swap request', swap_id)
    return observed


def _lock_swap(swap_id):
    try:
        return SwapRequest.objects.select_for_update().get(pk=swap_id)
    except SwapRequest.DoesNotExist:
        raise SwapNotFoundError('Swap request', swap_id)


def _check_version(swap, observed, expected_version):
    if expected_version is not None and swap.version != expected_version:
        raise SwapConflictError(
            f'Swap request {swap.pk} has changed (version {swap.version}, '
            f'expected {expected_version}). Refresh and try again.',
            code='stale_version',
        )
    observed_version, observed_status = observed
    if (swap.version != observed_version and observed_status in ACTIVE_STATES
            and swap.is_terminal):
        raise SwapConflictError(
            f'Swap request {swap.pk} was {swap.status.lower()} by a concurrent action.',
            code='concurrent_update',
        )


def _attach_books(swap, books):
    """Point the request's relations at the locked (and possibly updated) book rows."""
    swap.book = books[swap.book_id]
    if swap.offered_book_id is not None:
        swap.offered_book = books[swap.offered_book_id]
    if swap.counter_offered_book_id is not None:
        swap.counter_offered_book = books[swap.counter_offered_book_id]


@retry_on_conflict
def create_swap_request(requester, book_id, offered_book_id=None, message=None):
    """
    Open a swap request for `book_id`.

    Args:
        requester: Requesting User (or primary key)
        book_id: Primary key of the requested book
        offered_book_id: Primary key of a book the requester offers in exchange
        message: Optional note to the owner

    Returns:
        SwapRequest: The new PENDING request

    Raises:
        SwapValidationError: Self-swap, offered book not owned, message too long
        SwapNotFoundError: A referenced book or the requester does not exist
        SwapConflictError: A book is no longer available
    """
    requester = resolve_user(requester)
    message = clean_text(message, MESSAGE_MAX_LENGTH, 'Message')

    try:
        with swap_atomic():
            books = lock_books([book_id, offered_book_id])
            book = books[book_id]
            offered_book = books[offered_book_id] if offered_book_id is not None else None

            decision = decide_create(
                requester.pk,
                BookState.from_book(book),
                BookState.from_book(offered_book) if offered_book is not None else None,
            )
            hold_books(books, decision.hold)

            try:
                with transaction.atomic():
                    swap = SwapRequest.objects.create(
                        book=book,
                        requester=requester,
                        owner_id=book.owner_id,
                        offered_book=offered_book,
                        message=message,
                        status=decision.to_status,
                    )
            except IntegrityError:
                logger.warning(
                    f"Swap request for book {book.pk} by user {requester.pk} "
                    f"lost a race to another active request"
                )
                raise SwapConflictError(
                    'This book is already part of another active swap request.',
                    code='book_unavailable',
                )

            logger.info(
                f"Swap request {swap.pk} created: user {requester.pk} requested book {book.pk} "
                f"from user {swap.owner_id} (offered book: {offered_book_id})"
            )
            publish_event(build_event(decision.event_type, swap, requester))
    except InvariantViolationError:
        raise
    except SwapError as exc:
        logger.warning(
            f"Swap request creation for book {book_id} by user {requester.pk} rejected: {exc.message}"
        )
        raise

    return swap


@retry_on_conflict
def _apply_action(actor, swap_id, action, observed, expected_version=None,
                  counter_book_id=None, message=None, rating=None, feedback=None):
    with swap_atomic():
        swap = _lock_swap(swap_id)
        _check_version(swap, observed, expected_version)

        books = lock_books(swap.referenced_book_ids + (counter_book_id,))
        counter_book = None
        if counter_book_id is not None:
            counter_book = BookState.from_book(books[counter_book_id])

        decision = decide(
            SwapSnapshot.from_request(swap),
            actor.pk,
            action,
            counter_book=counter_book,
            rating=rating,
        )
        now = timezone.now()
        update_fields = ['status', 'version', 'updated_at']
        event_extra = {}

        if action == SwapAction.COUNTER_OFFER:
            swap.counter_offered_book_id = counter_book_id
            swap.counter_offer_message = message
            update_fields += ['counter_offered_book', 'counter_offer_message']
        elif action == SwapAction.CANCEL:
            swap.cancelled_by = actor
            update_fields.append('cancelled_by')
        elif action == SwapAction.COMPLETE:
            party = decision.actor_party.value
            record_completion(swap, decision.actor_party, now, rating=rating, feedback=feedback)
            update_fields += [f'{party}_completed_at', f'{party}_rating', f'{party}_feedback']
            if decision.transfer_ownership:
                swap.completed_at = now
                update_fields.append('completed_at')
        elif action == SwapAction.ADD_RATING:
            party = decision.actor_party.value
            attach_rating(swap, decision.actor_party, rating, feedback=feedback)
            update_fields += [f'{party}_rating', f'{party}_feedback']
            event_extra['rating'] = rating

        if decision.transfer_ownership:
            OwnershipTransferExecutor(swap, books).execute()

        hold_books(books, decision.hold)

        swap.status = decision.to_status
        swap.version += 1
        swap.save(update_fields=update_fields)

        release_books(books, decision.release)

        _attach_books(swap, books)
        logger.info(
            f"Swap request {swap.pk}: {action.value} by user {actor.pk} "
            f"({decision.from_status} -> {decision.to_status}, version {swap.version})"
        )
        publish_event(build_event(decision.event_type, swap, actor, **event_extra))

    return swap


def _run_action(actor, swap_id, action, expected_version=None, **options):
    actor = resolve_user(actor)
    try:
        observed = observe_swap(swap_id)
        return _apply_action(
            actor, swap_id, action, observed,
            expected_version=expected_version, **options
        )
    except InvariantViolationError:
        raise
    except SwapError as exc:
        logger.warning(
            f"Swap request {swap_id}: {action.value} by user {actor.pk} rejected "
            f"[{exc.code}]: {exc.message}"
        )
        raise


def make_counter_offer(actor, swap_id, counter_book_id, message=None, expected_version=None):
    """
    Propose a different book in place of the requester's offer.

    The previously offered book becomes available again and the
    counter-offered book is held instead.

    Raises:
        SwapPermissionError: Actor is not the book owner
        SwapValidationError: Request not PENDING, or the counter book is invalid
        SwapConflictError: Counter book no longer available, or lost race
    """
    message = clean_text(message, MESSAGE_MAX_LENGTH, 'Counter-offer message')
    if counter_book_id is None:
        raise SwapValidationError('A counter-offer book is required.', code='counter_book_required')
    return _run_action(
        actor, swap_id, SwapAction.COUNTER_OFFER,
        expected_version=expected_version,
        counter_book_id=counter_book_id,
        message=message,
    )


def accept_swap_request(actor, swap_id, expected_version=None):
    """
    Accept a pending request (owner) or a counter-offer (requester).

    Raises:
        SwapPermissionError: Wrong party for the current state
        SwapValidationError: Request not in an acceptable state
        SwapConflictError: Lost a race
    """
    return _run_action(actor, swap_id, SwapAction.ACCEPT, expected_version=expected_version)


def cancel_swap_request(actor, swap_id, expected_version=None):
    """
    Cancel an active request. Either party may cancel.

    Every book the request referenced has its availability recomputed.
    """
    return _run_action(actor, swap_id, SwapAction.CANCEL, expected_version=expected_version)


def complete_swap_request(actor, swap_id, rating=None, feedback=None, expected_version=None):
    """
    Record the actor's confirmation of an accepted swap.

    The second confirmation completes the swap: status becomes COMPLETED,
    ownership of the books is transferred and held books are released.

    Args:
        actor: Confirming party
        swap_id: Swap request primary key
        rating: Optional 1-5 rating of the other party
        feedback: Optional feedback text
        expected_version: Optional optimistic concurrency check

    Returns:
        SwapRequest

    Raises:
        SwapValidationError: Not ACCEPTED, already confirmed, or invalid rating
        SwapPermissionError: Actor is not a participant
        SwapConflictError: Lost a race
        InvariantViolationError: A book changed hands out of band
    """
    feedback = clean_text(feedback, FEEDBACK_MAX_LENGTH, 'Feedback')
    return _run_action(
        actor, swap_id, SwapAction.COMPLETE,
        expected_version=expected_version,
        rating=rating,
        feedback=feedback,
    )


def add_missing_rating(actor, swap_id, rating, feedback=None, expected_version=None):
    """
    Attach a rating to a COMPLETED swap the actor has not rated yet.

    Status is left untouched; an existing rating is never overwritten.
    """
    feedback = clean_text(feedback, FEEDBACK_MAX_LENGTH, 'Feedback')
    return _run_action(
        actor, swap_id, SwapAction.ADD_RATING,
        expected_version=expected_version,
        rating=rating,
        feedback=feedback,
    )
