"""
Book availability ledger.

A book is available exactly when no active swap request holds it. An active
request holds its requested book and its final offered book (the
counter-offered book if there is one, otherwise the originally offered book).

All writes go through hold_books() and release_books(), which must run inside
the caller's transaction on rows locked with lock_books().
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import Q

from .exceptions import SwapConflictError, SwapNotFoundError
from .models import Book, SwapRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityViolation:
    """A book whose flag disagrees with the active swaps holding it."""

    book_id: int
    title: str
    is_available: bool
    expected: bool


@dataclass(frozen=True)
class OwnerMismatch:
    """An active swap whose books no longer belong to the expected parties."""

    swap_id: int
    book_id: int
    expected_owner_id: int
    actual_owner_id: int


def active_hold_q(book_id):
    """Q matching active swap requests that hold `book_id`."""
    return Q(status__in=SwapRequest.ACTIVE_STATUSES) & (
        Q(book_id=book_id)
        | Q(counter_offered_book_id=book_id)
        | Q(offered_book_id=book_id, counter_offered_book__isnull=True)
    )


def is_held(book_id, exclude_swap_id=None):
    """Return True if any active swap request holds `book_id`."""
    queryset = SwapRequest.objects.filter(active_hold_q(book_id))
    if exclude_swap_id is not None:
        queryset = queryset.exclude(pk=exclude_swap_id)
    return queryset.exists()


def lock_books(book_ids):
    """
    Lock book rows in primary-key order and return them by id.

    A consistent lock order keeps two transactions touching the same pair of
    books from deadlocking.

    Args:
        book_ids: Iterable of book primary keys (None entries are skipped)

    Returns:
        dict: {book_id: Book}

    Raises:
        SwapNotFoundError: If any of the books does not exist
    """
    wanted = sorted({book_id for book_id in book_ids if book_id is not None})
    if not wanted:
        return {}

    books = {
        book.pk: book
        for book in Book.objects.select_for_update().filter(pk__in=wanted).order_by('pk')
    }
    for book_id in wanted:
        if book_id not in books:
            raise SwapNotFoundError('Book', book_id)
    return books


def hold_books(books, book_ids):
    """
    Mark locked books unavailable.

    Raises:
        SwapConflictError: If a book is already held elsewhere
    """
    for book_id in book_ids:
        book = books[book_id]
        if not book.is_available:
            logger.warning(f"Book {book_id} could not be held: already unavailable")
            raise SwapConflictError(
                f'Book "{book.title}" is no longer available.',
                code='book_unavailable',
            )
        book.is_available = False
        book.save(update_fields=['is_available', 'updated_at'])


def release_books(books, book_ids):
    """
    Recompute availability for locked books after a request stopped holding them.

    Call this after the swap request itself has been saved, so that it no
    longer counts as a holder. A book still held by another active request
    stays unavailable.
    """
    for book_id in book_ids:
        book = books[book_id]
        available = not is_held(book_id)
        if book.is_available != available:
            book.is_available = available
            book.save(update_fields=['is_available', 'updated_at'])
        elif not available:
            logger.info(f"Book {book_id} remains held by another active swap request")


def held_book_ids():
    """Set of every book id currently held by an active swap request."""
    held = set()
    active = SwapRequest.objects.filter(status__in=SwapRequest.ACTIVE_STATUSES).only(
        'book', 'offered_book', 'counter_offered_book'
    )
    for swap in active:
        held.update(swap.held_book_ids)
    return held


def find_availability_violations():
    """
    Compare every book's flag against the active swaps holding it.

    Returns:
        list[AvailabilityViolation]
    """
    held = held_book_ids()
    violations = []
    for book in Book.objects.order_by('pk').only('id', 'title', 'is_available'):
        expected = book.pk not in held
        if book.is_available != expected:
            violations.append(AvailabilityViolation(
                book_id=book.pk,
                title=book.title,
                is_available=book.is_available,
                expected=expected,
            ))
    return violations


def find_owner_mismatches():
    """
    Find active swaps whose held books changed hands out of band.

    Returns:
        list[OwnerMismatch]
    """
    mismatches = []
    active = SwapRequest.objects.filter(
        status__in=SwapRequest.ACTIVE_STATUSES
    ).select_related('book', 'offered_book', 'counter_offered_book').order_by('pk')

    for swap in active:
        if swap.book.owner_id != swap.owner_id:
            mismatches.append(OwnerMismatch(
                swap_id=swap.pk,
                book_id=swap.book_id,
                expected_owner_id=swap.owner_id,
                actual_owner_id=swap.book.owner_id,
            ))
        final_offered = swap.counter_offered_book or swap.offered_book
        if final_offered is None:
            continue
        expected_owner = swap.owner_id if swap.counter_offered_book_id else swap.requester_id
        if final_offered.owner_id != expected_owner:
            mismatches.append(OwnerMismatch(
                swap_id=swap.pk,
                book_id=final_offered.pk,
                expected_owner_id=expected_owner,
                actual_owner_id=final_offered.owner_id,
            ))
    return mismatches


def resync_availability(violations):
    """
    Rewrite the availability flag of the given books from the active swaps.

    Ownership is never touched. Each book is re-checked under lock, so a flag
    fixed concurrently by a swap action is left alone.

    Returns:
        int: Number of books updated
    """
    fixed = 0
    with transaction.atomic():
        books = lock_books(v.book_id for v in violations)
        for book_id, book in books.items():
            expected = not is_held(book_id)
            if book.is_available != expected:
                book.is_available = expected
                book.save(update_fields=['is_available', 'updated_at'])
                fixed += 1
                logger.warning(f"Resynchronised availability of book {book_id} to {expected}")
    return fixed
