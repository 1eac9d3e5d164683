"""
Ownership transfer executed when a swap request becomes COMPLETED.

The executor runs inside the completing transaction, on book rows the caller
has already locked. It re-validates ownership before writing anything, so a
book that changed hands out of band aborts the whole completion instead of
being silently handed to the wrong user.
"""

import logging

from .exceptions import InvariantViolationError

logger = logging.getLogger(__name__)


class OwnershipTransferExecutor:
    """
    Moves the requested book to the requester and the final offered book to
    the owner.

    Args:
        swap: SwapRequest being completed
        books: {book_id: Book} locked with core.ledger.lock_books()
    """

    def __init__(self, swap, books):
        self.swap = swap
        self.books = books

    @property
    def final_offered_book(self):
        book_id = self.swap.final_offered_book_id
        return self.books[book_id] if book_id is not None else None

    def expected_offered_owner_id(self):
        # A counter-offered book comes from the owner's shelf
        if self.swap.counter_offered_book_id is not None:
            return self.swap.owner_id
        return self.swap.requester_id

    def validate(self):
        """
        Re-check current owners against the parties recorded on the request.

        Raises:
            InvariantViolationError: If either book changed hands since the
                request was created
        """
        swap = self.swap
        requested = self.books[swap.book_id]
        if requested.owner_id != swap.owner_id:
            self._fail(
                f"requested book {requested.pk} is owned by user {requested.owner_id}, "
                f"expected user {swap.owner_id}"
            )

        offered = self.final_offered_book
        if offered is not None and offered.owner_id != self.expected_offered_owner_id():
            self._fail(
                f"offered book {offered.pk} is owned by user {offered.owner_id}, "
                f"expected user {self.expected_offered_owner_id()}"
            )

    def execute(self):
        """
        Validate and apply the transfer.

        Returns:
            list: Book ids whose owner changed
        """
        self.validate()

        swap = self.swap
        moved = []

        requested = self.books[swap.book_id]
        requested.owner_id = swap.requester_id
        requested.save(update_fields=['owner', 'updated_at'])
        moved.append(requested.pk)

        offered = self.final_offered_book
        if offered is None:
            logger.info(
                f"Swap request {swap.pk}: one-way transfer of book {requested.pk} "
                f"to user {swap.requester_id}"
            )
            return moved

        if offered.owner_id != swap.owner_id:
            offered.owner_id = swap.owner_id
            offered.save(update_fields=['owner', 'updated_at'])
            moved.append(offered.pk)

        logger.info(
            f"Swap request {swap.pk}: book {requested.pk} -> user {swap.requester_id}, "
            f"book {offered.pk} -> user {swap.owner_id}"
        )
        return moved

    def _fail(self, detail):
        logger.critical(
            f"Ownership transfer aborted for swap request {self.swap.pk}: {detail}. "
            f"Manual reconciliation required."
        )
        raise InvariantViolationError(
            f'Ownership transfer aborted for swap request {self.swap.pk}: {detail}.'
        )
