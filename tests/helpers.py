"""
Assertion helpers shared by the swap tests.
"""

from core.ledger import find_availability_violations, held_book_ids
from core.models import Book


def refresh_all(*objects):
    """Reload every given model instance from the database."""
    for obj in objects:
        obj.refresh_from_db()


def assert_availability_invariant():
    """Every book is available exactly when no active swap request holds it."""
    violations = find_availability_violations()
    assert violations == [], f"Availability invariant violated: {violations}"

    held = held_book_ids()
    for book in Book.objects.all():
        assert book.is_available == (book.pk not in held)
