"""
Test suite for the User, Book and SwapRequest models.

Tests cover:
- Email normalisation and uniqueness
- ISBN and rating validators
- Book defaults and ownership helpers
- SwapRequest derived properties
- Database constraints backing the swap rules
"""

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from core.exceptions import SwapNotFoundError
from core.models import Book, SwapRequest, User
from core.validators import normalize_optional_text, validate_isbn, validate_rating


@pytest.mark.django_db
class TestUserModel:

    def test_email_is_lowercased(self, make_user):
        user = make_user('mixed', email='Mixed.Case@Example.COM')
        assert user.email == 'mixed.case@example.com'

    def test_email_must_be_unique(self, make_user):
        make_user('first', email='same@test.com')

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                make_user('second', email='SAME@test.com')

    def test_str_is_email(self, owner):
        assert str(owner) == 'owner@test.com'

    def test_location_fields_default_blank(self, outsider):
        assert outsider.city == ''
        assert outsider.state == ''


class TestValidators:

    @pytest.mark.parametrize('isbn', ['0-306-40615-2', '978-0-306-40615-7', '080442957X', '', '9780306406157'])
    def test_valid_isbn(self, isbn):
        validate_isbn(isbn)

    @pytest.mark.parametrize('isbn', ['12345', 'abcdefghij', '978-0-306-4061', '97803064061577'])
    def test_invalid_isbn(self, isbn):
        with pytest.raises(ValidationError):
            validate_isbn(isbn)

    @pytest.mark.parametrize('rating', [None, 1, 3, 5])
    def test_valid_rating(self, rating):
        validate_rating(rating)

    @pytest.mark.parametrize('rating', [0, 6, True, 2.5])
    def test_invalid_rating(self, rating):
        with pytest.raises(ValidationError):
            validate_rating(rating)

    @pytest.mark.parametrize('value, expected', [
        (None, None),
        ('', None),
        ('   ', None),
        (' note ', 'note'),
    ])
    def test_normalize_optional_text(self, value, expected):
        assert normalize_optional_text(value) == expected


@pytest.mark.django_db
class TestBookModel:

    def test_defaults(self, owner):
        book = Book.objects.create(owner=owner, title='Plain')

        assert book.is_available is True
        assert book.condition == 'GOOD'
        assert book.authors == ''
        assert str(book) == 'Plain'

    def test_invalid_isbn_fails_full_clean(self, owner):
        book = Book(owner=owner, title='Bad ISBN', isbn='123')

        with pytest.raises(ValidationError) as exc_info:
            book.full_clean()

        assert 'isbn' in exc_info.value.message_dict

    def test_is_owned_by(self, owner, requester, book_a):
        assert book_a.is_owned_by(owner)
        assert book_a.is_owned_by(owner.pk)
        assert not book_a.is_owned_by(requester)

    def test_get_by_id(self, book_a):
        assert Book.get_by_id(book_a.pk) == book_a

    def test_get_by_id_missing(self):
        with pytest.raises(SwapNotFoundError) as exc_info:
            Book.get_by_id(999999)

        assert exc_info.value.resource_type == 'Book'
        assert exc_info.value.resource_id == 999999


@pytest.mark.django_db
class TestSwapRequestModel:

    def _swap(self, owner, requester, book, **fields):
        return SwapRequest.objects.create(book=book, requester=requester, owner=owner, **fields)

    def test_defaults(self, owner, requester, book_a):
        swap = self._swap(owner, requester, book_a)

        assert swap.status == SwapRequest.STATUS_PENDING
        assert swap.version == 1
        assert swap.is_active is True
        assert swap.is_terminal is False
        assert swap.is_fully_completed is False

    def test_book_ids(self, owner, requester, book_a, book_b, book_c):
        swap = self._swap(owner, requester, book_a, offered_book=book_b)

        assert swap.final_offered_book_id == book_b.pk
        assert swap.held_book_ids == (book_a.pk, book_b.pk)

        swap.counter_offered_book = book_c

        assert swap.final_offered_book_id == book_c.pk
        assert swap.held_book_ids == (book_a.pk, book_c.pk)
        assert swap.referenced_book_ids == (book_a.pk, book_b.pk, book_c.pk)

    def test_one_way_swap_holds_only_requested_book(self, owner, requester, book_a):
        swap = self._swap(owner, requester, book_a)

        assert swap.final_offered_book_id is None
        assert swap.held_book_ids == (book_a.pk,)

    def test_is_participant(self, owner, requester, outsider, book_a):
        swap = self._swap(owner, requester, book_a)

        assert swap.is_participant(owner)
        assert swap.is_participant(requester.pk)
        assert not swap.is_participant(outsider)

    def test_requester_cannot_be_owner(self, owner, book_a):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                self._swap(owner, owner, book_a)

    def test_rating_range_is_enforced(self, owner, requester, book_a):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                self._swap(owner, requester, book_a, owner_rating=9)

    def test_one_active_request_per_book(self, owner, requester, outsider, book_a):
        self._swap(owner, requester, book_a)

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                self._swap(owner, outsider, book_a)

    def test_terminal_requests_do_not_block_the_book(self, owner, requester, outsider, book_a):
        self._swap(owner, requester, book_a, status=SwapRequest.STATUS_CANCELLED)
        self._swap(owner, outsider, book_a, status=SwapRequest.STATUS_COMPLETED)

        active = self._swap(owner, requester, book_a)

        assert active.is_active
        assert SwapRequest.objects.filter(book=book_a).count() == 3

    def test_message_length_validated_on_full_clean(self, owner, requester, book_a):
        swap = SwapRequest(book=book_a, requester=requester, owner=owner, message='x' * 1001)

        with pytest.raises(ValidationError) as exc_info:
            swap.full_clean()

        assert 'message' in exc_info.value.message_dict
