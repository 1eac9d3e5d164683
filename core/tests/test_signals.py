"""
Tests for swap lifecycle event delivery.

Events are published only after commit, one per transition, and a failing
receiver never affects the committed swap state or other receivers.
"""

import logging

import pytest
from django.contrib.auth import get_user_model
from django.db import transaction

from core import services
from core.events import (
    CounterOffered,
    PartialCompletion,
    RatingAdded,
    SwapAccepted,
    SwapCancelled,
    SwapCreated,
    SwapFullyCompleted,
    to_payload,
)
from core.exceptions import SwapValidationError
from core.models import Book, SwapRequest
from core.signals import swap_event

User = get_user_model()


@pytest.fixture
def parties(db):
    owner = User.objects.create_user(username='u1', email='u1@test.com', password='testpass123')
    requester = User.objects.create_user(username='u2', email='u2@test.com', password='testpass123')
    book_a = Book.objects.create(owner=owner, title='Book A')
    book_b = Book.objects.create(owner=requester, title='Book B')
    book_c = Book.objects.create(owner=owner, title='Book C')
    return owner, requester, book_a, book_b, book_c


@pytest.fixture
def received():
    """Collect every event delivered through swap_event."""
    events = []

    def collector(sender, event, **kwargs):
        events.append(event)

    swap_event.connect(collector, dispatch_uid='test_collector')
    yield events
    swap_event.disconnect(dispatch_uid='test_collector')


@pytest.mark.django_db
class TestEventPublication:

    def test_events_follow_the_full_lifecycle(self, parties, received, django_capture_on_commit_callbacks):
        owner, requester, book_a, book_b, book_c = parties

        with django_capture_on_commit_callbacks(execute=True):
            swap = services.create_swap_request(requester, book_a.pk, book_b.pk, message='Hi')
        with django_capture_on_commit_callbacks(execute=True):
            services.make_counter_offer(owner, swap.pk, book_c.pk, message='Try C')
        with django_capture_on_commit_callbacks(execute=True):
            services.accept_swap_request(requester, swap.pk)
        with django_capture_on_commit_callbacks(execute=True):
            services.complete_swap_request(requester, swap.pk)
        with django_capture_on_commit_callbacks(execute=True):
            services.complete_swap_request(owner, swap.pk, rating=4)
        with django_capture_on_commit_callbacks(execute=True):
            services.add_missing_rating(requester, swap.pk, 5)

        assert [type(event) for event in received] == [
            SwapCreated,
            CounterOffered,
            SwapAccepted,
            PartialCompletion,
            SwapFullyCompleted,
            RatingAdded,
        ]

        created, countered, accepted, partial, completed, rated = received
        assert created.message == 'Hi'
        assert created.requested_book.title == 'Book A'
        assert created.offered_book.id == book_b.pk
        assert created.counter_offered_book is None

        assert countered.message == 'Try C'
        assert countered.counter_offered_book.id == book_c.pk

        assert accepted.accepted_by.id == requester.pk
        assert partial.confirmed_by.id == requester.pk
        assert partial.other_party.id == owner.pk

        assert completed.status == SwapRequest.STATUS_COMPLETED
        assert completed.requested_book.owner_id == requester.pk

        assert rated.rated_by.id == requester.pk
        assert rated.rating == 5

    def test_cancel_event_names_the_cancelling_party(self, parties, received, django_capture_on_commit_callbacks):
        owner, requester, book_a, book_b, _ = parties
        swap = services.create_swap_request(requester, book_a.pk, book_b.pk)

        with django_capture_on_commit_callbacks(execute=True):
            services.cancel_swap_request(owner, swap.pk)

        assert len(received) == 1
        assert isinstance(received[0], SwapCancelled)
        assert received[0].cancelled_by.id == owner.pk

    def test_nothing_is_published_before_commit(self, parties, received, django_capture_on_commit_callbacks):
        owner, requester, book_a, _, _ = parties

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            services.create_swap_request(requester, book_a.pk)

        assert received == []
        assert len(callbacks) == 1

    def test_rejected_action_publishes_nothing(self, parties, received, django_capture_on_commit_callbacks):
        owner, requester, book_a, _, _ = parties

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(SwapValidationError):
                services.create_swap_request(owner, book_a.pk)

        assert callbacks == []
        assert received == []

    def test_rolled_back_transaction_publishes_nothing(self, parties, received, django_capture_on_commit_callbacks):
        owner, requester, book_a, _, _ = parties

        class Abort(Exception):
            pass

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(Abort):
                with transaction.atomic():
                    services.create_swap_request(requester, book_a.pk)
                    raise Abort()

        assert callbacks == []
        assert received == []
        assert not SwapRequest.objects.exists()


@pytest.mark.django_db
class TestDeliveryFailures:

    def test_failing_receiver_is_logged_and_suppressed(
        self, parties, received, caplog, django_capture_on_commit_callbacks
    ):
        owner, requester, book_a, _, _ = parties

        def broken_receiver(sender, event, **kwargs):
            raise RuntimeError('mail server down')

        swap_event.connect(broken_receiver, dispatch_uid='test_broken_receiver')
        try:
            with caplog.at_level(logging.ERROR, logger='core.signals'):
                with django_capture_on_commit_callbacks(execute=True):
                    swap = services.create_swap_request(requester, book_a.pk)
        finally:
            swap_event.disconnect(dispatch_uid='test_broken_receiver')

        # The swap stays committed and other receivers still ran
        assert SwapRequest.objects.filter(pk=swap.pk, status=SwapRequest.STATUS_PENDING).exists()
        assert len(received) == 1
        assert any('mail server down' in record.getMessage() for record in caplog.records)


class TestPayload:

    def test_payload_is_tagged_with_event_type(self):
        from core.events import BookSummary, UserSummary

        event = SwapCancelled(
            swap_id=1,
            status='CANCELLED',
            requester=UserSummary(id=2, username='u2', email='u2@test.com'),
            owner=UserSummary(id=1, username='u1', email='u1@test.com'),
            requested_book=BookSummary(id=10, title='Book A', authors='', owner_id=1),
            cancelled_by=UserSummary(id=2, username='u2', email='u2@test.com'),
        )
        payload = to_payload(event)

        assert payload['event_type'] == 'SwapCancelled'
        assert payload['cancelled_by']['id'] == 2
        assert payload['offered_book'] is None
        assert payload['requested_book']['title'] == 'Book A'

    def test_events_are_immutable(self):
        from dataclasses import FrozenInstanceError
        from core.events import BookSummary, UserSummary

        event = SwapCreated(
            swap_id=1,
            status='PENDING',
            requester=UserSummary(id=2, username='u2', email='u2@test.com'),
            owner=UserSummary(id=1, username='u1', email='u1@test.com'),
            requested_book=BookSummary(id=10, title='Book A', authors='', owner_id=1),
        )
        with pytest.raises(FrozenInstanceError):
            event.status = 'CANCELLED'
