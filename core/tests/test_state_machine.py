"""
Tests for the pure swap decision logic and completion bookkeeping.

No database access: decisions are made on SwapSnapshot and BookState values.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from core.completion import (
    Party,
    attach_rating,
    is_fully_completed,
    other_party,
    party_for,
    record_completion,
)
from core.exceptions import SwapConflictError, SwapPermissionError, SwapValidationError
from core.state_machine import (
    ACCEPTED,
    CANCELLED,
    COMPLETED,
    COUNTER_OFFER,
    PENDING,
    TERMINAL_STATES,
    TRANSITIONS,
    BookState,
    SwapAction,
    SwapSnapshot,
    decide,
    decide_create,
)

OWNER = 1
REQUESTER = 2
OUTSIDER = 3
BOOK_A = 10
BOOK_B = 20
BOOK_C = 30
NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def snapshot(status=PENDING, **kwargs):
    fields = {
        'status': status,
        'requester_id': REQUESTER,
        'owner_id': OWNER,
        'book_id': BOOK_A,
        'offered_book_id': BOOK_B,
    }
    fields.update(kwargs)
    return SwapSnapshot(**fields)


class TestDecideCreate:

    def test_create_holds_requested_and_offered_books(self):
        decision = decide_create(
            REQUESTER,
            BookState(BOOK_A, OWNER, True),
            BookState(BOOK_B, REQUESTER, True),
        )
        assert decision.to_status == PENDING
        assert decision.from_status is None
        assert decision.hold == (BOOK_A, BOOK_B)
        assert decision.event_type == 'SwapCreated'

    def test_create_without_offer_holds_only_requested_book(self):
        decision = decide_create(REQUESTER, BookState(BOOK_A, OWNER, True))
        assert decision.hold == (BOOK_A,)

    def test_self_swap_is_rejected(self):
        with pytest.raises(SwapValidationError) as exc_info:
            decide_create(OWNER, BookState(BOOK_A, OWNER, True))
        assert exc_info.value.code == 'self_swap'

    def test_offered_book_must_belong_to_requester(self):
        with pytest.raises(SwapValidationError) as exc_info:
            decide_create(
                REQUESTER,
                BookState(BOOK_A, OWNER, True),
                BookState(BOOK_C, OWNER, True),
            )
        assert exc_info.value.code == 'not_book_owner'

    def test_unavailable_book_is_a_conflict(self):
        with pytest.raises(SwapConflictError):
            decide_create(REQUESTER, BookState(BOOK_A, OWNER, False))

    def test_unavailable_offered_book_is_a_conflict(self):
        with pytest.raises(SwapConflictError):
            decide_create(
                REQUESTER,
                BookState(BOOK_A, OWNER, True),
                BookState(BOOK_B, REQUESTER, False),
            )

    def test_ownership_is_checked_before_availability(self):
        with pytest.raises(SwapValidationError):
            decide_create(OWNER, BookState(BOOK_A, OWNER, False))


class TestDecideTransitions:

    def test_transition_table_has_no_exit_from_cancelled(self):
        assert not [key for key in TRANSITIONS if key[0] == CANCELLED]
        assert TERMINAL_STATES == {CANCELLED, COMPLETED}

    def test_owner_accepts_pending(self):
        decision = decide(snapshot(PENDING), OWNER, SwapAction.ACCEPT)
        assert decision.to_status == ACCEPTED
        assert decision.hold == ()
        assert decision.release == ()
        assert decision.event_type == 'SwapAccepted'

    def test_requester_cannot_accept_pending(self):
        with pytest.raises(SwapPermissionError):
            decide(snapshot(PENDING), REQUESTER, SwapAction.ACCEPT)

    def test_requester_accepts_counter_offer(self):
        state = snapshot(COUNTER_OFFER, counter_offered_book_id=BOOK_C)
        decision = decide(state, REQUESTER, SwapAction.ACCEPT)
        assert decision.to_status == ACCEPTED

    def test_owner_cannot_accept_own_counter_offer(self):
        state = snapshot(COUNTER_OFFER, counter_offered_book_id=BOOK_C)
        with pytest.raises(SwapPermissionError):
            decide(state, OWNER, SwapAction.ACCEPT)

    def test_accept_when_already_accepted_is_invalid(self):
        with pytest.raises(SwapValidationError) as exc_info:
            decide(snapshot(ACCEPTED), OWNER, SwapAction.ACCEPT)
        assert exc_info.value.code == 'invalid_state'

    def test_outsider_is_refused(self):
        with pytest.raises(SwapPermissionError):
            decide(snapshot(PENDING), OUTSIDER, SwapAction.CANCEL)

    @pytest.mark.parametrize('status', [PENDING, COUNTER_OFFER, ACCEPTED])
    @pytest.mark.parametrize('actor', [OWNER, REQUESTER])
    def test_either_party_cancels_active_request(self, status, actor):
        state = snapshot(status, counter_offered_book_id=BOOK_C if status != PENDING else None)
        decision = decide(state, actor, SwapAction.CANCEL)
        assert decision.to_status == CANCELLED
        assert set(decision.release) == set(state.referenced_book_ids)
        assert decision.event_type == 'SwapCancelled'

    @pytest.mark.parametrize('status', [CANCELLED, COMPLETED])
    @pytest.mark.parametrize('action', [
        SwapAction.ACCEPT, SwapAction.CANCEL, SwapAction.COMPLETE, SwapAction.COUNTER_OFFER,
    ])
    def test_terminal_requests_reject_every_action(self, status, action):
        with pytest.raises(SwapValidationError) as exc_info:
            decide(snapshot(status), OWNER, action, counter_book=BookState(BOOK_C, OWNER, True))
        assert exc_info.value.code == 'terminal_state'

    def test_create_is_not_decided_on_existing_requests(self):
        with pytest.raises(ValueError):
            decide(snapshot(PENDING), OWNER, SwapAction.CREATE)


class TestDecideCounterOffer:

    def test_counter_offer_swaps_held_offered_book(self):
        decision = decide(
            snapshot(PENDING), OWNER, SwapAction.COUNTER_OFFER,
            counter_book=BookState(BOOK_C, OWNER, True),
        )
        assert decision.to_status == COUNTER_OFFER
        assert decision.hold == (BOOK_C,)
        assert decision.release == (BOOK_B,)

    def test_counter_offer_without_original_offer_releases_nothing(self):
        decision = decide(
            snapshot(PENDING, offered_book_id=None), OWNER, SwapAction.COUNTER_OFFER,
            counter_book=BookState(BOOK_C, OWNER, True),
        )
        assert decision.release == ()

    def test_only_owner_counter_offers(self):
        with pytest.raises(SwapPermissionError):
            decide(
                snapshot(PENDING), REQUESTER, SwapAction.COUNTER_OFFER,
                counter_book=BookState(BOOK_B, REQUESTER, True),
            )

    def test_counter_book_must_differ_from_requested_book(self):
        with pytest.raises(SwapValidationError):
            decide(
                snapshot(PENDING), OWNER, SwapAction.COUNTER_OFFER,
                counter_book=BookState(BOOK_A, OWNER, False),
            )

    def test_counter_book_must_belong_to_owner(self):
        with pytest.raises(SwapValidationError):
            decide(
                snapshot(PENDING), OWNER, SwapAction.COUNTER_OFFER,
                counter_book=BookState(99, OUTSIDER, True),
            )

    def test_unavailable_counter_book_is_a_conflict(self):
        with pytest.raises(SwapConflictError):
            decide(
                snapshot(PENDING), OWNER, SwapAction.COUNTER_OFFER,
                counter_book=BookState(BOOK_C, OWNER, False),
            )

    def test_counter_offer_only_from_pending(self):
        with pytest.raises(SwapValidationError):
            decide(
                snapshot(COUNTER_OFFER, counter_offered_book_id=BOOK_C), OWNER,
                SwapAction.COUNTER_OFFER, counter_book=BookState(40, OWNER, True),
            )


class TestDecideComplete:

    def test_first_confirmation_is_partial(self):
        decision = decide(snapshot(ACCEPTED), REQUESTER, SwapAction.COMPLETE, rating=5)
        assert decision.to_status == ACCEPTED
        assert decision.transfer_ownership is False
        assert decision.event_type == 'PartialCompletion'

    def test_second_confirmation_completes_and_transfers(self):
        state = snapshot(ACCEPTED, requester_completed_at=NOW)
        decision = decide(state, OWNER, SwapAction.COMPLETE, rating=4)
        assert decision.to_status == COMPLETED
        assert decision.transfer_ownership is True
        assert set(decision.release) == {BOOK_A, BOOK_B}
        assert decision.event_type == 'SwapFullyCompleted'

    def test_same_party_cannot_confirm_twice(self):
        state = snapshot(ACCEPTED, requester_completed_at=NOW)
        with pytest.raises(SwapValidationError) as exc_info:
            decide(state, REQUESTER, SwapAction.COMPLETE)
        assert exc_info.value.code == 'already_completed'

    @pytest.mark.parametrize('rating', [0, 6, -1, 2.5, '5', True])
    def test_rating_out_of_range_is_rejected(self, rating):
        with pytest.raises(SwapValidationError):
            decide(snapshot(ACCEPTED), OWNER, SwapAction.COMPLETE, rating=rating)

    def test_complete_requires_accepted(self):
        with pytest.raises(SwapValidationError):
            decide(snapshot(PENDING), OWNER, SwapAction.COMPLETE)


class TestDecideAddRating:

    def test_unrated_party_may_rate_completed_swap(self):
        state = snapshot(COMPLETED, requester_rating=5)
        decision = decide(state, OWNER, SwapAction.ADD_RATING, rating=3)
        assert decision.to_status == COMPLETED
        assert decision.changes_status is False
        assert decision.event_type == 'RatingAdded'

    def test_existing_rating_cannot_be_replaced(self):
        state = snapshot(COMPLETED, owner_rating=2)
        with pytest.raises(SwapValidationError) as exc_info:
            decide(state, OWNER, SwapAction.ADD_RATING, rating=5)
        assert exc_info.value.code == 'already_rated'

    def test_rating_is_required(self):
        with pytest.raises(SwapValidationError):
            decide(snapshot(COMPLETED), OWNER, SwapAction.ADD_RATING, rating=None)

    def test_rating_only_on_completed_swaps(self):
        with pytest.raises(SwapValidationError):
            decide(snapshot(ACCEPTED), OWNER, SwapAction.ADD_RATING, rating=4)

    def test_rating_cancelled_swap_is_terminal_error(self):
        with pytest.raises(SwapValidationError) as exc_info:
            decide(snapshot(CANCELLED), OWNER, SwapAction.ADD_RATING, rating=4)
        assert exc_info.value.code == 'terminal_state'


class TestCompletionTracker:

    def make_swap(self, **kwargs):
        fields = {
            'requester_id': REQUESTER,
            'owner_id': OWNER,
            'requester_completed_at': None,
            'owner_completed_at': None,
            'requester_rating': None,
            'owner_rating': None,
            'requester_feedback': None,
            'owner_feedback': None,
        }
        fields.update(kwargs)
        return SimpleNamespace(**fields)

    def test_party_lookup(self):
        swap = self.make_swap()
        assert party_for(swap, REQUESTER) == Party.REQUESTER
        assert party_for(swap, OWNER) == Party.OWNER
        assert party_for(swap, OUTSIDER) is None
        assert other_party(Party.OWNER) == Party.REQUESTER

    def test_record_completion_requires_both_parties(self):
        swap = self.make_swap()
        assert record_completion(swap, Party.REQUESTER, NOW, rating=5, feedback='Great') is False
        assert swap.requester_rating == 5
        assert swap.requester_feedback == 'Great'
        assert not is_fully_completed(swap)

        assert record_completion(swap, Party.OWNER, NOW) is True
        assert is_fully_completed(swap)
        assert swap.owner_rating is None

    def test_record_completion_twice_fails(self):
        swap = self.make_swap(owner_completed_at=NOW)
        with pytest.raises(SwapValidationError):
            record_completion(swap, Party.OWNER, NOW)

    def test_attach_rating_keeps_existing_feedback_when_none_given(self):
        swap = self.make_swap(owner_feedback='Smooth')
        attach_rating(swap, Party.OWNER, 4)
        assert swap.owner_rating == 4
        assert swap.owner_feedback == 'Smooth'

    def test_attach_rating_refuses_overwrite(self):
        swap = self.make_swap(requester_rating=1)
        with pytest.raises(SwapValidationError):
            attach_rating(swap, Party.REQUESTER, 5)
