"""
Completion tracking for accepted swap requests.

Each party confirms a swap independently. The requester_* and owner_*
field groups on SwapRequest hold that party's confirmation timestamp,
rating and feedback; a swap is fully completed once both timestamps are set.

The helpers here work on anything exposing those attributes, so the state
machine can evaluate them against a snapshot and the service layer can apply
them to a model instance.
"""

from enum import Enum

from .exceptions import SwapValidationError
from .validators import is_valid_rating, MIN_RATING, MAX_RATING


class Party(str, Enum):
    """The two sides of a swap request."""

    REQUESTER = 'requester'
    OWNER = 'owner'


def party_for(swap, user_id):
    """
    Return the Party `user_id` plays in `swap`, or None for outsiders.

    Args:
        swap: SwapRequest or snapshot with requester_id/owner_id
        user_id: Acting user's primary key (a User instance is accepted too)
    """
    user_id = getattr(user_id, 'pk', user_id)
    if user_id is None:
        return None
    if user_id == swap.requester_id:
        return Party.REQUESTER
    if user_id == swap.owner_id:
        return Party.OWNER
    return None


def other_party(party):
    return Party.OWNER if party == Party.REQUESTER else Party.REQUESTER


def has_confirmed(swap, party):
    return getattr(swap, f'{party.value}_completed_at') is not None


def has_rated(swap, party):
    return getattr(swap, f'{party.value}_rating') is not None


def is_fully_completed(swap):
    """True once both parties have confirmed the swap."""
    return has_confirmed(swap, Party.REQUESTER) and has_confirmed(swap, Party.OWNER)


def check_rating(rating, required=False):
    """
    Validate an optional star rating.

    Raises:
        SwapValidationError: If the rating is missing (when required) or out of range
    """
    if rating is None:
        if required:
            raise SwapValidationError('A rating is required.', code='rating_required')
        return
    if not is_valid_rating(rating):
        raise SwapValidationError(
            f'Rating must be a whole number between {MIN_RATING} and {MAX_RATING}.',
            code='invalid_rating',
        )


def record_completion(swap, party, completed_at, rating=None, feedback=None):
    """
    Record `party`'s confirmation on `swap`.

    Args:
        swap: SwapRequest instance (mutated in place, not saved)
        party: Confirming Party
        completed_at: Confirmation timestamp
        rating: Optional 1-5 rating of the other party
        feedback: Optional feedback text

    Returns:
        bool: True if this confirmation completed the swap for both parties

    Raises:
        SwapValidationError: If the party already confirmed or the rating is invalid
    """
    if has_confirmed(swap, party):
        raise SwapValidationError(
            'You have already marked this swap as completed.',
            code='already_completed',
        )
    check_rating(rating)

    setattr(swap, f'{party.value}_completed_at', completed_at)
    setattr(swap, f'{party.value}_rating', rating)
    setattr(swap, f'{party.value}_feedback', feedback)
    return is_fully_completed(swap)


def attach_rating(swap, party, rating, feedback=None):
    """
    Attach a late rating to a completed swap.

    Only a party whose own rating is still empty may do this, so an existing
    rating can never be overwritten.

    Raises:
        SwapValidationError: If the party already rated or the rating is invalid
    """
    if has_rated(swap, party):
        raise SwapValidationError(
            'You have already rated this swap.',
            code='already_rated',
        )
    check_rating(rating, required=True)

    setattr(swap, f'{party.value}_rating', rating)
    if feedback is not None:
        setattr(swap, f'{party.value}_feedback', feedback)
