"""
Read-only queries over swap requests and books.

Everything here is derived from SwapRequest and Book rows; there is no
separate write path for statistics.
"""

from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Q
from django.utils import timezone

from .models import Book, SwapRequest
from .validators import MAX_RATING, MIN_RATING


def round_one_decimal(value):
    """Round half up to one decimal place and return a float."""
    return float(Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def _user_id(user):
    return getattr(user, 'pk', user)


def _participant_q(user_id):
    return Q(requester_id=user_id) | Q(owner_id=user_id)


def received_rating(swap, user_id):
    """The rating the other party gave `user_id` on `swap`, or None."""
    if swap.requester_id == user_id:
        return swap.owner_rating
    if swap.owner_id == user_id:
        return swap.requester_rating
    return None


def _with_details(queryset):
    return queryset.select_related(
        'book', 'offered_book', 'counter_offered_book', 'requester', 'owner'
    )


def swaps_for_user(user):
    """
    Incoming and outgoing swap requests of `user`, newest first.

    Returns:
        dict: {'incoming': QuerySet, 'outgoing': QuerySet}
    """
    user_id = _user_id(user)
    return {
        'incoming': _with_details(
            SwapRequest.objects.filter(owner_id=user_id)
        ).order_by('-created_at'),
        'outgoing': _with_details(
            SwapRequest.objects.filter(requester_id=user_id)
        ).order_by('-created_at'),
    }


def get_swap_request_counts(user):
    """
    Number of active incoming and outgoing requests.

    Returns:
        dict: {'incoming_pending': int, 'outgoing_pending': int}
    """
    user_id = _user_id(user)
    active = SwapRequest.objects.filter(status__in=SwapRequest.ACTIVE_STATUSES)
    return {
        'incoming_pending': active.filter(owner_id=user_id).count(),
        'outgoing_pending': active.filter(requester_id=user_id).count(),
    }


def completed_swaps_for_user(user):
    """Completed swaps `user` took part in, most recently completed first."""
    user_id = _user_id(user)
    return _with_details(
        SwapRequest.objects.filter(_participant_q(user_id), status=SwapRequest.STATUS_COMPLETED)
    ).order_by('-completed_at')


def get_swap_statistics(user):
    """
    Aggregate swap statistics for `user`.

    Returns:
        dict: {
            'total_completed': completed swaps,
            'average_rating': mean rating received on completed swaps (1 d.p.),
            'completion_rate': completed / total, in percent (1 d.p.),
            'total_swaps': every swap request the user took part in,
        }
    """
    user_id = _user_id(user)
    swaps = SwapRequest.objects.filter(_participant_q(user_id)).only(
        'status', 'requester', 'owner', 'requester_rating', 'owner_rating'
    )

    total_swaps = 0
    total_completed = 0
    ratings = []
    for swap in swaps:
        total_swaps += 1
        if swap.status != SwapRequest.STATUS_COMPLETED:
            continue
        total_completed += 1
        rating = received_rating(swap, user_id)
        if rating is not None:
            ratings.append(rating)

    average_rating = sum(ratings) / len(ratings) if ratings else 0
    completion_rate = (total_completed / total_swaps) * 100 if total_swaps else 0

    return {
        'total_completed': total_completed,
        'average_rating': round_one_decimal(average_rating),
        'completion_rate': round_one_decimal(completion_rate),
        'total_swaps': total_swaps,
    }


def get_user_rating(user):
    """
    Ratings `user` received from swap partners on completed swaps.

    Returns:
        dict: {'average_rating': float, 'total_ratings': int,
               'ratings_breakdown': {1: n, ..., 5: n}}
    """
    user_id = _user_id(user)
    swaps = SwapRequest.objects.filter(
        _participant_q(user_id),
        status=SwapRequest.STATUS_COMPLETED,
    ).filter(
        Q(requester_rating__isnull=False) | Q(owner_rating__isnull=False)
    ).only('requester', 'owner', 'requester_rating', 'owner_rating')

    breakdown = {stars: 0 for stars in range(MIN_RATING, MAX_RATING + 1)}
    ratings = []
    for swap in swaps:
        rating = received_rating(swap, user_id)
        if rating is None:
            continue
        ratings.append(rating)
        breakdown[rating] += 1

    average = sum(ratings) / len(ratings) if ratings else 0
    return {
        'average_rating': round_one_decimal(average),
        'total_ratings': len(ratings),
        'ratings_breakdown': breakdown,
    }


def available_books_for_swapping(exclude_user=None):
    """Available books, newest first, optionally excluding one user's shelf."""
    queryset = Book.objects.filter(is_available=True).select_related('owner')
    if exclude_user is not None:
        queryset = queryset.exclude(owner_id=_user_id(exclude_user))
    return queryset.order_by('-created_at')


def user_books_for_offering(user):
    """The user's own available books, newest first."""
    return Book.objects.filter(
        owner_id=_user_id(user),
        is_available=True,
    ).order_by('-created_at')


def swaps_needing_reminders(older_than=timedelta(hours=24), now=None):
    """
    Accepted swaps where exactly one party confirmed more than `older_than` ago.

    The party who has not confirmed yet is the one to remind.
    """
    cutoff = (now or timezone.now()) - older_than
    requester_waiting = Q(
        requester_completed_at__isnull=False,
        requester_completed_at__lt=cutoff,
        owner_completed_at__isnull=True,
    )
    owner_waiting = Q(
        owner_completed_at__isnull=False,
        owner_completed_at__lt=cutoff,
        requester_completed_at__isnull=True,
    )
    return _with_details(
        SwapRequest.objects.filter(
            requester_waiting | owner_waiting,
            status=SwapRequest.STATUS_ACCEPTED,
            completed_at__isnull=True,
        )
    ).order_by('updated_at')
