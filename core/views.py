"""
API views for the book swap marketplace.

Views are thin: they validate request shape with a serializer, call one
function in core.services or core.statistics with request.user as the actor,
and serialize the result. SwapError subclasses raised by the services are
rendered by core.exceptions.api_exception_handler.
"""

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services, statistics
from .exceptions import SwapNotFoundError
from .models import SwapRequest
from .permissions import IsSwapParticipant
from .serializers import (
    BookSerializer,
    CounterOfferSerializer,
    SwapCompleteSerializer,
    SwapRatingSerializer,
    SwapRequestCreateSerializer,
    SwapRequestSerializer,
    VersionedActionSerializer,
)

User = get_user_model()


class SwapRequestListCreateView(APIView):
    """
    API endpoint for listing and opening swap requests.

    GET /api/swaps/
    Headers: Authorization: Bearer <access_token>
    Query Parameters:
    - status (optional): Only return requests in this status

    Success response (200):
    {
        "incoming": [ <swap request>, ... ],
        "outgoing": [ <swap request>, ... ]
    }

    POST /api/swaps/
    Request body: {
        "book_id": 12,
        "offered_book_id": 7,
        "message": "Would you swap for my copy?"
    }

    Success response (201): <swap request>

    Error responses:
    - 400: Invalid data or self-swap
    - 401: Missing, invalid, or expired JWT token
    - 404: Book does not exist
    - 409: A book is no longer available
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        swaps = statistics.swaps_for_user(request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            status_filter = status_filter.upper()
            swaps = {key: queryset.filter(status=status_filter) for key, queryset in swaps.items()}

        return Response({
            'incoming': SwapRequestSerializer(swaps['incoming'], many=True).data,
            'outgoing': SwapRequestSerializer(swaps['outgoing'], many=True).data,
        })

    def post(self, request, *args, **kwargs):
        serializer = SwapRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        swap = services.create_swap_request(
            request.user,
            data['book_id'],
            offered_book_id=data.get('offered_book_id'),
            message=data.get('message'),
        )
        return Response(SwapRequestSerializer(swap).data, status=status.HTTP_201_CREATED)


class SwapRequestDetailView(APIView):
    """
    GET /api/swaps/<id>/

    Visible to the requester and the owner only.

    Error responses:
    - 403: Not a participant
    - 404: Swap request does not exist
    """

    permission_classes = [IsAuthenticated, IsSwapParticipant]

    def get(self, request, pk, *args, **kwargs):
        try:
            swap = SwapRequest.objects.select_related(
                'book', 'offered_book', 'counter_offered_book', 'requester', 'owner'
            ).get(pk=pk)
        except SwapRequest.DoesNotExist:
            raise SwapNotFoundError('Swap request', pk)

        self.check_object_permissions(request, swap)
        return Response(SwapRequestSerializer(swap).data)


class SwapActionView(APIView):
    """
    Base class for POST /api/swaps/<id>/<action>/ endpoints.

    Subclasses set `serializer_class` and implement perform_action().
    Every action accepts an optional `expected_version`; a mismatch is
    answered with 409 Conflict.

    Success response (200): <swap request>

    Error responses:
    - 400: Invalid data or action not allowed in the current state
    - 403: Actor may not perform this action
    - 404: Swap request (or a referenced book) does not exist
    - 409: Lost a race, stale expected_version, or book unavailable
    - 500: Ownership re-validation failed (requires manual reconciliation)
    """

    permission_classes = [IsAuthenticated]
    serializer_class = VersionedActionSerializer

    def perform_action(self, user, pk, data):
        raise NotImplementedError

    def post(self, request, pk, *args, **kwargs):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        swap = self.perform_action(request.user, pk, serializer.validated_data)
        return Response(SwapRequestSerializer(swap).data, status=status.HTTP_200_OK)


class SwapCounterOfferView(SwapActionView):
    """
    POST /api/swaps/<id>/counter-offer/

    Request body: {"counter_offered_book_id": 9, "message": "How about this one?"}
    """

    serializer_class = CounterOfferSerializer

    def perform_action(self, user, pk, data):
        return services.make_counter_offer(
            user,
            pk,
            data['counter_offered_book_id'],
            message=data.get('message'),
            expected_version=data.get('expected_version'),
        )


class SwapAcceptView(SwapActionView):
    """POST /api/swaps/<id>/accept/"""

    def perform_action(self, user, pk, data):
        return services.accept_swap_request(user, pk, expected_version=data.get('expected_version'))


class SwapCancelView(SwapActionView):
    """POST /api/swaps/<id>/cancel/"""

    def perform_action(self, user, pk, data):
        return services.cancel_swap_request(user, pk, expected_version=data.get('expected_version'))


class SwapCompleteView(SwapActionView):
    """
    POST /api/swaps/<id>/complete/

    Request body: {"rating": 5, "feedback": "Great swap"} (both optional)
    """

    serializer_class = SwapCompleteSerializer

    def perform_action(self, user, pk, data):
        return services.complete_swap_request(
            user,
            pk,
            rating=data.get('rating'),
            feedback=data.get('feedback'),
            expected_version=data.get('expected_version'),
        )


class SwapRatingView(SwapActionView):
    """
    POST /api/swaps/<id>/rating/

    Rate a completed swap the actor has not rated yet.
    Request body: {"rating": 4, "feedback": "Book as described"}
    """

    serializer_class = SwapRatingSerializer

    def perform_action(self, user, pk, data):
        return services.add_missing_rating(
            user,
            pk,
            data['rating'],
            feedback=data.get('feedback'),
            expected_version=data.get('expected_version'),
        )


class SwapRequestCountsView(APIView):
    """
    GET /api/swaps/counts/

    Success response (200): {"incoming_pending": 2, "outgoing_pending": 1}
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(statistics.get_swap_request_counts(request.user))


class CompletedSwapsView(ListAPIView):
    """
    GET /api/swaps/completed/

    Paginated list of the user's completed swaps, most recent first.
    """

    permission_classes = [IsAuthenticated]
    pagination_class = PageNumberPagination
    serializer_class = SwapRequestSerializer

    def get_queryset(self):
        return statistics.completed_swaps_for_user(self.request.user)


class SwapStatisticsView(APIView):
    """
    GET /api/swaps/statistics/

    Success response (200):
    {
        "total_completed": 3,
        "average_rating": 4.7,
        "completion_rate": 60.0,
        "total_swaps": 5
    }
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(statistics.get_swap_statistics(request.user))


class UserRatingView(APIView):
    """
    GET /api/users/<id>/rating/

    Success response (200):
    {
        "average_rating": 4.5,
        "total_ratings": 2,
        "ratings_breakdown": {"1": 0, "2": 0, "3": 0, "4": 1, "5": 1}
    }

    Error responses:
    - 404: User does not exist
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        if not User.objects.filter(pk=pk).exists():
            raise SwapNotFoundError('User', pk)
        return Response(statistics.get_user_rating(pk))


class AvailableBooksView(ListAPIView):
    """
    GET /api/books/available/

    Paginated list of books open for swapping, excluding the user's own.
    """

    permission_classes = [IsAuthenticated]
    pagination_class = PageNumberPagination
    serializer_class = BookSerializer

    def get_queryset(self):
        return statistics.available_books_for_swapping(exclude_user=self.request.user)


class OfferableBooksView(ListAPIView):
    """
    GET /api/books/offerable/

    The user's own available books, i.e. the ones they can offer in a swap.
    """

    permission_classes = [IsAuthenticated]
    pagination_class = None
    serializer_class = BookSerializer

    def get_queryset(self):
        return statistics.user_books_for_offering(self.request.user).select_related('owner')
