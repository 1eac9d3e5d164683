"""
Serializers for the book swap API.

Read serializers render books and swap requests with their parties nested.
Input serializers only validate request shape; every business rule lives in
core.services.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Book, SwapRequest
from .validators import FEEDBACK_MAX_LENGTH, MAX_RATING, MESSAGE_MAX_LENGTH, MIN_RATING

User = get_user_model()


# ============================================================================
# Read Serializers
# ============================================================================

class SwapUserSerializer(serializers.ModelSerializer):
    """
    Public view of a swap participant.

    Email is deliberately left out; partners see username and coarse location.
    """

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'city', 'state']
        read_only_fields = fields


class BookSerializer(serializers.ModelSerializer):
    """
    Book listing with its current owner.

    Fields:
    - id, title, authors, isbn, condition, genre, description
    - is_available: False while an active swap request holds the book
    - owner: Nested SwapUserSerializer
    """

    owner = SwapUserSerializer(read_only=True)

    class Meta:
        model = Book
        fields = [
            'id',
            'title',
            'authors',
            'isbn',
            'condition',
            'genre',
            'description',
            'is_available',
            'owner',
            'created_at',
        ]
        read_only_fields = fields


class SwapBookSerializer(serializers.ModelSerializer):
    """Compact book representation nested inside swap requests."""

    class Meta:
        model = Book
        fields = ['id', 'title', 'authors', 'condition', 'owner', 'is_available']
        read_only_fields = fields


class SwapRequestSerializer(serializers.ModelSerializer):
    """
    Full swap request representation.

    `version` is returned so clients can send it back as `expected_version`.
    """

    book = SwapBookSerializer(read_only=True)
    offered_book = SwapBookSerializer(read_only=True)
    counter_offered_book = SwapBookSerializer(read_only=True)
    requester = SwapUserSerializer(read_only=True)
    owner = SwapUserSerializer(read_only=True)
    is_fully_completed = serializers.BooleanField(read_only=True)

    class Meta:
        model = SwapRequest
        fields = [
            'id',
            'status',
            'book',
            'offered_book',
            'counter_offered_book',
            'requester',
            'owner',
            'message',
            'counter_offer_message',
            'cancelled_by',
            'requester_completed_at',
            'owner_completed_at',
            'requester_rating',
            'owner_rating',
            'requester_feedback',
            'owner_feedback',
            'completed_at',
            'is_fully_completed',
            'version',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


# ============================================================================
# Input Serializers
# ============================================================================

class VersionedActionSerializer(serializers.Serializer):
    """Base input for actions on an existing request."""

    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class SwapRequestCreateSerializer(serializers.Serializer):
    """
    Input for opening a swap request.

    Fields:
    - book_id: Required, the requested book
    - offered_book_id: Optional, one of the requester's books
    - message: Optional note to the owner (max 1000 characters)
    """

    book_id = serializers.IntegerField(min_value=1)
    offered_book_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    message = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=MESSAGE_MAX_LENGTH,
    )

    def validate(self, attrs):
        if attrs.get('offered_book_id') is not None and attrs['offered_book_id'] == attrs['book_id']:
            raise serializers.ValidationError({
                'offered_book_id': 'The offered book must differ from the requested book.'
            })
        return attrs


class CounterOfferSerializer(VersionedActionSerializer):
    counter_offered_book_id = serializers.IntegerField(min_value=1)
    message = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=MESSAGE_MAX_LENGTH,
    )


class SwapCompleteSerializer(VersionedActionSerializer):
    """
    Input for confirming completion.

    Fields:
    - rating: Optional 1-5 rating of the other party
    - feedback: Optional text (max 2000 characters)
    """

    rating = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=MIN_RATING,
        max_value=MAX_RATING,
    )
    feedback = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=FEEDBACK_MAX_LENGTH,
    )


class SwapRatingSerializer(SwapCompleteSerializer):
    """Input for rating a completed swap after the fact; the rating is mandatory."""

    rating = serializers.IntegerField(min_value=MIN_RATING, max_value=MAX_RATING)
