"""
Models for the book swap marketplace.

Book rows form the availability ledger; SwapRequest rows are the durable
record of every negotiation. Both are mutated only through core.services.
"""

from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxLengthValidator
from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

from .exceptions import SwapNotFoundError
from .validators import (
    FEEDBACK_MAX_LENGTH,
    MAX_RATING,
    MESSAGE_MAX_LENGTH,
    MIN_RATING,
    validate_isbn,
    validate_rating,
)


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address
    - city / state: Coarse location shown to swap partners
    - created_at: Account creation timestamp
    - updated_at: Last update timestamp
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    city = models.CharField(
        _('city'),
        max_length=100,
        blank=True,
        default='',
    )

    state = models.CharField(
        _('state'),
        max_length=100,
        blank=True,
        default='',
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    def save(self, *args, **kwargs):
        # Normalize email to lowercase for case-insensitive uniqueness
        if self.email:
            self.email = self.email.lower()
        super().save(*args, **kwargs)


class Book(models.Model):
    """
    A physical book listed for swapping.

    `owner` is the current holder and `is_available` is the ledger flag:
    a book is available exactly when no active swap holds it. Neither field
    is edited directly; core.services keeps them consistent.
    """

    CONDITION_CHOICES = [
        ('AS_NEW', 'As New'),
        ('FINE', 'Fine'),
        ('VERY_GOOD', 'Very Good'),
        ('GOOD', 'Good'),
        ('FAIR', 'Fair'),
        ('POOR', 'Poor'),
    ]

    owner = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='books',
        help_text=_('Current holder of the book')
    )

    title = models.CharField(
        _('title'),
        max_length=255,
    )

    authors = models.CharField(
        _('authors'),
        max_length=500,
        blank=True,
        default='',
        help_text=_('Comma-separated author names')
    )

    isbn = models.CharField(
        _('ISBN'),
        max_length=17,
        blank=True,
        default='',
        validators=[validate_isbn],
    )

    condition = models.CharField(
        _('condition'),
        max_length=20,
        choices=CONDITION_CHOICES,
        default='GOOD',
    )

    genre = models.CharField(
        _('genre'),
        max_length=100,
        blank=True,
        default='',
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default='',
    )

    is_available = models.BooleanField(
        _('available'),
        default=True,
        help_text=_('False while the book is held by an active swap request')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('book')
        verbose_name_plural = _('books')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner'], name='core_book_owner_i_7c2b1e_idx'),
            models.Index(fields=['is_available'], name='core_book_is_avai_4f3d0a_idx'),
        ]

    def __str__(self):
        return self.title

    @classmethod
    def get_by_id(cls, book_id):
        """
        Fetch a book by primary key.

        Raises:
            SwapNotFoundError: If the book does not exist
        """
        try:
            return cls.objects.get(pk=book_id)
        except (cls.DoesNotExist, ValueError, TypeError):
            raise SwapNotFoundError('Book', book_id)

    def is_owned_by(self, user):
        """Return True if `user` (instance or primary key) currently owns this book."""
        user_id = getattr(user, 'pk', user)
        return self.owner_id == user_id


class SwapRequest(models.Model):
    """
    A negotiation between a requester and the owner of a requested book.

    Fields:
    - book: The requested book
    - requester / owner: The two parties (owner captured at creation)
    - offered_book: Requester's book offered in exchange (optional)
    - counter_offered_book: Owner's alternative proposal (optional)
    - status: PENDING, COUNTER_OFFER, ACCEPTED, CANCELLED or COMPLETED
    - cancelled_by: Party who cancelled (CANCELLED only)
    - requester_* / owner_*: Per-party completion timestamp, rating, feedback
    - completed_at: Set once both parties confirmed
    - version: Incremented on every mutation for optimistic concurrency
    """

    STATUS_PENDING = 'PENDING'
    STATUS_COUNTER_OFFER = 'COUNTER_OFFER'
    STATUS_ACCEPTED = 'ACCEPTED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_COMPLETED = 'COMPLETED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COUNTER_OFFER, 'Counter Offer'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_COUNTER_OFFER, STATUS_ACCEPTED)
    TERMINAL_STATUSES = (STATUS_CANCELLED, STATUS_COMPLETED)

    book = models.ForeignKey(
        Book,
        on_delete=models.PROTECT,
        related_name='swap_requests',
        help_text=_('Requested book')
    )

    requester = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='outgoing_swap_requests',
    )

    owner = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='incoming_swap_requests',
        help_text=_('Owner of the requested book when the request was created')
    )

    offered_book = models.ForeignKey(
        Book,
        on_delete=models.PROTECT,
        related_name='offered_in_swap_requests',
        null=True,
        blank=True,
    )

    counter_offered_book = models.ForeignKey(
        Book,
        on_delete=models.PROTECT,
        related_name='counter_offered_in_swap_requests',
        null=True,
        blank=True,
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    message = models.TextField(
        _('message'),
        null=True,
        blank=True,
        validators=[MaxLengthValidator(MESSAGE_MAX_LENGTH)],
    )

    counter_offer_message = models.TextField(
        _('counter-offer message'),
        null=True,
        blank=True,
        validators=[MaxLengthValidator(MESSAGE_MAX_LENGTH)],
    )

    cancelled_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='+',
        null=True,
        blank=True,
    )

    requester_completed_at = models.DateTimeField(null=True, blank=True)
    owner_completed_at = models.DateTimeField(null=True, blank=True)

    requester_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[validate_rating],
        help_text=_('Rating given by the requester (1-5 stars)')
    )

    owner_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[validate_rating],
        help_text=_('Rating given by the owner (1-5 stars)')
    )

    requester_feedback = models.TextField(
        null=True,
        blank=True,
        validators=[MaxLengthValidator(FEEDBACK_MAX_LENGTH)],
    )

    owner_feedback = models.TextField(
        null=True,
        blank=True,
        validators=[MaxLengthValidator(FEEDBACK_MAX_LENGTH)],
    )

    completed_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('swap request')
        verbose_name_plural = _('swap requests')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['requester', 'status'], name='core_swapre_request_5b8e2c_idx'),
            models.Index(fields=['owner', 'status'], name='core_swapre_owner_i_9d41f7_idx'),
            models.Index(fields=['status'], name='core_swapre_status_0e6a3b_idx'),
            models.Index(fields=['completed_at'], name='core_swapre_complet_a2c9d4_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['book'],
                name='unique_active_swap_per_requested_book',
                condition=Q(status__in=['PENDING', 'COUNTER_OFFER', 'ACCEPTED'])
            ),
            models.CheckConstraint(
                condition=~Q(requester=F('owner')),
                name='swap_requester_is_not_owner',
            ),
            models.CheckConstraint(
                condition=Q(requester_rating__isnull=True)
                | Q(requester_rating__gte=MIN_RATING, requester_rating__lte=MAX_RATING),
                name='swap_requester_rating_range',
            ),
            models.CheckConstraint(
                condition=Q(owner_rating__isnull=True)
                | Q(owner_rating__gte=MIN_RATING, owner_rating__lte=MAX_RATING),
                name='swap_owner_rating_range',
            ),
        ]

    def __str__(self):
        return f"Swap #{self.pk} for book {self.book_id} ({self.status})"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def final_offered_book_id(self):
        """The book offered in exchange for the requested one; a counter-offer supersedes the requester's offer."""
        return self.counter_offered_book_id or self.offered_book_id

    @property
    def held_book_ids(self):
        """Books this request keeps unavailable while it is active."""
        return tuple(
            book_id for book_id in (self.book_id, self.final_offered_book_id)
            if book_id is not None
        )

    @property
    def referenced_book_ids(self):
        """Every book this request has ever pointed at."""
        return tuple(
            book_id for book_id in (
                self.book_id, self.offered_book_id, self.counter_offered_book_id
            )
            if book_id is not None
        )

    @property
    def is_fully_completed(self):
        """True once both parties confirmed the swap."""
        return self.requester_completed_at is not None and self.owner_completed_at is not None

    def is_participant(self, user):
        user_id = getattr(user, 'pk', user)
        return user_id in (self.requester_id, self.owner_id)
