"""
Django admin configuration for users, books and swap requests.

Availability, ownership and swap state are read-only here: they are owned by
core.services, and editing them by hand would break the availability ledger.
Use the check_book_availability management command to repair flags.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Book, SwapRequest, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin with location and timestamps.
    """

    list_display = [
        'email',
        'username',
        'city',
        'state',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = ['is_staff', 'is_superuser', 'is_active', 'created_at']

    search_fields = ['email', 'username', 'first_name', 'last_name', 'city']

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': ('first_name', 'last_name', 'email', 'city', 'state')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'password1', 'password2', 'city', 'state'),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined']

    list_per_page = 25


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    """
    Admin interface for books.

    Catalogue fields are editable; `owner` and `is_available` are not once
    the book exists.
    """

    list_display = ['title', 'authors', 'owner', 'condition', 'is_available', 'created_at']
    list_filter = ['is_available', 'condition', 'genre']
    search_fields = ['title', 'authors', 'isbn', 'owner__email', 'owner__username']
    list_select_related = ['owner']
    ordering = ['-created_at']

    fieldsets = (
        (_('Book'), {
            'fields': ('title', 'authors', 'isbn', 'condition', 'genre', 'description')
        }),
        (_('Ledger'), {
            'fields': ('owner', 'is_available')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        """
        Lock ledger fields on existing books.

        Args:
            request: HTTP request
            obj: Book object (None when adding a new book)

        Returns:
            list: Read-only field names
        """
        readonly = ['created_at', 'updated_at']
        if obj is not None:
            readonly += ['owner', 'is_available']
        return readonly


@admin.register(SwapRequest)
class SwapRequestAdmin(admin.ModelAdmin):
    """
    Read-only admin interface for swap requests.

    Requests are an audit trail: they cannot be added, edited or deleted here.
    """

    list_display = [
        'id',
        'book',
        'requester',
        'owner',
        'status',
        'version',
        'created_at',
        'completed_at',
    ]
    list_filter = ['status', 'created_at', 'completed_at']
    search_fields = ['book__title', 'requester__email', 'owner__email']
    list_select_related = ['book', 'requester', 'owner']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    fieldsets = (
        (_('Negotiation'), {
            'fields': (
                'status',
                'book',
                'requester',
                'owner',
                'offered_book',
                'counter_offered_book',
                'message',
                'counter_offer_message',
                'cancelled_by',
            )
        }),
        (_('Completion'), {
            'fields': (
                ('requester_completed_at', 'requester_rating', 'requester_feedback'),
                ('owner_completed_at', 'owner_rating', 'owner_feedback'),
                'completed_at',
            )
        }),
        (_('Audit'), {
            'fields': ('version', 'created_at', 'updated_at'),
        }),
    )

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
