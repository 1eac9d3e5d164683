"""
Shared fixtures for the swap test suite.

Naming follows the walkthrough scenario used throughout the tests:
- owner (U1) owns book_a and book_c
- requester (U2) owns book_b
- outsider takes part in no swap
"""

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.models import Book

User = get_user_model()


@pytest.fixture
def api_client():
    """Return API client for testing."""
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory creating users with unique usernames and emails."""
    def _make_user(username, **kwargs):
        kwargs.setdefault('email', f'{username}@test.com')
        kwargs.setdefault('password', 'TestPass123!')
        return User.objects.create_user(username=username, **kwargs)
    return _make_user


@pytest.fixture
def make_book(db):
    """Factory creating books for a given owner."""
    def _make_book(owner, title='Untitled', **kwargs):
        return Book.objects.create(owner=owner, title=title, **kwargs)
    return _make_book


@pytest.fixture
def owner(make_user):
    """U1: owner of the requested book."""
    return make_user('owner', first_name='Olive', city='Portland', state='OR')


@pytest.fixture
def requester(make_user):
    """U2: user asking for the owner's book."""
    return make_user('requester', first_name='Remy', city='Austin', state='TX')


@pytest.fixture
def outsider(make_user):
    return make_user('outsider')


@pytest.fixture
def book_a(make_book, owner):
    return make_book(owner, title='Book A', authors='Ann Author', condition='FINE')


@pytest.fixture
def book_b(make_book, requester):
    return make_book(requester, title='Book B', authors='Bob Writer')


@pytest.fixture
def book_c(make_book, owner):
    return make_book(owner, title='Book C', authors='Cat Novelist')


@pytest.fixture
def authenticate(api_client):
    """Attach a JWT bearer token for `user` to the API client."""
    def _authenticate(user):
        refresh = RefreshToken.for_user(user)
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return api_client
    return _authenticate
