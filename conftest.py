"""
Pytest configuration for Lynck Space calendar backend.
"""
import pytest
from django.contrib.auth.models import User

from core.models import CalendarConnection


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='testuser',
        email='test@example.com',
        password='testpass123'
    )


@pytest.fixture
def connected_user(user):
    """Test user with a stored Google Calendar token."""
    CalendarConnection.objects.create(user=user, access_token='test-token')
    return user


@pytest.fixture
def authenticated_client(user):
    """Return an authenticated API client."""
    from rest_framework.test import APIClient
    from rest_framework_simplejwt.tokens import RefreshToken

    api_client = APIClient()
    refresh = RefreshToken.for_user(user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
