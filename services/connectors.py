"""
Access to the Google Calendar OAuth connector.

The OAuth flow and token refresh live outside this service: the connector
hands over an access token which is stored per user. This module only
reads, stores and drops it.
"""
import logging

from django.contrib.auth.models import User

from core.models import CalendarConnection

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR = 'googlecalendar'


class CalendarNotConnected(Exception):
    """The user has no usable Google Calendar access token."""


def get_access_token(user: User) -> str:
    """
    Return the stored Google Calendar access token for a user.

    Raises:
        CalendarNotConnected: when no token is stored
    """
    token = (
        CalendarConnection.objects
        .filter(user=user)
        .values_list('access_token', flat=True)
        .first()
    )
    if not token:
        raise CalendarNotConnected("Google Calendar not connected")
    return token


def store_access_token(user: User, access_token: str) -> CalendarConnection:
    """Save (or replace) the access token handed over by the connector."""
    connection, created = CalendarConnection.objects.update_or_create(
        user=user,
        defaults={'access_token': access_token},
    )
    logger.info(f"{'Connected' if created else 'Refreshed'} {GOOGLE_CALENDAR} for user {user.id}")
    return connection


def disconnect(user: User) -> bool:
    """Drop the stored token. Returns True if a connection existed."""
    deleted, _ = CalendarConnection.objects.filter(user=user).delete()
    if deleted:
        logger.info(f"Disconnected {GOOGLE_CALENDAR} for user {user.id}")
    return bool(deleted)
