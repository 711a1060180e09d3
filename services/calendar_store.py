"""
Local storage interface used by the calendar sync.

CalendarSync only talks to the store through this interface, so it can run
against the Django ORM in production and against any other implementation
in tests.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from django.contrib.auth.models import User

from core.models import CalendarEvent, CalendarSyncSettings, UserProfile


class CalendarStore(ABC):
    """Per-entity operations needed by the sync routine."""

    @abstractmethod
    def get_settings(self, user: User) -> Optional[CalendarSyncSettings]:
        """Return the user's persisted sync settings, or None."""
        pass

    @abstractmethod
    def mark_synced(self, settings: CalendarSyncSettings, when: datetime) -> None:
        """Record the end of a sync run on a persisted settings row."""
        pass

    @abstractmethod
    def get_timezone(self, user: User) -> str:
        """Return the IANA timezone used for events pushed on behalf of the user."""
        pass

    @abstractmethod
    def list_events(self, user: User) -> list:
        """Return every local event owned by the user."""
        pass

    @abstractmethod
    def get_event(self, user: User, event_id) -> Optional[CalendarEvent]:
        """Return one of the user's events by local id, or None."""
        pass

    @abstractmethod
    def create_event(self, user: User, **fields) -> CalendarEvent:
        """Create a local event owned by the user."""
        pass

    @abstractmethod
    def update_event(self, event: CalendarEvent, **fields) -> CalendarEvent:
        """Overwrite the given fields of a local event."""
        pass

    @abstractmethod
    def link_remote(self, event: CalendarEvent, remote_event_id: str, remote_calendar_id: str) -> None:
        """Attach the remote identifiers returned by the provider to a local event."""
        pass


class DjangoCalendarStore(CalendarStore):
    """CalendarStore backed by the Django ORM."""

    def get_settings(self, user):
        return CalendarSyncSettings.objects.filter(user=user).first()

    def mark_synced(self, settings, when):
        settings.last_sync_at = when
        settings.save(update_fields=['last_sync_at', 'updated_at'])

    def get_timezone(self, user):
        profile = UserProfile.objects.filter(user=user).first()
        return (profile.timezone if profile else '') or 'UTC'

    def list_events(self, user):
        return list(CalendarEvent.objects.filter(user=user))

    def get_event(self, user, event_id):
        return CalendarEvent.objects.filter(user=user, pk=event_id).first()

    def create_event(self, user, **fields):
        return CalendarEvent.objects.create(user=user, **fields)

    def update_event(self, event, **fields):
        for name, value in fields.items():
            setattr(event, name, value)
        event.save(update_fields=[*fields.keys(), 'updated_at'])
        return event

    def link_remote(self, event, remote_event_id, remote_calendar_id):
        event.remote_event_id = remote_event_id
        event.remote_calendar_id = remote_calendar_id
        event.save(update_fields=['remote_event_id', 'remote_calendar_id', 'updated_at'])
