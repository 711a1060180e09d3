"""
Services package for Lynck Space calendar backend.

Architecture:
- CalendarSync: settings resolution, calendar listing, event push, full sync
- TaskCalendarService: task due dates mirrored as all-day events

Infrastructure:
- GoogleCalendarClient: Google Calendar v3 REST wrapper (requests)
- CalendarStore / DjangoCalendarStore: local storage seam used by the sync
- connectors: access token handed over by the OAuth connector
"""
from .google_calendar import (
    GoogleCalendarClient,
    GoogleCalendarError,
    RemoteFetchError,
    RemotePushError,
)
from .connectors import CalendarNotConnected
from .calendar_store import CalendarStore, DjangoCalendarStore
from .calendar_sync import CalendarSync, SyncResult, SyncSettings
from .task_calendar import TaskCalendarService

__all__ = [
    # Core services
    'CalendarSync',
    'TaskCalendarService',
    # Results
    'SyncResult',
    'SyncSettings',
    # Infrastructure
    'GoogleCalendarClient',
    'CalendarStore',
    'DjangoCalendarStore',
    # Errors
    'GoogleCalendarError',
    'RemoteFetchError',
    'RemotePushError',
    'CalendarNotConnected',
]
