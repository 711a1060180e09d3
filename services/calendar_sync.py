"""
Google Calendar synchronization service.

Handles:
- Sync settings resolution (persisted row or defaults)
- Remote calendar listing
- Single event push
- Full bidirectional sync (import, conflict resolution, export, bookkeeping)

A full sync is one sequential pass: settings, then a single snapshot of
the user's local events, then per-calendar import, then export of every
local event that has no remote identifier yet. Failures for one calendar
or one exported event are logged and skipped; anything else propagates and
leaves already-written rows in place.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from django.conf import settings as django_settings
from django.contrib.auth.models import User
from django.utils import timezone

from core.models import CalendarEvent, CalendarSyncSettings
from services.calendar_store import CalendarStore, DjangoCalendarStore
from services.connectors import get_access_token
from services.google_calendar import GoogleCalendarClient, RemoteFetchError, RemotePushError
from utils.helpers import month_window, normalize_remote_times, parse_datetime_value

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = 'primary'
IMPORTED_EVENT_CATEGORY = 'work'
UNTITLED_EVENT = 'Untitled Event'


@dataclass
class SyncSettings:
    """Effective sync configuration for one run."""
    direction: str = CalendarSyncSettings.DIRECTION_BIDIRECTIONAL
    conflict_resolution: str = CalendarSyncSettings.CONFLICT_NEWEST_WINS
    selected_calendars: list = field(default_factory=lambda: [DEFAULT_CALENDAR_ID])
    last_sync_at: Optional[datetime] = None
    record: Optional[CalendarSyncSettings] = None  # persisted row, if any

    @property
    def persisted(self) -> bool:
        return self.record is not None

    @property
    def calendar_ids(self) -> list:
        return list(self.selected_calendars) or [DEFAULT_CALENDAR_ID]

    @property
    def imports(self) -> bool:
        return self.direction != CalendarSyncSettings.DIRECTION_EXPORT

    @property
    def exports(self) -> bool:
        return self.direction != CalendarSyncSettings.DIRECTION_IMPORT


@dataclass
class RemoteCalendar:
    """Normalized calendarList entry."""
    id: str
    summary: str
    primary: bool = False
    background_color: Optional[str] = None

    @classmethod
    def from_resource(cls, item: dict) -> 'RemoteCalendar':
        return cls(
            id=item['id'],
            summary=item.get('summaryOverride') or item.get('summary') or item['id'],
            primary=bool(item.get('primary', False)),
            background_color=item.get('backgroundColor'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'summary': self.summary,
            'primary': self.primary,
            'backgroundColor': self.background_color,
        }


@dataclass
class EventPayload:
    """Local event data to push to Google Calendar."""
    title: str
    start_datetime: datetime
    end_datetime: datetime
    description: str = ""
    id: Optional[int] = None


@dataclass
class SyncResult:
    """Counters returned by a full sync."""
    imported: int = 0
    exported: int = 0
    updated: int = 0

    @property
    def message(self) -> str:
        return (
            f"Synced with Google Calendar: {self.imported} imported, "
            f"{self.updated} updated, {self.exported} exported"
        )

    def to_dict(self) -> dict:
        return {
            'imported': self.imported,
            'exported': self.exported,
            'updated': self.updated,
            'message': self.message,
        }


# Requests accepted by the sync endpoint
@dataclass
class ListCalendarsRequest:
    pass


@dataclass
class PushEventRequest:
    event: EventPayload
    calendar_id: str = DEFAULT_CALENDAR_ID


@dataclass
class FullSyncRequest:
    pass


SyncRequest = Union[ListCalendarsRequest, PushEventRequest, FullSyncRequest]


class CalendarSync:
    """
    Synchronizes a user's local calendar events with Google Calendar.

    The Google client is created lazily from the connector token unless one
    is injected.
    """

    def __init__(
        self,
        user: User,
        client: Optional[GoogleCalendarClient] = None,
        store: Optional[CalendarStore] = None,
    ):
        self.user = user
        self.store = store or DjangoCalendarStore()
        self._client = client

    @property
    def client(self) -> GoogleCalendarClient:
        if self._client is None:
            self._client = GoogleCalendarClient(get_access_token(self.user))
        return self._client

    # ============== Settings ==============

    def resolve_settings(self) -> SyncSettings:
        """Return the user's sync settings, falling back to defaults."""
        record = self.store.get_settings(self.user)
        if record is None:
            return SyncSettings()
        return SyncSettings(
            direction=record.sync_direction or CalendarSyncSettings.DIRECTION_BIDIRECTIONAL,
            conflict_resolution=record.conflict_resolution or CalendarSyncSettings.CONFLICT_NEWEST_WINS,
            selected_calendars=list(record.selected_calendars or []),
            last_sync_at=record.last_sync_at,
            record=record,
        )

    # ============== Single operations ==============

    def list_calendars(self) -> list:
        """
        List the calendars visible to the user's Google account.

        Raises:
            RemoteFetchError: when Google answers with a non-success status
        """
        return [RemoteCalendar.from_resource(item) for item in self.client.list_calendars()]

    def push_event(self, payload: EventPayload, calendar_id: str = DEFAULT_CALENDAR_ID) -> str:
        """
        Create one event in Google Calendar.

        If the payload refers to a local event owned by the user, that event
        is linked to the created remote event.

        Args:
            payload: Event data
            calendar_id: Target Google calendar

        Returns:
            str: The Google event id

        Raises:
            RemotePushError: when Google rejects the event
        """
        calendar_id = calendar_id or DEFAULT_CALENDAR_ID
        body = self._build_remote_body(
            payload.title,
            payload.description,
            payload.start_datetime,
            payload.end_datetime,
        )
        created = self.client.insert_event(calendar_id, body)
        remote_id = created['id']

        if payload.id is not None:
            event = self.store.get_event(self.user, payload.id)
            if event is not None:
                self.store.link_remote(event, remote_id, calendar_id)
            else:
                logger.warning(f"Pushed event references unknown local event {payload.id}")

        logger.info(f"Pushed event {remote_id} to calendar {calendar_id} for user {self.user.id}")
        return remote_id

    # ============== Full sync ==============

    def full_sync(self, now: Optional[datetime] = None) -> SyncResult:
        """
        Run one full synchronization pass.

        Args:
            now: Reference instant for the reconciliation window and
                last_sync_at (defaults to the current time)

        Returns:
            SyncResult with imported/exported/updated counters
        """
        now = now or timezone.now()
        settings = self.resolve_settings()
        client = self.client

        time_min, time_max = month_window(now, django_settings.CALENDAR_SYNC_WINDOW_MONTHS)
        calendar_ids = settings.calendar_ids

        local_events = self.store.list_events(self.user)
        by_remote_id = {
            event.remote_event_id: event
            for event in local_events
            if event.remote_event_id
        }

        result = SyncResult()

        if settings.imports:
            for calendar_id in calendar_ids:
                self._import_calendar(
                    client, calendar_id, time_min, time_max,
                    by_remote_id, settings.conflict_resolution, result,
                )

        if settings.exports:
            self._export_events(client, local_events, calendar_ids[0], result)

        if settings.persisted:
            self.store.mark_synced(settings.record, now)

        logger.info(
            f"Calendar sync for user {self.user.id} ({settings.direction}): "
            f"imported={result.imported} updated={result.updated} exported={result.exported} "
            f"(previous sync: {settings.last_sync_at.isoformat() if settings.last_sync_at else 'never'})"
        )
        return result

    def _import_calendar(
        self,
        client: GoogleCalendarClient,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        by_remote_id: dict,
        policy: str,
        result: SyncResult,
    ) -> None:
        try:
            remote_events = client.list_events(calendar_id, time_min, time_max)
        except RemoteFetchError as e:
            logger.warning(f"Skipping calendar {calendar_id}: {e} ({e.status_code})")
            return

        for remote in remote_events:
            times = normalize_remote_times(remote)
            if times is None:
                continue
            start = parse_datetime_value(times[0])
            end = parse_datetime_value(times[1])
            if start is None or end is None:
                logger.warning(f"Skipping event {remote.get('id')} with unreadable times {times}")
                continue
            # timeMin filters on end time; events must also start inside the window
            if start < time_min:
                continue
            fields = {
                'title': remote.get('summary') or UNTITLED_EVENT,
                'description': remote.get('description') or '',
                'start_datetime': start,
                'end_datetime': end,
            }

            local = by_remote_id.get(remote['id'])
            if local is None:
                created = self.store.create_event(
                    self.user,
                    category=IMPORTED_EVENT_CATEGORY,
                    remote_event_id=remote['id'],
                    remote_calendar_id=calendar_id,
                    **fields,
                )
                # Later occurrences of the same id in this run match this row
                by_remote_id[remote['id']] = created
                result.imported += 1
            elif self._remote_wins(policy, remote, local):
                self.store.update_event(local, **fields)
                result.updated += 1

    @staticmethod
    def _remote_wins(policy: str, remote: dict, local: CalendarEvent) -> bool:
        """Decide whether the remote version overwrites the matched local event."""
        if policy == CalendarSyncSettings.CONFLICT_PROVIDER_WINS:
            return True
        if policy == CalendarSyncSettings.CONFLICT_NEWEST_WINS:
            remote_updated = parse_datetime_value(remote.get('updated'))
            local_updated = local.updated_at
            if remote_updated is None or local_updated is None:
                return False
            return remote_updated > local_updated
        return False

    def _export_events(
        self,
        client: GoogleCalendarClient,
        local_events: list,
        calendar_id: str,
        result: SyncResult,
    ) -> None:
        for event in local_events:
            if event.remote_event_id:
                continue
            body = self._build_remote_body(
                event.title,
                event.description,
                event.start_datetime,
                event.end_datetime,
            )
            try:
                created = client.insert_event(calendar_id, body)
            except RemotePushError as e:
                logger.warning(f"Could not export event {event.id}: {e} ({e.status_code})")
                continue
            self.store.link_remote(event, created['id'], calendar_id)
            result.exported += 1

    def _build_remote_body(self, title: str, description: str, start: datetime, end: datetime) -> dict:
        tz_name = self.store.get_timezone(self.user)
        return {
            'summary': title,
            'description': description or '',
            'start': {'dateTime': start.isoformat(), 'timeZone': tz_name},
            'end': {'dateTime': end.isoformat(), 'timeZone': tz_name},
        }
