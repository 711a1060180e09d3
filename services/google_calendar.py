"""
Google Calendar v3 REST client.

Handles:
- Calendar list retrieval
- Windowed event listing (recurring events expanded into instances)
- Event insert / update / delete

Every call is a plain bearer-token request through `requests`. Failures
never retry: non-2xx responses raise RemoteFetchError (reads) or
RemotePushError (writes) with the provider's error body attached.
"""
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import requests
from django.conf import settings

from utils.helpers import to_rfc3339

logger = logging.getLogger(__name__)


class GoogleCalendarError(Exception):
    """Non-success response from the Google Calendar API."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class RemoteFetchError(GoogleCalendarError):
    """A list/read endpoint answered with a non-success status."""


class RemotePushError(GoogleCalendarError):
    """A create/update/delete endpoint answered with a non-success status."""


class GoogleCalendarClient:
    """Thin wrapper around the Google Calendar REST API for one access token."""

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            access_token: OAuth bearer token obtained from the connector
            base_url: API root, defaults to settings.GOOGLE_CALENDAR_API_BASE
            timeout: Per-request timeout in seconds, defaults to
                settings.GOOGLE_CALENDAR_TIMEOUT (None means no timeout)
            session: Optional requests session (injected in tests)
        """
        self.access_token = access_token
        self.base_url = (base_url or settings.GOOGLE_CALENDAR_API_BASE).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.GOOGLE_CALENDAR_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = kwargs.pop('headers', {})
        headers['Authorization'] = f'Bearer {self.access_token}'
        if 'json' in kwargs:
            headers['Content-Type'] = 'application/json'
        return self.session.request(
            method,
            f'{self.base_url}{path}',
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )

    @staticmethod
    def _events_path(calendar_id: str, event_id: Optional[str] = None) -> str:
        path = f'/calendars/{quote(calendar_id, safe="")}/events'
        if event_id:
            path += f'/{quote(event_id, safe="")}'
        return path

    def _get_paged(self, path: str, params: dict, what: str) -> list:
        items = []
        params = dict(params)
        while True:
            response = self._request('GET', path, params=params)
            if not response.ok:
                raise RemoteFetchError(
                    f"Failed to fetch {what}",
                    status_code=response.status_code,
                    details=response.text,
                )
            data = response.json()
            items.extend(data.get('items') or [])
            page_token = data.get('nextPageToken')
            if not page_token:
                return items
            params['pageToken'] = page_token

    def list_calendars(self) -> list:
        """Return the raw calendarList entries visible to the token."""
        return self._get_paged('/users/me/calendarList', {}, 'Google calendars')

    def list_events(self, calendar_id: str, time_min: datetime, time_max: datetime) -> list:
        """
        List events of one calendar inside [time_min, time_max).

        Recurring events are expanded into single occurrences and results
        are ordered by start time.
        """
        params = {
            'timeMin': to_rfc3339(time_min),
            'timeMax': to_rfc3339(time_max),
            'singleEvents': 'true',
            'orderBy': 'startTime',
        }
        return self._get_paged(
            self._events_path(calendar_id),
            params,
            f'events of calendar {calendar_id}',
        )

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        """Create an event and return the created resource."""
        response = self._request('POST', self._events_path(calendar_id), json=body)
        if not response.ok:
            raise RemotePushError(
                f"Failed to create event in calendar {calendar_id}",
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()

    def update_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        """Replace an existing event and return the updated resource."""
        response = self._request('PUT', self._events_path(calendar_id, event_id), json=body)
        if not response.ok:
            raise RemotePushError(
                f"Failed to update event {event_id}",
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """
        Delete an event.

        Returns:
            bool: False when the event was already gone (404/410)
        """
        response = self._request('DELETE', self._events_path(calendar_id, event_id))
        if response.status_code in (404, 410):
            logger.info(f"Event {event_id} already removed from calendar {calendar_id}")
            return False
        if not response.ok:
            raise RemotePushError(
                f"Failed to delete event {event_id}",
                status_code=response.status_code,
                details=response.text,
            )
        return True
