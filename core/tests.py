"""
Tests for Lynck Space calendar backend.
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone
import runpy
from io import StringIO
from unittest.mock import patch, MagicMock

import pytest
from django.contrib.auth.models import User
from django.conf import settings as django_settings
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from .models import (
    UserProfile,
    CalendarSyncSettings,
    CalendarEvent,
    Task,
    CalendarConnection,
)
from services.calendar_sync import CalendarSync, EventPayload, RemoteCalendar
from services.connectors import CalendarNotConnected, get_access_token
from services.google_calendar import GoogleCalendarClient, RemoteFetchError, RemotePushError
from services.task_calendar import TaskCalendarService
from utils.helpers import month_window, normalize_remote_times, parse_datetime_value

UTC = dt_timezone.utc
NOW = datetime(2024, 3, 15, 10, 30, tzinfo=UTC)


def _response(status_code=200, payload=None, text=''):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload if payload is not None else {}
    response.text = text
    return response


def _google_client(events=None):
    """Mocked GoogleCalendarClient returning sequential ids on insert."""
    client = MagicMock(spec=GoogleCalendarClient)
    client.list_events.return_value = events or []
    counter = iter(range(1, 1000))
    client.insert_event.side_effect = lambda calendar_id, body: {'id': f'created-{next(counter)}'}
    return client


def _remote_event(event_id, summary='Remote', updated='2024-03-04T00:00:00Z', **extra):
    event = {
        'id': event_id,
        'summary': summary,
        'start': {'dateTime': '2024-03-05T09:00:00Z'},
        'end': {'dateTime': '2024-03-05T09:15:00Z'},
        'updated': updated,
    }
    event.update(extra)
    return event


# ============== Helpers ==============

class MonthWindowTest(TestCase):
    """Tests for the reconciliation window."""

    def test_window_starts_at_first_instant_of_month(self):
        start, end = month_window(NOW, 3)
        self.assertEqual(start, datetime(2024, 3, 1, tzinfo=UTC))
        self.assertEqual(end, datetime(2024, 7, 1, tzinfo=UTC))

    def test_window_crosses_year_boundary(self):
        start, end = month_window(datetime(2024, 11, 30, 23, 0, tzinfo=UTC), 3)
        self.assertEqual(start, datetime(2024, 11, 1, tzinfo=UTC))
        self.assertEqual(end, datetime(2025, 3, 1, tzinfo=UTC))

    def test_naive_now_is_treated_as_utc(self):
        start, _ = month_window(datetime(2024, 1, 31, 12, 0), 3)
        self.assertEqual(start, datetime(2024, 1, 1, tzinfo=UTC))


class RemoteTimesTest(TestCase):
    """Tests for Google event time normalization."""

    def test_timed_event_keeps_datetimes(self):
        times = normalize_remote_times(_remote_event('g1'))
        self.assertEqual(times, ('2024-03-05T09:00:00Z', '2024-03-05T09:15:00Z'))

    def test_all_day_event_normalization(self):
        times = normalize_remote_times({
            'id': 'g2',
            'start': {'date': '2024-03-01'},
            'end': {'date': '2024-03-02'},
        })
        self.assertEqual(times, ('2024-03-01T00:00:00', '2024-03-02T23:59:59'))

    def test_missing_end_falls_back_to_start(self):
        times = normalize_remote_times({'id': 'g3', 'start': {'date': '2024-03-01'}})
        self.assertEqual(times, ('2024-03-01T00:00:00', '2024-03-01T00:00:00'))

    def test_event_without_start_is_skipped(self):
        self.assertIsNone(normalize_remote_times({'id': 'g4', 'start': {}}))

    def test_parse_naive_value_as_utc(self):
        self.assertEqual(
            parse_datetime_value('2024-03-01T00:00:00'),
            datetime(2024, 3, 1, tzinfo=UTC)
        )
        self.assertIsNone(parse_datetime_value(''))
        self.assertIsNone(parse_datetime_value('not a date'))


# ============== Google client ==============

class GoogleCalendarClientTest(TestCase):
    """Tests for the REST wrapper, with a mocked requests session."""

    def setUp(self):
        self.session = MagicMock()
        self.google = GoogleCalendarClient(
            'token-123',
            base_url='https://calendar.test/v3',
            session=self.session,
        )

    def test_list_events_sends_window_and_follows_pages(self):
        self.session.request.side_effect = [
            _response(payload={'items': [{'id': 'a'}], 'nextPageToken': 'p2'}),
            _response(payload={'items': [{'id': 'b'}]}),
        ]
        start, end = month_window(NOW, 3)

        events = self.google.list_events('primary', start, end)

        self.assertEqual([e['id'] for e in events], ['a', 'b'])
        method, url = self.session.request.call_args_list[0].args
        kwargs = self.session.request.call_args_list[0].kwargs
        self.assertEqual(method, 'GET')
        self.assertEqual(url, 'https://calendar.test/v3/calendars/primary/events')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer token-123')
        self.assertEqual(kwargs['params']['timeMin'], '2024-03-01T00:00:00Z')
        self.assertEqual(kwargs['params']['timeMax'], '2024-07-01T00:00:00Z')
        self.assertEqual(kwargs['params']['singleEvents'], 'true')
        self.assertEqual(kwargs['params']['orderBy'], 'startTime')
        self.assertEqual(self.session.request.call_args_list[1].kwargs['params']['pageToken'], 'p2')

    def test_calendar_id_is_url_encoded(self):
        self.session.request.return_value = _response(payload={'items': []})
        self.google.list_events('team@group.calendar.google.com', NOW, NOW)
        url = self.session.request.call_args.args[1]
        self.assertTrue(url.endswith('/calendars/team%40group.calendar.google.com/events'))

    def test_list_failure_raises_fetch_error(self):
        self.session.request.return_value = _response(403, text='forbidden')
        with self.assertRaises(RemoteFetchError) as ctx:
            self.google.list_calendars()
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.details, 'forbidden')

    def test_insert_failure_raises_push_error(self):
        self.session.request.return_value = _response(400, text='{"error": "bad"}')
        with self.assertRaises(RemotePushError) as ctx:
            self.google.insert_event('primary', {'summary': 'x'})
        self.assertEqual(ctx.exception.details, '{"error": "bad"}')

    def test_delete_missing_event_is_not_an_error(self):
        self.session.request.return_value = _response(410)
        self.assertFalse(self.google.delete_event('primary', 'gone'))


# ============== Connector ==============

class ConnectorTest(TestCase):
    """Tests for access token lookup."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')

    def test_missing_connection_raises(self):
        with self.assertRaises(CalendarNotConnected):
            get_access_token(self.user)

    def test_empty_token_raises(self):
        CalendarConnection.objects.create(user=self.user, access_token='')
        with self.assertRaises(CalendarNotConnected):
            get_access_token(self.user)

    def test_returns_stored_token(self):
        CalendarConnection.objects.create(user=self.user, access_token='abc')
        self.assertEqual(get_access_token(self.user), 'abc')


# ============== Calendar sync ==============

class CalendarSyncTest(TestCase):
    """Tests for the full synchronization pass."""

    def setUp(self):
        self.user = User.objects.create_user(
            username='testuser',
            password='testpass123'
        )

    def _settings(self, **kwargs):
        return CalendarSyncSettings.objects.create(user=self.user, **kwargs)

    def _local_event(self, title='Local', **kwargs):
        return CalendarEvent.objects.create(
            user=self.user,
            title=title,
            start_datetime=datetime(2024, 3, 10, 14, 0, tzinfo=UTC),
            end_datetime=datetime(2024, 3, 10, 15, 0, tzinfo=UTC),
            **kwargs
        )

    def test_resolve_settings_defaults(self):
        settings = CalendarSync(self.user, client=_google_client()).resolve_settings()
        self.assertFalse(settings.persisted)
        self.assertEqual(settings.direction, 'bidirectional')
        self.assertEqual(settings.conflict_resolution, 'newest_wins')
        self.assertEqual(settings.calendar_ids, ['primary'])

    def test_resolve_settings_empty_selection_falls_back_to_primary(self):
        self._settings(selected_calendars=[], sync_direction='import')
        settings = CalendarSync(self.user, client=_google_client()).resolve_settings()
        self.assertTrue(settings.persisted)
        self.assertEqual(settings.direction, 'import')
        self.assertEqual(settings.calendar_ids, ['primary'])

    def test_standup_scenario(self):
        self._settings(
            sync_direction='bidirectional',
            conflict_resolution='newest_wins',
            selected_calendars=['primary'],
        )
        client = _google_client([_remote_event('g1', summary='Standup')])

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual((result.imported, result.exported, result.updated), (1, 0, 0))
        event = CalendarEvent.objects.get(user=self.user)
        self.assertEqual(event.title, 'Standup')
        self.assertEqual(event.remote_event_id, 'g1')
        self.assertEqual(event.remote_calendar_id, 'primary')
        self.assertEqual(event.category, 'work')
        self.assertEqual(event.start_datetime, datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
        client.insert_event.assert_not_called()

    def test_import_is_idempotent(self):
        client = _google_client([_remote_event('g1', updated='2000-01-01T00:00:00Z')])
        sync = CalendarSync(self.user, client=client)

        first = sync.full_sync(now=NOW)
        second = sync.full_sync(now=NOW)

        self.assertEqual(first.imported, 1)
        self.assertEqual(second.imported, 0)
        self.assertEqual(CalendarEvent.objects.filter(remote_event_id='g1').count(), 1)

    def test_same_remote_id_twice_in_one_run_creates_one_row(self):
        client = _google_client([_remote_event('g1', updated='2000-01-01T00:00:00Z')])
        self._settings(selected_calendars=['primary', 'shared'])

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(result.imported, 1)
        self.assertEqual(CalendarEvent.objects.count(), 1)

    def test_all_day_event_import(self):
        client = _google_client([{
            'id': 'allday',
            'summary': 'Holiday',
            'start': {'date': '2024-03-01'},
            'end': {'date': '2024-03-02'},
        }])

        CalendarSync(self.user, client=client).full_sync(now=NOW)

        event = CalendarEvent.objects.get(remote_event_id='allday')
        self.assertEqual(event.start_datetime, datetime(2024, 3, 1, 0, 0, 0, tzinfo=UTC))
        self.assertEqual(event.end_datetime, datetime(2024, 3, 2, 23, 59, 59, tzinfo=UTC))

    def test_events_without_start_are_skipped(self):
        client = _google_client([{'id': 'nostart', 'summary': 'Broken', 'start': {}, 'end': {}}])
        result = CalendarSync(self.user, client=client).full_sync(now=NOW)
        self.assertEqual(result.imported, 0)
        self.assertFalse(CalendarEvent.objects.exists())

    def test_untitled_remote_event(self):
        event = _remote_event('g1')
        del event['summary']
        CalendarSync(self.user, client=_google_client([event])).full_sync(now=NOW)
        self.assertEqual(CalendarEvent.objects.get().title, 'Untitled Event')

    def _conflict_run(self, policy, remote_updated):
        self._settings(conflict_resolution=policy, sync_direction='import')
        local = self._local_event(
            title='Local title',
            category='personal',
            remote_event_id='g1',
            remote_calendar_id='primary',
        )
        client = _google_client([_remote_event('g1', summary='Remote title', updated=remote_updated)])
        result = CalendarSync(self.user, client=client).full_sync(now=NOW)
        local.refresh_from_db()
        return result, local

    def test_newest_wins_remote_newer(self):
        result, local = self._conflict_run('newest_wins', '2099-01-01T00:00:00Z')
        self.assertEqual(result.updated, 1)
        self.assertEqual(local.title, 'Remote title')
        self.assertEqual(local.start_datetime, datetime(2024, 3, 5, 9, 0, tzinfo=UTC))
        # Category is never touched by an update
        self.assertEqual(local.category, 'personal')

    def test_newest_wins_remote_older(self):
        result, local = self._conflict_run('newest_wins', '2000-01-01T00:00:00Z')
        self.assertEqual(result.updated, 0)
        self.assertEqual(local.title, 'Local title')

    def test_provider_wins_always_overwrites(self):
        result, local = self._conflict_run('provider_wins', '2000-01-01T00:00:00Z')
        self.assertEqual(result.updated, 1)
        self.assertEqual(local.title, 'Remote title')

    def test_local_wins_never_overwrites(self):
        result, local = self._conflict_run('local_wins', '2099-01-01T00:00:00Z')
        self.assertEqual(result.updated, 0)
        self.assertEqual(local.title, 'Local title')

    def test_export_is_idempotent(self):
        self._local_event(title='Unsynced')
        client = _google_client()
        sync = CalendarSync(self.user, client=client)

        first = sync.full_sync(now=NOW)
        second = sync.full_sync(now=NOW)

        self.assertEqual(first.exported, 1)
        self.assertEqual(second.exported, 0)
        self.assertEqual(client.insert_event.call_count, 1)
        event = CalendarEvent.objects.get(title='Unsynced')
        self.assertEqual(event.remote_event_id, 'created-1')
        self.assertEqual(event.remote_calendar_id, 'primary')

    def test_export_targets_first_selected_calendar(self):
        self._settings(selected_calendars=['work-cal', 'primary'])
        self._local_event()
        client = _google_client()

        CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(client.insert_event.call_args.args[0], 'work-cal')
        self.assertEqual(
            [call.args[0] for call in client.list_events.call_args_list],
            ['work-cal', 'primary']
        )

    def test_export_uses_profile_timezone(self):
        UserProfile.objects.filter(user=self.user).update(timezone='Europe/Paris')
        self._local_event()
        client = _google_client()

        CalendarSync(self.user, client=client).full_sync(now=NOW)

        body = client.insert_event.call_args.args[1]
        self.assertEqual(body['summary'], 'Local')
        self.assertEqual(body['start']['timeZone'], 'Europe/Paris')
        self.assertEqual(body['end']['timeZone'], 'Europe/Paris')

    def test_export_failure_skips_event(self):
        self._local_event(title='First')
        self._local_event(title='Second')
        client = _google_client()
        client.insert_event.side_effect = [
            RemotePushError('rejected', status_code=400, details='bad'),
            {'id': 'ok-1'},
        ]

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(result.exported, 1)
        self.assertEqual(CalendarEvent.objects.filter(remote_event_id__isnull=True).count(), 1)

    def test_failing_calendar_is_skipped(self):
        self._settings(selected_calendars=['broken', 'primary'])
        client = _google_client()

        def list_events(calendar_id, time_min, time_max):
            if calendar_id == 'broken':
                raise RemoteFetchError('not found', status_code=404, details='Not Found')
            return [_remote_event('g1')]

        client.list_events.side_effect = list_events

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(result.imported, 1)
        self.assertEqual(CalendarEvent.objects.get().remote_calendar_id, 'primary')

    def test_import_direction_never_pushes(self):
        self._settings(sync_direction='import')
        self._local_event(title='A')
        self._local_event(title='B')
        client = _google_client()

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(result.exported, 0)
        client.insert_event.assert_not_called()

    def test_export_direction_never_lists(self):
        self._settings(sync_direction='export')
        client = _google_client([_remote_event('g1')])

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(result.imported, 0)
        client.list_events.assert_not_called()

    def test_window_passed_to_provider(self):
        client = _google_client()
        CalendarSync(self.user, client=client).full_sync(now=NOW)
        _, time_min, time_max = client.list_events.call_args.args
        self.assertEqual(time_min, datetime(2024, 3, 1, tzinfo=UTC))
        self.assertEqual(time_max, datetime(2024, 7, 1, tzinfo=UTC))

    def test_event_starting_before_window_is_not_imported(self):
        # Overlaps the window by its end only
        early = _remote_event(
            'early',
            start={'dateTime': '2024-02-29T09:00:00Z'},
            end={'dateTime': '2024-03-02T17:00:00Z'},
        )
        # All-day event on the window's first day
        first_day = _remote_event('first-day', start={'date': '2024-03-01'}, end={'date': '2024-03-02'})
        client = _google_client([early, first_day])

        result = CalendarSync(self.user, client=client).full_sync(now=NOW)

        self.assertEqual(result.imported, 1)
        self.assertEqual(
            list(CalendarEvent.objects.values_list('remote_event_id', flat=True)),
            ['first-day']
        )

    def test_sync_summary_logs_previous_sync(self):
        settings = self._settings()
        with self.assertLogs('services.calendar_sync', 'INFO') as logs:
            CalendarSync(self.user, client=_google_client()).full_sync(now=NOW)
        self.assertIn('previous sync: never', logs.output[-1])

        with self.assertLogs('services.calendar_sync', 'INFO') as logs:
            CalendarSync(self.user, client=_google_client()).full_sync(now=NOW + timedelta(hours=1))
        self.assertIn(f'previous sync: {NOW.isoformat()}', logs.output[-1])
        settings.refresh_from_db()
        self.assertEqual(settings.last_sync_at, NOW + timedelta(hours=1))

    def test_last_sync_recorded_for_persisted_settings(self):
        settings = self._settings()
        CalendarSync(self.user, client=_google_client()).full_sync(now=NOW)
        settings.refresh_from_db()
        self.assertEqual(settings.last_sync_at, NOW)

    def test_no_settings_row_created_by_sync(self):
        CalendarSync(self.user, client=_google_client()).full_sync(now=NOW)
        self.assertFalse(CalendarSyncSettings.objects.exists())

    def test_unconnected_user_aborts_sync(self):
        with self.assertRaises(CalendarNotConnected):
            CalendarSync(self.user).full_sync(now=NOW)

    def test_push_event_links_local_event(self):
        local = self._local_event()
        client = _google_client()
        payload = EventPayload(
            id=local.id,
            title=local.title,
            description='',
            start_datetime=local.start_datetime,
            end_datetime=local.end_datetime,
        )

        remote_id = CalendarSync(self.user, client=client).push_event(payload, 'team')

        self.assertEqual(remote_id, 'created-1')
        local.refresh_from_db()
        self.assertEqual(local.remote_event_id, 'created-1')
        self.assertEqual(local.remote_calendar_id, 'team')

    def test_push_event_ignores_other_users_event(self):
        other = User.objects.create_user(username='other', password='testpass123')
        foreign = CalendarEvent.objects.create(
            user=other,
            title='Foreign',
            start_datetime=NOW,
            end_datetime=NOW,
        )
        payload = EventPayload(id=foreign.id, title='x', start_datetime=NOW, end_datetime=NOW)

        CalendarSync(self.user, client=_google_client()).push_event(payload)

        foreign.refresh_from_db()
        self.assertIsNone(foreign.remote_event_id)

    def test_list_calendars_normalizes(self):
        client = _google_client()
        client.list_calendars.return_value = [
            {'id': 'primary', 'summary': 'Me', 'primary': True, 'backgroundColor': '#3b82f6'},
            {'id': 'team', 'summary': 'Team'},
        ]

        calendars = CalendarSync(self.user, client=client).list_calendars()

        self.assertEqual(calendars[0], RemoteCalendar('primary', 'Me', True, '#3b82f6'))
        self.assertEqual(
            calendars[1].to_dict(),
            {'id': 'team', 'summary': 'Team', 'primary': False, 'backgroundColor': None}
        )


# ============== Task calendar ==============

class TaskCalendarServiceTest(TestCase):
    """Tests for task due-date mirroring."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.google = _google_client()
        self.service = TaskCalendarService(self.user, client=self.google)

    def test_create_builds_all_day_event(self):
        task = Task.objects.create(user=self.user, title='Report', due_date=date(2024, 3, 31))

        result = self.service.create(task)

        self.assertEqual(result, {'created': True, 'event_id': 'created-1'})
        body = self.google.insert_event.call_args.args[1]
        self.assertEqual(body['start'], {'date': '2024-03-31'})
        self.assertEqual(body['end'], {'date': '2024-04-01'})
        task.refresh_from_db()
        self.assertEqual(task.remote_event_id, 'created-1')

    def test_create_without_due_date_is_skipped(self):
        task = Task.objects.create(user=self.user, title='Someday')
        self.assertEqual(self.service.create(task), {'skipped': True})
        self.google.insert_event.assert_not_called()

    def test_update_without_link_is_an_error(self):
        task = Task.objects.create(user=self.user, title='Report', due_date=date(2024, 3, 31))
        self.assertEqual(self.service.update(task), {'error': 'No event ID'})

    def test_update_removed_due_date_deletes_event(self):
        task = Task.objects.create(user=self.user, title='Report', remote_event_id='ev1')

        self.assertEqual(self.service.update(task), {'deleted': True})

        self.google.delete_event.assert_called_once_with('primary', 'ev1')
        task.refresh_from_db()
        self.assertIsNone(task.remote_event_id)

    def test_update_of_vanished_event_unlinks_task(self):
        task = Task.objects.create(
            user=self.user, title='Report', due_date=date(2024, 3, 31), remote_event_id='ev1'
        )
        self.google.update_event.side_effect = RemotePushError('gone', status_code=404)

        self.assertEqual(self.service.update(task), {'warning': 'Event not found in calendar'})
        task.refresh_from_db()
        self.assertIsNone(task.remote_event_id)

    def test_push_pending_skips_linked_and_closed_tasks(self):
        Task.objects.create(user=self.user, title='Open', due_date=date(2024, 3, 20))
        Task.objects.create(user=self.user, title='Linked', due_date=date(2024, 3, 21), remote_event_id='x')
        Task.objects.create(user=self.user, title='Done', status='done', due_date=date(2024, 3, 22))
        Task.objects.create(user=self.user, title='Undated')

        self.assertEqual(self.service.push_pending(), {'synced': 1, 'total': 2})
        self.assertEqual(self.service.push_pending(), {'synced': 0, 'total': 2})


# ============== API ==============

@patch('services.calendar_sync.GoogleCalendarClient')
class CalendarSyncAPITest(APITestCase):
    """Tests for the sync entry point."""

    def setUp(self):
        self.user = User.objects.create_user(
            username='testuser',
            password='testpass123'
        )
        CalendarConnection.objects.create(user=self.user, access_token='token')
        self.client.force_authenticate(user=self.user)
        self.url = reverse('calendar-sync')

    def test_unauthenticated_is_rejected(self, client_cls):
        self.client.force_authenticate(user=None)
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        client_cls.assert_not_called()

    def test_list_calendars(self, client_cls):
        client_cls.return_value.list_calendars.return_value = [
            {'id': 'primary', 'summary': 'Me', 'primary': True, 'backgroundColor': '#fff'},
        ]
        response = self.client.post(self.url, {'action': 'listCalendars'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['calendars'], [
            {'id': 'primary', 'summary': 'Me', 'primary': True, 'backgroundColor': '#fff'},
        ])
        client_cls.assert_called_once_with('token')

    def test_list_calendars_failure(self, client_cls):
        client_cls.return_value.list_calendars.side_effect = RemoteFetchError(
            'Failed', status_code=401, details='invalid credentials'
        )
        response = self.client.post(self.url, {'action': 'listCalendars'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['details'], 'invalid credentials')

    def test_push_event(self, client_cls):
        client_cls.return_value.insert_event.return_value = {'id': 'g-new'}
        local = CalendarEvent.objects.create(
            user=self.user, title='Review', start_datetime=NOW, end_datetime=NOW + timedelta(hours=1)
        )
        data = {
            'action': 'pushEvent',
            'event': {
                'id': local.id,
                'title': 'Review',
                'description': 'Quarterly',
                'start_datetime': '2024-03-15T10:30:00Z',
                'end_datetime': '2024-03-15T11:30:00Z',
            },
            'calendarId': 'team',
        }
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True, 'google_event_id': 'g-new'})
        local.refresh_from_db()
        self.assertEqual(local.remote_event_id, 'g-new')
        calendar_id, body = client_cls.return_value.insert_event.call_args.args
        self.assertEqual(calendar_id, 'team')
        self.assertEqual(body['description'], 'Quarterly')

    def test_push_event_failure(self, client_cls):
        client_cls.return_value.insert_event.side_effect = RemotePushError(
            'Failed', status_code=400, details='{"error": "invalid"}'
        )
        data = {
            'action': 'pushEvent',
            'event': {
                'title': 'Review',
                'start_datetime': '2024-03-15T10:30:00Z',
                'end_datetime': '2024-03-15T11:30:00Z',
            },
        }
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn('error', response.data)
        self.assertEqual(response.data['details'], '{"error": "invalid"}')

    def test_push_event_requires_event(self, client_cls):
        response = self.client.post(self.url, {'action': 'pushEvent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_action(self, client_cls):
        response = self.client.post(self.url, {'action': 'dance'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_full_sync_is_default(self, client_cls):
        client_cls.return_value.list_events.return_value = [_remote_event('g1', summary='Standup')]
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['imported'], 1)
        self.assertEqual(response.data['exported'], 0)
        self.assertEqual(response.data['updated'], 0)
        self.assertIn('message', response.data)

    def test_not_connected(self, client_cls):
        CalendarConnection.objects.all().delete()
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Google Calendar not connected')

    def test_unexpected_error_is_500(self, client_cls):
        client_cls.return_value.list_events.side_effect = ValueError('malformed response')
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'malformed response'})


class CalendarSettingsAPITest(APITestCase):
    """Tests for sync settings endpoints."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.client.force_authenticate(user=self.user)
        self.url = reverse('calendar-settings')

    def test_get_defaults(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sync_direction'], 'bidirectional')
        self.assertEqual(response.data['conflict_resolution'], 'newest_wins')
        self.assertEqual(response.data['selected_calendars'], ['primary'])
        self.assertFalse(CalendarSyncSettings.objects.exists())

    def test_patch_creates_settings(self):
        data = {'sync_direction': 'import', 'selected_calendars': ['primary', 'team']}
        response = self.client.patch(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        settings = CalendarSyncSettings.objects.get(user=self.user)
        self.assertEqual(settings.sync_direction, 'import')
        self.assertEqual(settings.selected_calendars, ['primary', 'team'])

    def test_invalid_conflict_policy(self):
        response = self.client.patch(self.url, {'conflict_resolution': 'coin_flip'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('conflict_resolution', response.data)
        self.assertFalse(CalendarSyncSettings.objects.exists())

    def test_invalid_patch_leaves_existing_settings(self):
        CalendarSyncSettings.objects.create(user=self.user, conflict_resolution='local_wins')
        response = self.client.patch(self.url, {'conflict_resolution': 'coin_flip'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        settings = CalendarSyncSettings.objects.get(user=self.user)
        self.assertEqual(settings.conflict_resolution, 'local_wins')


class CalendarEventAPITest(APITestCase):
    """Tests for local calendar events."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.client.force_authenticate(user=self.user)

    def test_create_event(self):
        url = reverse('calendar-event-list')
        data = {
            'title': 'Planning',
            'start_datetime': '2024-03-15T10:00:00Z',
            'end_datetime': '2024-03-15T11:00:00Z',
        }
        response = self.client.post(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['remote_event_id'])
        self.assertEqual(CalendarEvent.objects.get().user, self.user)

    def test_end_before_start_rejected(self):
        url = reverse('calendar-event-list')
        data = {
            'title': 'Backwards',
            'start_datetime': '2024-03-15T10:00:00Z',
            'end_datetime': '2024-03-15T09:00:00Z',
        }
        response = self.client.post(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_only_own_unsynced(self):
        other = User.objects.create_user(username='other', password='testpass123')
        CalendarEvent.objects.create(user=self.user, title='Mine', start_datetime=NOW, end_datetime=NOW)
        CalendarEvent.objects.create(
            user=self.user, title='Synced', start_datetime=NOW, end_datetime=NOW, remote_event_id='g1'
        )
        CalendarEvent.objects.create(user=other, title='Theirs', start_datetime=NOW, end_datetime=NOW)

        response = self.client.get(reverse('calendar-event-list') + '?unsynced=true')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([e['title'] for e in response.data['results']], ['Mine'])


@patch('services.task_calendar.GoogleCalendarClient')
class TaskCalendarAPITest(APITestCase):
    """Tests for task calendar actions."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        CalendarConnection.objects.create(user=self.user, access_token='token')
        self.client.force_authenticate(user=self.user)

    def test_create_task_event(self, client_cls):
        client_cls.return_value.insert_event.return_value = {'id': 'ev-1'}
        task = Task.objects.create(user=self.user, title='Report', due_date=date(2024, 3, 31))

        url = reverse('task-calendar', kwargs={'pk': task.id})
        response = self.client.post(url, {'action': 'create'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'created': True, 'event_id': 'ev-1'})

    def test_update_unlinked_task(self, client_cls):
        task = Task.objects.create(user=self.user, title='Report', due_date=date(2024, 3, 31))
        url = reverse('task-calendar', kwargs={'pk': task.id})
        response = self.client.post(url, {'action': 'update'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_google_failure(self, client_cls):
        client_cls.return_value.insert_event.side_effect = RemotePushError(
            'Failed', status_code=500, details='backend error'
        )
        task = Task.objects.create(user=self.user, title='Report', due_date=date(2024, 3, 31))
        url = reverse('task-calendar', kwargs={'pk': task.id})
        response = self.client.post(url, {'action': 'create'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['details'], 'backend error')

    def test_push_calendar(self, client_cls):
        client_cls.return_value.insert_event.return_value = {'id': 'ev-1'}
        Task.objects.create(user=self.user, title='Report', due_date=date(2024, 3, 31))
        response = self.client.post(reverse('task-push-calendar'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'synced': 1, 'total': 1})


class GunicornConfigTest(TestCase):
    """Tests for the deployment server configuration."""

    def _load(self, **env):
        with patch.dict('os.environ', env):
            return runpy.run_path(str(django_settings.BASE_DIR / 'gunicorn.conf.py'))

    def test_gevent_workers_with_sync_timeout(self):
        config = self._load()
        self.assertEqual(config['worker_class'], 'gevent')
        self.assertEqual(config['timeout'], 180)
        self.assertTrue(callable(config['post_fork']))
        self.assertNotIn('max_requests', config)
        self.assertNotIn('limit_request_line', config)

    def test_environment_overrides(self):
        config = self._load(GUNICORN_WORKERS='3', GUNICORN_TIMEOUT='60', LOG_LEVEL='DEBUG')
        self.assertEqual(config['workers'], 3)
        self.assertEqual(config['timeout'], 60)
        self.assertEqual(config['loglevel'], 'debug')


class HealthCheckTest(APITestCase):
    """Tests for health check endpoint."""

    def test_health_check(self):
        """Test health check returns healthy status."""
        url = reverse('health_check')
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'healthy')


# ============== Management command ==============

@patch('services.calendar_sync.GoogleCalendarClient')
class SyncCalendarsCommandTest(TestCase):
    """Tests for the scheduled sync command."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        CalendarConnection.objects.create(user=self.user, access_token='token')

    def _run(self, *args):
        out = StringIO()
        call_command('sync_calendars', *args, stdout=out)
        return out.getvalue()

    def test_due_hourly_sync_runs(self, client_cls):
        client_cls.return_value.list_events.return_value = []
        settings = CalendarSyncSettings.objects.create(user=self.user, sync_frequency='hourly')

        output = self._run()

        self.assertIn('1 synced', output)
        settings.refresh_from_db()
        self.assertIsNotNone(settings.last_sync_at)

    def test_recent_sync_is_not_due(self, client_cls):
        CalendarSyncSettings.objects.create(
            user=self.user,
            sync_frequency='daily',
            last_sync_at=timezone.now() - timedelta(hours=2),
        )
        output = self._run()
        self.assertIn('0 synced', output)
        client_cls.assert_not_called()

    def test_manual_only_with_force(self, client_cls):
        client_cls.return_value.list_events.return_value = []
        CalendarSyncSettings.objects.create(user=self.user, sync_frequency='manual')

        self.assertIn('0 synced', self._run())
        self.assertIn('1 synced', self._run('--force'))

    def test_disabled_settings_are_ignored(self, client_cls):
        CalendarSyncSettings.objects.create(user=self.user, sync_frequency='hourly', enabled=False)
        self.assertIn('0 synced', self._run('--force'))


# ============== Fixture-based tests ==============

@pytest.mark.django_db
def test_connection_endpoint_stores_and_drops_token(authenticated_client, user):
    url = reverse('calendar-connection')

    response = authenticated_client.put(url, {'access_token': 'ya29.token'}, format='json')
    assert response.status_code == status.HTTP_200_OK
    assert response.data['connected'] is True
    assert 'access_token' not in response.data
    assert get_access_token(user) == 'ya29.token'

    response = authenticated_client.delete(url)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert not CalendarConnection.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_profile_timezone_update(authenticated_client, user):
    response = authenticated_client.patch(reverse('profile'), {'timezone': 'America/Montreal'}, format='json')
    assert response.status_code == status.HTTP_200_OK
    user.profile.refresh_from_db()
    assert user.profile.timezone == 'America/Montreal'


@pytest.mark.django_db
def test_profile_rejects_unknown_timezone(authenticated_client, user):
    response = authenticated_client.patch(reverse('profile'), {'timezone': 'Not/AZone'}, format='json')
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert 'timezone' in response.data
    user.profile.refresh_from_db()
    assert user.profile.timezone == 'UTC'


@pytest.mark.django_db
def test_sync_endpoint_with_jwt(authenticated_client, connected_user):
    with patch('services.calendar_sync.GoogleCalendarClient') as client_cls:
        client_cls.return_value.list_events.return_value = []
        response = authenticated_client.post(reverse('calendar-sync'), {'action': 'sync'}, format='json')
    assert response.status_code == status.HTTP_200_OK
    assert response.data['imported'] == 0
