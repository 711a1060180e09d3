"""
Mirrors task due dates into Google Calendar as all-day events.
"""
import logging
from typing import Optional

from django.contrib.auth.models import User

from core.models import Task
from services.connectors import get_access_token
from services.google_calendar import GoogleCalendarClient, RemotePushError
from utils.helpers import coerce_date, next_day

logger = logging.getLogger(__name__)

TASK_CALENDAR_ID = 'primary'


class TaskCalendarService:
    """Create, update and delete the calendar event linked to a task."""

    def __init__(self, user: User, client: Optional[GoogleCalendarClient] = None):
        self.user = user
        self._client = client

    @property
    def client(self) -> GoogleCalendarClient:
        if self._client is None:
            self._client = GoogleCalendarClient(get_access_token(self.user))
        return self._client

    @staticmethod
    def _build_body(task: Task) -> dict:
        due = coerce_date(task.due_date)
        # Google treats the end date of all-day events as exclusive
        return {
            'summary': task.title,
            'description': task.description or '',
            'start': {'date': due.isoformat()},
            'end': {'date': next_day(due).isoformat()},
        }

    def _unlink(self, task: Task) -> None:
        task.remote_event_id = None
        task.save(update_fields=['remote_event_id', 'updated_at'])

    def create(self, task: Task) -> dict:
        """Create the all-day event for a task's due date."""
        if not task.due_date:
            return {'skipped': True}

        data = self.client.insert_event(TASK_CALENDAR_ID, self._build_body(task))
        task.remote_event_id = data['id']
        task.save(update_fields=['remote_event_id', 'updated_at'])
        logger.info(f"Linked task {task.id} to calendar event {data['id']}")
        return {'created': True, 'event_id': data['id']}

    def update(self, task: Task) -> dict:
        """
        Bring the linked event in line with the task.

        A task whose due date was removed loses its event. An event deleted
        on the Google side is unlinked and reported as a warning.
        """
        if not task.remote_event_id:
            return {'error': 'No event ID'}

        if not task.due_date:
            self.client.delete_event(TASK_CALENDAR_ID, task.remote_event_id)
            self._unlink(task)
            return {'deleted': True}

        try:
            self.client.update_event(TASK_CALENDAR_ID, task.remote_event_id, self._build_body(task))
        except RemotePushError as e:
            if e.status_code == 404:
                logger.warning(f"Calendar event {task.remote_event_id} of task {task.id} no longer exists")
                self._unlink(task)
                return {'warning': 'Event not found in calendar'}
            raise
        return {'updated': True}

    def delete(self, task: Task) -> dict:
        """Remove the linked event, if any."""
        if task.remote_event_id:
            self.client.delete_event(TASK_CALENDAR_ID, task.remote_event_id)
            self._unlink(task)
        return {'deleted': True}

    def push_pending(self) -> dict:
        """
        Create events for every open task with a due date and no linked event.

        Returns:
            dict with 'synced' (events created) and 'total' (dated open tasks)
        """
        tasks = list(Task.objects.filter(user=self.user, status='todo', due_date__isnull=False))
        synced = 0
        for task in tasks:
            if task.remote_event_id:
                continue
            try:
                self.create(task)
            except RemotePushError as e:
                logger.warning(f"Could not push task {task.id}: {e} ({e.status_code})")
                continue
            synced += 1
        return {'synced': synced, 'total': len(tasks)}
