"""
Management command to run Google Calendar syncs that are due.

Meant to be triggered by cron; each run only syncs users whose
frequency interval has elapsed.
"""
import logging
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from core.models import CalendarSyncSettings
from services import CalendarSync
from services.connectors import CalendarNotConnected

logger = logging.getLogger(__name__)

FREQUENCY_INTERVALS = {
    'hourly': timedelta(hours=1),
    'daily': timedelta(days=1),
}


def is_due(settings: CalendarSyncSettings, now) -> bool:
    """Whether a scheduled sync should run for these settings."""
    interval = FREQUENCY_INTERVALS.get(settings.sync_frequency)
    if not settings.enabled or interval is None:
        return False
    return settings.last_sync_at is None or now - settings.last_sync_at >= interval


class Command(BaseCommand):
    help = 'Run scheduled Google Calendar syncs for users whose sync is due'

    def add_arguments(self, parser):
        parser.add_argument(
            '--username',
            type=str,
            default=None,
            help='Only sync this user'
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Ignore sync frequency and last sync time'
        )

    def handle(self, *args, **options):
        username = options['username']
        force = options['force']
        now = timezone.now()

        queryset = CalendarSyncSettings.objects.select_related('user').filter(enabled=True)
        if username:
            queryset = queryset.filter(user__username=username)
            if not queryset.exists():
                raise CommandError(f'No enabled sync settings for user "{username}"')

        synced = 0
        failed = 0
        for settings in queryset:
            if not force and not is_due(settings, now):
                continue

            user = settings.user
            try:
                result = CalendarSync(user).full_sync(now=now)
            except CalendarNotConnected:
                self.stdout.write(self.style.WARNING(f'{user.username}: Google Calendar not connected'))
                failed += 1
                continue
            except Exception as e:
                logger.exception(f"Scheduled sync failed for user {user.id}: {e}")
                self.stdout.write(self.style.ERROR(f'{user.username}: {e}'))
                failed += 1
                continue

            synced += 1
            self.stdout.write(f'{user.username}: {result.message}')

        self.stdout.write(self.style.SUCCESS(f'Done: {synced} synced, {failed} failed'))
