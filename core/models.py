"""
Models for Lynck Space calendar backend.
"""
from django.db import models
from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver


class UserProfile(models.Model):
    """Extended user profile with calendar preferences."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    timezone = models.CharField(max_length=64, default='UTC')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Profile of {self.user.username}"

    class Meta:
        verbose_name = "User profile"
        verbose_name_plural = "User profiles"


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """Create a UserProfile when a User is created."""
    if created:
        UserProfile.objects.create(user=instance)


@receiver(post_save, sender=User)
def save_user_profile(sender, instance, **kwargs):
    """Save the UserProfile when the User is saved."""
    if hasattr(instance, 'profile'):
        instance.profile.save()


def default_selected_calendars():
    return ['primary']


class CalendarSyncSettings(models.Model):
    """Per-user Google Calendar synchronization settings."""

    DIRECTION_IMPORT = 'import'
    DIRECTION_EXPORT = 'export'
    DIRECTION_BIDIRECTIONAL = 'bidirectional'

    DIRECTION_CHOICES = [
        (DIRECTION_BIDIRECTIONAL, 'Bidirectional'),
        (DIRECTION_IMPORT, 'Import only (Google → Lynck)'),
        (DIRECTION_EXPORT, 'Export only (Lynck → Google)'),
    ]

    CONFLICT_NEWEST_WINS = 'newest_wins'
    CONFLICT_PROVIDER_WINS = 'provider_wins'
    CONFLICT_LOCAL_WINS = 'local_wins'

    CONFLICT_CHOICES = [
        (CONFLICT_NEWEST_WINS, 'Newest wins'),
        (CONFLICT_PROVIDER_WINS, 'Google always wins'),
        (CONFLICT_LOCAL_WINS, 'Lynck Space always wins'),
    ]

    FREQUENCY_CHOICES = [
        ('manual', 'Manual only'),
        ('hourly', 'Every hour'),
        ('daily', 'Once daily'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='calendar_sync_settings')
    enabled = models.BooleanField(default=True)
    sync_frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, default='manual')
    sync_direction = models.CharField(
        max_length=20,
        choices=DIRECTION_CHOICES,
        default=DIRECTION_BIDIRECTIONAL
    )
    conflict_resolution = models.CharField(
        max_length=20,
        choices=CONFLICT_CHOICES,
        default=CONFLICT_NEWEST_WINS
    )
    selected_calendars = models.JSONField(default=default_selected_calendars, blank=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Sync settings of {self.user.username} ({self.sync_direction})"

    class Meta:
        verbose_name = "Calendar sync settings"
        verbose_name_plural = "Calendar sync settings"


class CalendarEvent(models.Model):
    """Calendar event stored locally, optionally linked to a Google event."""

    CATEGORY_CHOICES = [
        ('work', 'Work'),
        ('personal', 'Personal'),
        ('meeting', 'Meeting'),
        ('deadline', 'Deadline'),
        ('other', 'Other'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='calendar_events')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='other')
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    remote_event_id = models.CharField(max_length=255, null=True, blank=True)
    remote_calendar_id = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.title} - {self.start_datetime:%Y-%m-%d %H:%M}"

    @property
    def is_synced(self) -> bool:
        return bool(self.remote_event_id)

    class Meta:
        verbose_name = "Calendar event"
        verbose_name_plural = "Calendar events"
        ordering = ['start_datetime']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'remote_calendar_id', 'remote_event_id'],
                condition=models.Q(remote_event_id__isnull=False),
                name='unique_remote_event_per_user',
            ),
        ]


class Task(models.Model):
    """Task whose due date can be mirrored into Google Calendar."""

    STATUS_CHOICES = [
        ('todo', 'To do'),
        ('in_progress', 'In progress'),
        ('done', 'Done'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tasks')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='todo')
    due_date = models.DateField(null=True, blank=True)
    remote_event_id = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        mark = "✓" if self.status == 'done' else "○"
        return f"{mark} {self.title}"

    class Meta:
        verbose_name = "Task"
        verbose_name_plural = "Tasks"
        ordering = ['due_date', '-created_at']


class CalendarConnection(models.Model):
    """Google Calendar access token handed over by the OAuth connector."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='calendar_connection')
    access_token = models.TextField(blank=True)
    connected_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        state = "connected" if self.access_token else "disconnected"
        return f"Google Calendar ({state}) - {self.user.username}"

    class Meta:
        verbose_name = "Calendar connection"
        verbose_name_plural = "Calendar connections"
