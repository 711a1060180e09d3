"""
Serializers for Lynck Space calendar backend.
"""
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rest_framework import serializers

from .models import (
    UserProfile,
    CalendarSyncSettings,
    CalendarEvent,
    Task,
    CalendarConnection,
)
from services.calendar_sync import (
    DEFAULT_CALENDAR_ID,
    EventPayload,
    FullSyncRequest,
    ListCalendarsRequest,
    PushEventRequest,
)


class UserProfileSerializer(serializers.ModelSerializer):
    """Serializer for UserProfile model."""

    class Meta:
        model = UserProfile
        fields = ['timezone', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_timezone(self, value):
        # Sent as the timeZone of every pushed event; Google rejects unknown zones
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise serializers.ValidationError(f"Unknown timezone: {value}")
        return value


class CalendarSyncSettingsSerializer(serializers.ModelSerializer):
    """Serializer for CalendarSyncSettings model."""

    selected_calendars = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False,
    )

    class Meta:
        model = CalendarSyncSettings
        fields = [
            'enabled',
            'sync_frequency',
            'sync_direction',
            'conflict_resolution',
            'selected_calendars',
            'last_sync_at',
            'updated_at',
        ]
        read_only_fields = ['last_sync_at', 'updated_at']


class CalendarEventSerializer(serializers.ModelSerializer):
    """Serializer for CalendarEvent model."""

    class Meta:
        model = CalendarEvent
        fields = [
            'id',
            'title',
            'description',
            'category',
            'start_datetime',
            'end_datetime',
            'remote_event_id',
            'remote_calendar_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'remote_event_id', 'remote_calendar_id', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_datetime', getattr(self.instance, 'start_datetime', None))
        end = attrs.get('end_datetime', getattr(self.instance, 'end_datetime', None))
        if start and end and end < start:
            raise serializers.ValidationError({
                'end_datetime': "End must not be before start."
            })
        return attrs


class TaskSerializer(serializers.ModelSerializer):
    """Serializer for Task model."""

    class Meta:
        model = Task
        fields = [
            'id',
            'title',
            'description',
            'status',
            'due_date',
            'remote_event_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'remote_event_id', 'created_at', 'updated_at']


class TaskCalendarActionSerializer(serializers.Serializer):
    """Action applied to the calendar event of one task."""

    action = serializers.ChoiceField(choices=['create', 'update', 'delete'])


class CalendarConnectionSerializer(serializers.ModelSerializer):
    """Serializer for the stored connector token."""

    access_token = serializers.CharField(write_only=True, allow_blank=False)
    connected = serializers.SerializerMethodField()

    class Meta:
        model = CalendarConnection
        fields = ['access_token', 'connected', 'connected_at']
        read_only_fields = ['connected_at']

    def get_connected(self, obj) -> bool:
        return bool(obj.access_token)


# ============== Sync endpoint ==============

class PushEventPayloadSerializer(serializers.Serializer):
    """Event body accepted by the pushEvent action."""

    id = serializers.IntegerField(required=False, allow_null=True)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    start_datetime = serializers.DateTimeField()
    end_datetime = serializers.DateTimeField()


class SyncRequestSerializer(serializers.Serializer):
    """
    Validates the sync endpoint body and resolves it into one request type.

    `action` selects listCalendars or pushEvent; a missing action (or
    "sync") runs the full synchronization.
    """

    ACTION_LIST_CALENDARS = 'listCalendars'
    ACTION_PUSH_EVENT = 'pushEvent'
    ACTION_SYNC = 'sync'

    action = serializers.ChoiceField(
        choices=[ACTION_LIST_CALENDARS, ACTION_PUSH_EVENT, ACTION_SYNC],
        required=False,
        allow_null=True,
        allow_blank=True,
    )
    event = PushEventPayloadSerializer(required=False)
    calendarId = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate(self, attrs):
        if attrs.get('action') == self.ACTION_PUSH_EVENT and not attrs.get('event'):
            raise serializers.ValidationError({'event': "This field is required for pushEvent."})
        return attrs

    def to_request(self):
        data = self.validated_data
        action = data.get('action')
        if action == self.ACTION_LIST_CALENDARS:
            return ListCalendarsRequest()
        if action == self.ACTION_PUSH_EVENT:
            event = data['event']
            return PushEventRequest(
                event=EventPayload(
                    id=event.get('id'),
                    title=event['title'],
                    description=event.get('description', ''),
                    start_datetime=event['start_datetime'],
                    end_datetime=event['end_datetime'],
                ),
                calendar_id=data.get('calendarId') or DEFAULT_CALENDAR_ID,
            )
        return FullSyncRequest()
