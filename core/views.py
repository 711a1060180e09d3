"""
API Views for Lynck Space calendar backend.
"""
import logging

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import (
    CalendarSyncSettings,
    CalendarEvent,
    Task,
)
from .serializers import (
    UserProfileSerializer,
    CalendarSyncSettingsSerializer,
    CalendarEventSerializer,
    TaskSerializer,
    TaskCalendarActionSerializer,
    CalendarConnectionSerializer,
    SyncRequestSerializer,
)
from services import CalendarSync, TaskCalendarService
from services.calendar_sync import ListCalendarsRequest, PushEventRequest
from services.connectors import CalendarNotConnected, disconnect, store_access_token
from services.google_calendar import GoogleCalendarError, RemoteFetchError, RemotePushError

logger = logging.getLogger(__name__)

NOT_CONNECTED = 'Google Calendar not connected'


class HealthCheckView(APIView):
    """Health check endpoint."""

    permission_classes = [AllowAny]

    def get(self, request):
        """Return API health status."""
        return Response({
            'status': 'healthy',
            'timestamp': timezone.now().isoformat(),
        })


# ============== Profile Views ==============

class ProfileView(APIView):
    """User profile management (timezone used for pushed events)."""

    def get(self, request):
        return Response(UserProfileSerializer(request.user.profile).data)

    def patch(self, request):
        serializer = UserProfileSerializer(
            request.user.profile,
            data=request.data,
            partial=True
        )
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# ============== Calendar Sync Views ==============

class CalendarSyncView(APIView):
    """
    Single entry point for Google Calendar operations.

    The body's `action` is resolved once into a request type:
    listCalendars, pushEvent, or (default) a full sync.
    """

    def post(self, request):
        serializer = SyncRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        sync_request = serializer.to_request()
        sync = CalendarSync(request.user)

        try:
            if isinstance(sync_request, ListCalendarsRequest):
                return self._list_calendars(sync)
            if isinstance(sync_request, PushEventRequest):
                return self._push_event(sync, sync_request)
            return self._full_sync(sync)
        except CalendarNotConnected:
            return Response({'error': NOT_CONNECTED}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception(f"Calendar sync error for user {request.user.id}: {e}")
            return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    def _list_calendars(self, sync: CalendarSync) -> Response:
        try:
            calendars = sync.list_calendars()
        except RemoteFetchError as e:
            logger.error(f"Google calendar list failed ({e.status_code}): {e.details}")
            return Response(
                {'error': 'Failed to fetch Google calendars', 'details': e.details},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response({'calendars': [calendar.to_dict() for calendar in calendars]})

    def _push_event(self, sync: CalendarSync, push: PushEventRequest) -> Response:
        try:
            remote_id = sync.push_event(push.event, push.calendar_id)
        except RemotePushError as e:
            logger.error(f"Google event push failed ({e.status_code}): {e.details}")
            return Response(
                {'error': 'Failed to push event to Google Calendar', 'details': e.details},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response({'success': True, 'google_event_id': remote_id})

    def _full_sync(self, sync: CalendarSync) -> Response:
        result = sync.full_sync()
        return Response({'success': True, **result.to_dict()})


class CalendarSyncSettingsView(APIView):
    """Read and update the user's sync settings."""

    def get(self, request):
        """Return persisted settings, or the defaults when none were saved."""
        settings = (
            CalendarSyncSettings.objects.filter(user=request.user).first()
            or CalendarSyncSettings(user=request.user)
        )
        return Response(CalendarSyncSettingsSerializer(settings).data)

    def patch(self, request):
        """Create or update settings; nothing is persisted when validation fails."""
        settings = (
            CalendarSyncSettings.objects.filter(user=request.user).first()
            or CalendarSyncSettings(user=request.user)
        )
        serializer = CalendarSyncSettingsSerializer(settings, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    put = patch


class CalendarConnectionView(APIView):
    """Store or drop the Google Calendar access token from the connector."""

    def put(self, request):
        serializer = CalendarConnectionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        connection = store_access_token(request.user, serializer.validated_data['access_token'])
        return Response(CalendarConnectionSerializer(connection).data)

    def delete(self, request):
        disconnect(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============== CalendarEvent Views ==============

class CalendarEventViewSet(viewsets.ModelViewSet):
    """ViewSet for local calendar events."""

    serializer_class = CalendarEventSerializer

    def get_queryset(self):
        queryset = CalendarEvent.objects.filter(user=self.request.user)

        start = self.request.query_params.get('start')
        end = self.request.query_params.get('end')
        if start:
            queryset = queryset.filter(end_datetime__gte=start)
        if end:
            queryset = queryset.filter(start_datetime__lte=end)

        unsynced = self.request.query_params.get('unsynced')
        if unsynced is not None and unsynced.lower() == 'true':
            queryset = queryset.filter(remote_event_id__isnull=True)

        return queryset

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)


# ============== Task Views ==============

class TaskViewSet(viewsets.ModelViewSet):
    """ViewSet for tasks, with calendar mirroring actions."""

    serializer_class = TaskSerializer

    def get_queryset(self):
        queryset = Task.objects.filter(user=self.request.user)

        task_status = self.request.query_params.get('status')
        if task_status:
            queryset = queryset.filter(status=task_status)

        return queryset

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)

    @action(detail=True, methods=['post'])
    def calendar(self, request, pk=None):
        """Create, update or delete the calendar event linked to this task."""
        task = self.get_object()
        serializer = TaskCalendarActionSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        service = TaskCalendarService(request.user)
        handler = getattr(service, serializer.validated_data['action'])
        try:
            result = handler(task)
        except CalendarNotConnected:
            return Response({'error': NOT_CONNECTED}, status=status.HTTP_400_BAD_REQUEST)
        except GoogleCalendarError as e:
            logger.error(f"Task calendar action failed for task {task.id}: {e}")
            return Response(
                {'error': str(e), 'details': e.details},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        if 'error' in result:
            return Response(result, status=status.HTTP_400_BAD_REQUEST)
        return Response(result)

    @action(detail=False, methods=['post'], url_path='push-calendar')
    def push_calendar(self, request):
        """Create calendar events for every open dated task not yet linked."""
        try:
            result = TaskCalendarService(request.user).push_pending()
        except CalendarNotConnected:
            return Response({'error': NOT_CONNECTED}, status=status.HTTP_400_BAD_REQUEST)
        return Response(result)
