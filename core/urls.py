"""
URL configuration for core app.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    # Profile
    ProfileView,
    # Calendar
    CalendarSyncView,
    CalendarSyncSettingsView,
    CalendarConnectionView,
    # ViewSets
    CalendarEventViewSet,
    TaskViewSet,
)

router = DefaultRouter()
router.register(r'calendar/events', CalendarEventViewSet, basename='calendar-event')
router.register(r'tasks', TaskViewSet, basename='task')

urlpatterns = [
    # Profile endpoint
    path('profile/', ProfileView.as_view(), name='profile'),

    # Calendar endpoints
    path('calendar/sync/', CalendarSyncView.as_view(), name='calendar-sync'),
    path('calendar/settings/', CalendarSyncSettingsView.as_view(), name='calendar-settings'),
    path('calendar/connection/', CalendarConnectionView.as_view(), name='calendar-connection'),

    # Router URLs (calendar events, tasks)
    path('', include(router.urls)),
]
