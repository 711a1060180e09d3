"""
Admin configuration for Lynck Space calendar models.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User

from .models import (
    UserProfile,
    CalendarSyncSettings,
    CalendarEvent,
    Task,
    CalendarConnection,
)


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile'


class CalendarSyncSettingsInline(admin.StackedInline):
    model = CalendarSyncSettings
    can_delete = False
    readonly_fields = ['last_sync_at']


class UserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline, CalendarSyncSettingsInline)


# Re-register UserAdmin
admin.site.unregister(User)
admin.site.register(User, UserAdmin)


@admin.register(CalendarSyncSettings)
class CalendarSyncSettingsAdmin(admin.ModelAdmin):
    list_display = ['user', 'enabled', 'sync_direction', 'conflict_resolution', 'sync_frequency', 'last_sync_at']
    list_filter = ['enabled', 'sync_direction', 'conflict_resolution', 'sync_frequency']
    search_fields = ['user__username', 'user__email']
    readonly_fields = ['last_sync_at', 'created_at', 'updated_at']


@admin.register(CalendarEvent)
class CalendarEventAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'category', 'start_datetime', 'end_datetime', 'is_synced']
    list_filter = ['category', 'remote_calendar_id']
    search_fields = ['title', 'user__username', 'remote_event_id']
    readonly_fields = ['created_at', 'updated_at']

    @admin.display(boolean=True, description='Synced')
    def is_synced(self, obj):
        return obj.is_synced


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'status', 'due_date', 'remote_event_id']
    list_filter = ['status']
    search_fields = ['title', 'user__username']


@admin.register(CalendarConnection)
class CalendarConnectionAdmin(admin.ModelAdmin):
    list_display = ['user', 'connected_at']
    search_fields = ['user__username', 'user__email']
    exclude = ['access_token']
