from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

import core.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('timezone', models.CharField(default='UTC', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='profile',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'User profile',
                'verbose_name_plural': 'User profiles',
            },
        ),
        migrations.CreateModel(
            name='CalendarSyncSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('enabled', models.BooleanField(default=True)),
                ('sync_frequency', models.CharField(
                    choices=[('manual', 'Manual only'), ('hourly', 'Every hour'), ('daily', 'Once daily')],
                    default='manual',
                    max_length=10,
                )),
                ('sync_direction', models.CharField(
                    choices=[
                        ('bidirectional', 'Bidirectional'),
                        ('import', 'Import only (Google → Lynck)'),
                        ('export', 'Export only (Lynck → Google)'),
                    ],
                    default='bidirectional',
                    max_length=20,
                )),
                ('conflict_resolution', models.CharField(
                    choices=[
                        ('newest_wins', 'Newest wins'),
                        ('provider_wins', 'Google always wins'),
                        ('local_wins', 'Lynck Space always wins'),
                    ],
                    default='newest_wins',
                    max_length=20,
                )),
                ('selected_calendars', models.JSONField(blank=True, default=core.models.default_selected_calendars)),
                ('last_sync_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='calendar_sync_settings',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Calendar sync settings',
                'verbose_name_plural': 'Calendar sync settings',
            },
        ),
        migrations.CreateModel(
            name='CalendarEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(
                    choices=[
                        ('work', 'Work'),
                        ('personal', 'Personal'),
                        ('meeting', 'Meeting'),
                        ('deadline', 'Deadline'),
                        ('other', 'Other'),
                    ],
                    default='other',
                    max_length=20,
                )),
                ('start_datetime', models.DateTimeField()),
                ('end_datetime', models.DateTimeField()),
                ('remote_event_id', models.CharField(blank=True, max_length=255, null=True)),
                ('remote_calendar_id', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='calendar_events',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Calendar event',
                'verbose_name_plural': 'Calendar events',
                'ordering': ['start_datetime'],
            },
        ),
        migrations.AddConstraint(
            model_name='calendarevent',
            constraint=models.UniqueConstraint(
                condition=models.Q(remote_event_id__isnull=False),
                fields=('user', 'remote_calendar_id', 'remote_event_id'),
                name='unique_remote_event_per_user',
            ),
        ),
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('status', models.CharField(
                    choices=[('todo', 'To do'), ('in_progress', 'In progress'), ('done', 'Done')],
                    default='todo',
                    max_length=20,
                )),
                ('due_date', models.DateField(blank=True, null=True)),
                ('remote_event_id', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='tasks',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Task',
                'verbose_name_plural': 'Tasks',
                'ordering': ['due_date', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CalendarConnection',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('access_token', models.TextField(blank=True)),
                ('connected_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='calendar_connection',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Calendar connection',
                'verbose_name_plural': 'Calendar connections',
            },
        ),
    ]
