import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='FlightRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('organization', models.CharField(db_index=True, help_text='Organization of the submitting client', max_length=255)),
                ('client_username', models.CharField(help_text='Username of the submitting client', max_length=150)),
                ('date', models.DateField(help_text='Date of the flight')),
                ('time', models.TimeField(help_text='Time of the flight')),
                ('area', models.CharField(help_text='Area of operation', max_length=255)),
                ('description', models.TextField(help_text='Purpose of the flight')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('declined', 'Declined')], db_index=True, default='pending', help_text='Review status', max_length=20)),
                ('feedback', models.TextField(blank=True, help_text='Admin note attached to the decision', null=True)),
                ('decided_at', models.DateTimeField(blank=True, help_text='When the request was accepted or declined', null=True)),
                ('client', models.ForeignKey(help_text='Client who submitted the request', on_delete=django.db.models.deletion.PROTECT, related_name='flight_requests', to=settings.AUTH_USER_MODEL)),
                ('decided_by', models.ForeignKey(blank=True, help_text='Admin who decided the request', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='decided_flight_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'flight_requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['organization', 'client_username', 'created_at'], name='flight_req_owner_created_idx'),
                    models.Index(fields=['status', 'created_at'], name='flight_req_status_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('decided_at__isnull', True), ('decided_by__isnull', True), ('status', 'pending')),
                            models.Q(('decided_at__isnull', False), ('decided_by__isnull', False), ('status__in', ['accepted', 'declined'])),
                            _connector='OR',
                        ),
                        name='flight_requests_decision_matches_status',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('status', 'declined'), _negated=True),
                            models.Q(('feedback__isnull', False), models.Q(('feedback', ''), _negated=True)),
                            _connector='OR',
                        ),
                        name='flight_requests_decline_has_feedback',
                    ),
                ],
            },
        ),
    ]
