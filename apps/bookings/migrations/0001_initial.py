import django.core.validators
import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('businesses', '0001_initial'),
        ('services', '0001_initial'),
        ('staff', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking_number', models.CharField(editable=False, max_length=20, unique=True)),
                ('type', models.CharField(choices=[('TIME_SLOT', 'Time Slot'), ('QUEUE_NUMBER', 'Queue Number')], default='TIME_SLOT', editable=False, max_length=20)),
                ('booking_date', models.DateField(db_index=True)),
                ('booking_time', models.TimeField(blank=True, null=True)),
                ('queue_number', models.PositiveIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('estimated_duration', models.PositiveIntegerField(help_text='service.duration_minutes at time of booking')),
                ('price_snapshot', models.DecimalField(decimal_places=2, default=0, help_text='service.price at time of booking', max_digits=10)),
                ('is_guest_booking', models.BooleanField(default=False)),
                ('customer_name', models.CharField(blank=True, max_length=100)),
                ('customer_email', models.EmailField(blank=True, max_length=254)),
                ('customer_phone', models.CharField(blank=True, db_index=True, max_length=20)),
                ('guest_lookup_token', models.CharField(blank=True, editable=False, max_length=64, null=True, unique=True)),
                ('status', models.CharField(choices=[('CONFIRMED', 'Confirmed'), ('CHECKED_IN', 'Checked In'), ('IN_PROGRESS', 'In Progress'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled'), ('NO_SHOW', 'No Show')], db_index=True, default='CONFIRMED', max_length=20)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('actual_start_time', models.DateTimeField(blank=True, null=True)),
                ('actual_end_time', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('business', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='businesses.business')),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to=settings.AUTH_USER_MODEL)),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='services.service')),
                ('staff', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='staff.staff')),
            ],
            options={
                'verbose_name': 'Booking',
                'verbose_name_plural': 'Bookings',
                'ordering': ['-booking_date', '-booking_time', '-queue_number'],
                'indexes': [models.Index(fields=['business', 'booking_date', 'status'], name='ix_booking_business_day')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('queue_number__isnull', False)), fields=('business', 'booking_date', 'queue_number'), name='uq_business_day_queue_number'),
                    models.CheckConstraint(condition=models.Q(models.Q(('booking_time__isnull', False), ('queue_number__isnull', True), ('type', 'TIME_SLOT')), models.Q(('booking_time__isnull', True), ('queue_number__isnull', False), ('type', 'QUEUE_NUMBER')), _connector='OR'), name='ck_booking_type_fields'),
                    models.CheckConstraint(condition=models.Q(models.Q(('customer__isnull', False), ('is_guest_booking', False)), models.Q(('customer__isnull', True), ('guest_lookup_token__isnull', False), ('is_guest_booking', True)), _connector='OR'), name='ck_booking_single_party'),
                    models.CheckConstraint(condition=models.Q(models.Q(('cancellation_reason__isnull', False), ('status', 'CANCELLED')), models.Q(models.Q(('status', 'CANCELLED'), _negated=True), ('cancellation_reason__isnull', True)), _connector='OR'), name='ck_cancellation_reason_iff_cancelled'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookingStatusLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('from_status', models.CharField(blank=True, choices=[('CONFIRMED', 'Confirmed'), ('CHECKED_IN', 'Checked In'), ('IN_PROGRESS', 'In Progress'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled'), ('NO_SHOW', 'No Show')], max_length=20)),
                ('to_status', models.CharField(choices=[('CONFIRMED', 'Confirmed'), ('CHECKED_IN', 'Checked In'), ('IN_PROGRESS', 'In Progress'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled'), ('NO_SHOW', 'No Show')], max_length=20)),
                ('changed_by', models.CharField(help_text='customer / guest / business / system', max_length=80)),
                ('reason', models.TextField(blank=True)),
                ('changed_at', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_logs', to='bookings.booking')),
            ],
            options={
                'verbose_name': 'Booking Status Log',
                'verbose_name_plural': 'Booking Status Logs',
                'ordering': ['changed_at'],
            },
        ),
    ]
