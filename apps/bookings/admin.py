from django.contrib import admin
from .models import Booking, BookingStatusLog, QueueCounter, WaitlistEntry


class BookingStatusLogInline(admin.TabularInline):
    model = BookingStatusLog
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        'booking_number', 'type', 'party', 'business', 'service', 'staff',
        'booking_date', 'slot', 'status', 'is_guest_booking',
    ]
    list_filter = ['status', 'type', 'is_guest_booking', 'business', 'booking_date']
    search_fields = [
        'booking_number', 'customer_name', 'customer_email', 'customer_phone',
        'customer__username', 'customer__email', 'staff__name', 'service__name',
    ]
    # Status changes go through the lifecycle so they are logged
    readonly_fields = [
        'id', 'booking_number', 'type', 'status', 'cancellation_reason',
        'guest_lookup_token', 'estimated_duration', 'price_snapshot',
        'actual_start_time', 'actual_end_time', 'created_at', 'updated_at',
    ]
    date_hierarchy = 'booking_date'
    inlines = [BookingStatusLogInline]
    fieldsets = (
        ('Booking', {'fields': ('id', 'booking_number', 'type', 'business', 'service', 'staff')}),
        ('Schedule', {'fields': ('booking_date', 'booking_time', 'queue_number', 'estimated_duration', 'price_snapshot')}),
        ('Party', {'fields': ('customer', 'is_guest_booking', 'customer_name', 'customer_email', 'customer_phone')}),
        ('Status', {'fields': ('status', 'cancellation_reason', 'actual_start_time', 'actual_end_time', 'notes')}),
        ('Access', {'fields': ('guest_lookup_token',)}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    def party(self, obj):
        return obj.party_name
    party.short_description = 'Customer'

    def slot(self, obj):
        if obj.booking_time:
            return obj.booking_time.strftime('%H:%M')
        return f"Q{obj.queue_number}"
    slot.short_description = 'Time / Queue'


@admin.register(BookingStatusLog)
class BookingStatusLogAdmin(admin.ModelAdmin):
    list_display = ['booking', 'from_status', 'to_status', 'changed_by', 'changed_at']
    list_filter = ['to_status', 'changed_by']
    readonly_fields = ['id', 'booking', 'from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    search_fields = ['booking__booking_number', 'booking__customer_name']


@admin.register(QueueCounter)
class QueueCounterAdmin(admin.ModelAdmin):
    list_display = ['business', 'booking_date', 'last_number']
    list_filter = ['business']
    # Only ever advanced by queue issuance
    readonly_fields = ['business', 'booking_date', 'last_number']


@admin.register(WaitlistEntry)
class WaitlistEntryAdmin(admin.ModelAdmin):
    list_display = ['customer', 'business', 'service', 'booking_date', 'booking_time', 'position', 'status']
    list_filter = ['status', 'business', 'booking_date']
    search_fields = ['customer__username', 'customer__email', 'service__name']
    readonly_fields = ['id', 'position', 'status', 'left_at', 'created_at', 'updated_at']
