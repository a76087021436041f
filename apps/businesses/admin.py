from django.contrib import admin
from .models import Business, OperatingHours


class OperatingHoursInline(admin.TabularInline):
    model = OperatingHours
    extra = 0


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'phone', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'phone', 'owner__username']
    list_editable = ['is_active']
    readonly_fields = ['id', 'created_at', 'updated_at']
    inlines = [OperatingHoursInline]
    fieldsets = (
        ('Business Info', {'fields': ('id', 'owner', 'name', 'address', 'phone', 'email')}),
        ('Status', {'fields': ('is_active',)}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )
