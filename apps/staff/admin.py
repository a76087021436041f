from django.contrib import admin
from .models import Staff


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ['name', 'business', 'phone', 'is_active']
    list_filter = ['business', 'is_active']
    search_fields = ['name', 'business__name', 'phone']
    list_editable = ['is_active']
    readonly_fields = ['id', 'created_at', 'updated_at']
    fieldsets = (
        ('Staff Info', {'fields': ('id', 'business', 'name', 'phone')}),
        ('Status', {'fields': ('is_active',)}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )
