"""
Business model — the tenant that owns services, staff and bookings.
"""
from datetime import time
from django.conf import settings
from django.db import models
from apps.core.models import BaseModel


class Business(BaseModel):
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='businesses',
    )
    name = models.CharField(max_length=120)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)

    class Meta:
        verbose_name = 'Business'
        verbose_name_plural = 'Businesses'
        ordering = ['name']

    def __str__(self):
        return self.name

    def get_operating_hours(self, on_date):
        """Returns the open OperatingHours row for on_date's weekday, or None when closed."""
        return self.operating_hours.filter(weekday=on_date.weekday(), is_open=True).first()


class OperatingHours(models.Model):
    WEEKDAY_CHOICES = [
        (0, 'Monday'), (1, 'Tuesday'), (2, 'Wednesday'),
        (3, 'Thursday'), (4, 'Friday'), (5, 'Saturday'), (6, 'Sunday'),
    ]

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='operating_hours')
    weekday = models.IntegerField(choices=WEEKDAY_CHOICES)
    open_time = models.TimeField(default=time(9, 0))
    close_time = models.TimeField(default=time(18, 0))
    is_open = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'Operating Hours'
        verbose_name_plural = 'Operating Hours'
        unique_together = ('business', 'weekday')
        ordering = ['weekday']

    def __str__(self):
        if not self.is_open:
            return f"{self.business.name} - {self.get_weekday_display()}: Closed"
        return (
            f"{self.business.name} - {self.get_weekday_display()}: "
            f"{self.open_time.strftime('%H:%M')}–{self.close_time.strftime('%H:%M')}"
        )
