"""
Service model — a bookable offering of one business.

Duration and price are read at booking time and snapshotted onto the
booking, so editing a service never rewrites existing bookings.
"""
from django.db import models
from django.core.validators import MinValueValidator
from apps.core.models import BaseModel
from apps.businesses.models import Business


class Service(BaseModel):
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='services',
    )
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    duration_minutes = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text='Session duration in minutes',
    )
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    class Meta:
        verbose_name = 'Service'
        verbose_name_plural = 'Services'
        ordering = ['name', 'duration_minutes']

    def __str__(self):
        return f"{self.name} ({self.duration_minutes} min) — {self.business.name}"
