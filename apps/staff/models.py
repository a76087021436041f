"""
Staff model — a person who delivers services for exactly one business.
"""
from django.db import models
from apps.core.models import BaseModel
from apps.businesses.models import Business


class Staff(BaseModel):
    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='staff',
    )
    name = models.CharField(max_length=120)
    phone = models.CharField(max_length=20, blank=True)

    class Meta:
        verbose_name = 'Staff Member'
        verbose_name_plural = 'Staff'
        ordering = ['business', 'name']

    def __str__(self):
        return f"{self.name} — {self.business.name}"
