"""
Core base model mixins.
All production models should inherit from these.
"""
import uuid
from django.db import models


class UUIDModel(models.Model):
    """Primary key is a UUID, not an auto-incrementing integer."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class TimestampedModel(models.Model):
    """Automatically tracks creation and last-update timestamps."""
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ActiveQuerySet(models.QuerySet):
    """Queryset for tenant-owned records that can be switched off."""
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)


class BaseModel(UUIDModel, TimestampedModel):
    """
    Convenience base combining UUID pk + timestamps + an is_active flag.
    Records are deactivated rather than deleted so historical bookings
    keep pointing at them.
    """
    is_active = models.BooleanField(default=True, db_index=True)

    objects = ActiveQuerySet.as_manager()

    class Meta:
        abstract = True
