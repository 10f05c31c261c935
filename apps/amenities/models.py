import uuid
from django.db import models


class AmenityType(models.TextChoices):
    FACILITY = 'facility', 'Facility'
    SERVICE = 'service', 'Service'
    EQUIPMENT = 'equipment', 'Equipment'


class AmenityStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    MAINTENANCE = 'maintenance', 'Maintenance'


class PricingType(models.TextChoices):
    FREE = 'free', 'Free'
    PAID = 'paid', 'Paid'
    SUBSCRIPTION = 'subscription', 'Subscription'


class Amenity(models.Model):
    """
    Shared facility, service or equipment offered to residents.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)

    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField()
    amenity_type = models.CharField(max_length=20, choices=AmenityType.choices, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=AmenityStatus.choices,
        default=AmenityStatus.ACTIVE,
        db_index=True,
    )
    capacity = models.PositiveIntegerField(null=True, blank=True)
    operating_hours = models.CharField(max_length=100, blank=True)
    location = models.CharField(max_length=255, blank=True)
    image_url = models.URLField(blank=True, null=True)
    images = models.JSONField(default=list, blank=True)

    # Pricing
    pricing_type = models.CharField(max_length=20, choices=PricingType.choices, default=PricingType.FREE)
    price_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default='VND')
    booking_required = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = "Amenities"

    def __str__(self):
        return self.name
