import uuid
from django.core.validators import MinValueValidator
from django.db import models


class ApartmentStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    OCCUPIED = 'occupied', 'Occupied'
    MAINTENANCE = 'maintenance', 'Maintenance'


class Apartment(models.Model):
    """
    A rentable unit in one of the organization's buildings.
    A resident links to it through User.apartment_id.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)  # No FK - modular boundary

    apartment_number = models.CharField(max_length=50)
    building = models.CharField(max_length=100)
    floor = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    area = models.DecimalField(max_digits=10, decimal_places=2, help_text="Square meters")
    bedrooms = models.PositiveIntegerField(default=0)
    bathrooms = models.PositiveIntegerField(default=0)
    rent_price = models.DecimalField(max_digits=14, decimal_places=2)

    status = models.CharField(
        max_length=20,
        choices=ApartmentStatus.choices,
        default=ApartmentStatus.AVAILABLE,
        db_index=True,
    )
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True, null=True)
    images = models.JSONField(default=list, blank=True)
    amenities = models.JSONField(default=list, blank=True, help_text="Amenity labels")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['building', 'floor', 'apartment_number']
        unique_together = ['org_id', 'apartment_number']

    def __str__(self):
        return f"{self.building} - {self.apartment_number}"
