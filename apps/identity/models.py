import uuid
from django.db import models
from django.contrib.auth.models import AbstractUser


class UserRole(models.TextChoices):
    ADMIN = 'admin', 'Administrator'
    STAFF = 'staff', 'Staff'
    RESIDENT = 'resident', 'Resident'


class UserStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    SUSPENDED = 'suspended', 'Suspended'


class User(AbstractUser):
    """
    Custom User model with organization relationship for multi-tenancy.
    Residents optionally reference one Apartment and carry lease terms.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Store org_id as UUID field (no FK to maintain app independence)
    org_id = models.UUIDField(null=True, blank=True, db_index=True)

    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    avatar_url = models.URLField(blank=True, null=True)

    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.RESIDENT
    )
    status = models.CharField(
        max_length=20,
        choices=UserStatus.choices,
        default=UserStatus.ACTIVE
    )

    # Resident assignment (Apartment reference, no FK)
    apartment_id = models.UUIDField(null=True, blank=True, db_index=True)
    move_in_date = models.DateField(null=True, blank=True)
    lease_start_date = models.DateField(null=True, blank=True)
    lease_end_date = models.DateField(null=True, blank=True)
    monthly_rent = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    deposit_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        ordering = ['-date_joined']

    def __str__(self):
        return self.full_name or self.email

    def save(self, *args, **kwargs):
        # Keep Django's login flag in sync with the account status
        self.is_active = self.status == UserStatus.ACTIVE
        super().save(*args, **kwargs)
