import uuid
from django.db import models


class Organization(models.Model):
    """
    Represents a tenant (the operator of an apartment complex).
    All data is isolated per organization.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    settings = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible metadata (e.g., bank account overrides for transfer QR codes)"
    )
    logo = models.URLField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name
