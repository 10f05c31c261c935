import uuid
from django.conf import settings
from django.db import models


class RequestCategory(models.TextChoices):
    PLUMBING = 'plumbing', 'Plumbing'
    ELECTRICAL = 'electrical', 'Electrical'
    HVAC = 'hvac', 'HVAC'
    APPLIANCE = 'appliance', 'Appliance'
    STRUCTURAL = 'structural', 'Structural'
    OTHER = 'other', 'Other'


class RequestStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In Progress'
    RESOLVED = 'resolved', 'Resolved'
    CANCELLED = 'cancelled', 'Cancelled'


class ServiceRequest(models.Model):
    """
    A maintenance ticket raised by a resident for their apartment.
    Staff pick tickets up from the queue (accept) and work them to resolution.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='service_requests',
    )
    # Cross-app reference (no FK - modular boundary)
    apartment_id = models.UUIDField(db_index=True)

    title = models.CharField(max_length=200)
    description = models.TextField(max_length=1000)
    category = models.CharField(max_length=20, choices=RequestCategory.choices, default=RequestCategory.OTHER)
    status = models.CharField(
        max_length=20,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
        db_index=True,
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_requests',
    )
    images = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.status})"


class ServiceRequestMessage(models.Model):
    """Conversation between the resident and whoever works the ticket."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request = models.ForeignKey(ServiceRequest, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='+')
    content = models.TextField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"Message from {self.sender_id} on {self.request_id}"
