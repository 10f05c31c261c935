import logging

from django.db.models.signals import pre_delete
from django.dispatch import receiver

from apps.identity.models import User
from .models import Apartment, ApartmentStatus

logger = logging.getLogger(__name__)


@receiver(pre_delete, sender=User)
def release_apartment_on_user_delete(sender, instance, **kwargs):
    """
    Return a deleted resident's apartment to the available pool.
    Runs inside the deleting transaction, so both rows change together.
    """
    if not instance.apartment_id:
        return

    updated = Apartment.objects.filter(
        id=instance.apartment_id,
        status=ApartmentStatus.OCCUPIED,
    ).update(status=ApartmentStatus.AVAILABLE)
    if updated:
        logger.info(f"Signal: Released apartment {instance.apartment_id} from deleted user {instance.id}")
