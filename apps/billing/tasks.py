"""Celery tasks for Billing app."""
import logging
from datetime import date

from celery import shared_task

from . import invoice_service

logger = logging.getLogger(__name__)


@shared_task
def mark_overdue_invoices(as_of=None):
    """
    Daily sweep (Celery beat, 00:30) moving past-due pending invoices to overdue.

    Returns a summary string for the worker log.
    """
    today = date.fromisoformat(as_of) if as_of else None
    count = invoice_service.mark_overdue_invoices(today=today)
    return f"Marked {count} invoices overdue"
