"""
Local Task Backend - Synchronous execution for development.

This backend executes tasks immediately in the same process.
No Redis or external dependencies required.

Usage:
    Set TASK_BACKEND=local in your .env file.
"""

import uuid
import logging
from typing import Any, Dict
from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)


# Task handler registry - maps task names to handler functions
TASK_HANDLERS = {}


def register_handler(task_name: str):
    """Decorator to register a task handler."""
    def decorator(func):
        TASK_HANDLERS[task_name] = func
        return func
    return decorator


class LocalTaskService(TaskServiceInterface):
    """
    Execute tasks synchronously in the same process.

    Tasks run in the same request cycle, so they block
    the response. Only use for development and tests.
    """

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Execute task synchronously."""
        task_id = str(uuid.uuid4())

        logger.info(f"[LOCAL] Executing task {task_name} (id={task_id})")

        if delay_seconds > 0:
            logger.warning(
                f"[LOCAL] delay_seconds={delay_seconds} ignored in local backend"
            )

        handler = TASK_HANDLERS.get(task_name)
        if handler:
            try:
                result = handler(**payload)
                logger.info(f"[LOCAL] Task {task_name} completed: {result}")
            except Exception as e:
                logger.exception(f"[LOCAL] Task {task_name} failed: {e}")
                raise
        else:
            logger.warning(f"[LOCAL] No handler registered for task: {task_name}")

        return task_id


# =============================================================================
# Task Handlers
# =============================================================================

@register_handler("mark_overdue_invoices")
def handle_mark_overdue_invoices(as_of: str = None):
    """Run the overdue sweep synchronously."""
    from datetime import date
    from apps.billing import invoice_service

    count = invoice_service.mark_overdue_invoices(
        today=date.fromisoformat(as_of) if as_of else None
    )
    return f"Marked {count} invoices overdue"
