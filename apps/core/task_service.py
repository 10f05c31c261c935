"""
TaskService - Abstraction layer for async task execution.

This module provides a platform-agnostic interface for executing background tasks.
The actual backend is determined by the TASK_BACKEND environment variable.

Usage:
    from apps.core.task_service import TaskService

    # Queue the overdue-invoice sweep
    TaskService.mark_overdue_invoices()

Environment Configuration:
    TASK_BACKEND=local   # Sync execution (development, tests)
    TASK_BACKEND=celery  # Celery + Redis (production)
"""

import os
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class TaskServiceInterface(ABC):
    """
    Abstract interface for async task execution.

    Implementations:
    - LocalTaskService: Sync execution for development/testing
    - CeleryTaskService: Celery + Redis
    """

    @abstractmethod
    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """
        Queue a task for async execution.

        Args:
            task_name: Identifier for the task handler
            payload: Data to pass to the task
            delay_seconds: Delay before execution (0 = immediate)

        Returns:
            Task ID for tracking
        """
        pass


def _get_backend() -> TaskServiceInterface:
    """Get the configured task backend based on TASK_BACKEND env var."""
    backend = os.getenv('TASK_BACKEND', 'local')

    if backend == 'local':
        from apps.core.backends.local_backend import LocalTaskService
        return LocalTaskService()
    elif backend == 'celery':
        from apps.core.backends.celery_backend import CeleryTaskService
        return CeleryTaskService()
    else:
        raise ValueError(f"Unknown TASK_BACKEND: {backend}")


class TaskService:
    """
    Facade for sending async tasks.

    This class provides static methods for each task type,
    delegating to the configured backend.
    """

    @staticmethod
    def mark_overdue_invoices(as_of: Optional[date] = None) -> str:
        """
        Queue the pending -> overdue sweep.

        Used by: Celery beat (daily) and the admin "run sweep" endpoint.
        """
        logger.info(f"Queueing mark_overdue_invoices task (as_of={as_of})")
        return _get_backend().send_task(
            task_name="mark_overdue_invoices",
            payload={"as_of": as_of.isoformat() if as_of else None},
        )
