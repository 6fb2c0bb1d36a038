# backend/charterbook/tasks/celery_app.py
"""
Celery application for Charterbook's scheduled sweeps.

Redis is broker and result backend. Beat triggers the daily sweeps
(expiration, weather, deposit and trip reminders); each is short, idempotent
and guarded by a job lock, so late acks and automatic retries are safe.
"""

import logging
import os
from typing import Any, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from ..core.config import settings
from .beat_schedule import get_beat_schedule

SWEEP_QUEUE = "sweeps"


def _redis_db_url(url: str) -> str:
    # Celery needs an explicit database index
    tail = url.rsplit("/", 1)[-1]
    return url if tail.isdigit() else f"{url.rstrip('/')}/0"


def create_celery_app() -> Celery:
    """
    Build the Celery app from settings.

    ``CELERY_BROKER_URL`` and ``CELERY_RESULT_BACKEND`` override the Redis URL.
    """
    broker_url = _redis_db_url(os.getenv("CELERY_BROKER_URL") or settings.redis_url)
    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    app = Celery("charterbook", broker=broker_url, backend=result_backend)
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        result_expires=86400,
        timezone="UTC",
        enable_utc=True,
        task_default_queue=SWEEP_QUEUE,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        # A sweep over a day's bookings should finish in seconds
        task_soft_time_limit=240,
        task_time_limit=300,
        worker_hijack_root_logger=False,
        broker_connection_retry_on_startup=True,
        imports=("charterbook.tasks.booking_tasks",),
        beat_schedule=get_beat_schedule(),
    )
    return app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Retries a failed sweep with backoff and logs every failure."""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 3, "countdown": 60}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logging.getLogger(__name__).error(
            f"Task {self.name}[{task_id}] failed: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logging.getLogger(__name__).warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries}: {exc}",
            extra={"task_id": task_id, "task_name": self.name, "retry_count": self.request.retries},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app.Task = cast(Type[Task], BaseTask)
