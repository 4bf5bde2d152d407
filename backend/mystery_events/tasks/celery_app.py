# backend/mystery_events/tasks/celery_app.py
"""
Celery application configuration for Mystery Events.

Redis is the broker and result backend. Each worker process owns one
``Database`` created in ``worker_process_init``; tasks open sessions through
``task_session()``.
"""

from contextlib import contextmanager
import logging
import os
from typing import Any, Dict, Generator, Optional, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging, worker_process_init, worker_process_shutdown
from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import Database

logger = logging.getLogger(__name__)

_worker_database: Optional[Database] = None


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    # Priority: CELERY_BROKER_URL -> REDIS_URL -> settings.redis_url
    broker_url = os.getenv("CELERY_BROKER_URL") or os.getenv("REDIS_URL") or settings.redis_url
    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    celery_app = Celery("mystery_events", broker=broker_url, backend=result_backend)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.business_timezone,
            "enable_utc": True,
            "result_expires": 3600,
            "worker_prefetch_multiplier": 1,
            "worker_max_tasks_per_child": 1000,
            "task_soft_time_limit": 240,
            "task_time_limit": 300,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_default_retry_delay": 60,
            "task_max_retries": 3,
            "worker_hijack_root_logger": False,
            "broker_transport_options": {"visibility_timeout": 3600},
        }
    )

    celery_app.conf.imports = (
        "mystery_events.tasks.notification_tasks",
        "mystery_events.tasks.booking_tasks",
    )
    celery_app.conf.task_routes = {
        "mystery_events.tasks.notification_tasks.*": {"queue": "notifications"},
        "mystery_events.tasks.booking_tasks.*": {"queue": "bookings"},
    }

    from .beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()
    return celery_app


@setup_logging.connect
def config_loggers(*args: Any, **kwargs: Any) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


@worker_process_init.connect
def init_worker_database(**kwargs: Any) -> None:
    global _worker_database
    _worker_database = Database(settings.database_url, echo=settings.database_echo).init()


@worker_process_shutdown.connect
def dispose_worker_database(**kwargs: Any) -> None:
    global _worker_database
    if _worker_database is not None:
        _worker_database.dispose()
        _worker_database = None


def get_worker_database() -> Database:
    """The process database; created lazily when tasks run eagerly outside a worker."""
    global _worker_database
    if _worker_database is None:
        _worker_database = Database(settings.database_url, echo=settings.database_echo).init()
    return _worker_database


@contextmanager
def task_session() -> Generator[Session, None, None]:
    with get_worker_database().session_scope() as session:
        yield session


celery_app = create_celery_app()


class BaseTask(Task):
    """Base task with automatic error handling and logging."""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 3, "countdown": 60}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={"task_id": task_id, "task_name": self.name, "retry_count": self.request.retries},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: Any, kwargs: Any) -> None:
        logger.info(f"Task {self.name}[{task_id}] completed successfully")
        super().on_success(retval, task_id, args, kwargs)


celery_app.Task = cast(Type[Task], BaseTask)


@celery_app.task(name="mystery_events.tasks.health_check")
def health_check() -> Dict[str, str]:
    from datetime import datetime, timezone

    current_task = celery_app.current_task
    return {
        "status": "healthy",
        "worker": current_task.request.hostname if current_task else "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
