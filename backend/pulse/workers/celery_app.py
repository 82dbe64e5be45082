"""Celery application configuration."""

import json
import logging
import sys
from datetime import datetime, timezone

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from pulse.config import get_settings

settings = get_settings()


class JsonFormatter(logging.Formatter):
    """JSON formatter so log platforms can parse level and logger."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "site_id"):
            log_data["site_id"] = record.site_id

        return json.dumps(log_data)


@setup_logging.connect
def configure_logging(**kwargs):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    for name in ("celery", "pulse"):
        named_logger = logging.getLogger(name)
        named_logger.handlers.clear()
        named_logger.addHandler(handler)
        named_logger.setLevel(logging.INFO)
        named_logger.propagate = False


celery_app = Celery(
    "pulse",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["pulse.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
    # Tasks from a worker that died mid-run are redelivered
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
    worker_hijack_root_logger=False,
    worker_redirect_stdouts=True,
    worker_redirect_stdouts_level="INFO",
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "dispatch-pending-schema-batches": {
            "task": "pulse.workers.tasks.dispatch_pending_schema_batches",
            "schedule": crontab(minute=f"*/{settings.schema_poll_minutes}"),
        },
    },
)
