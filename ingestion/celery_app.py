"""Celery application bootstrap."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict

from celery import Celery, signals
from celery.schedules import schedule as celery_schedule

from .settings import Settings, get_settings
from .utils.logging import configure_logging

_CELERY_APP: Celery | None = None

INGESTION_TASK = "ingestion.tasks.collect.run_ingestion"
INGESTION_QUEUE = "ingestion.collect"


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Build a Celery instance from settings."""
    config = settings or get_settings()
    configure_logging(config.log_level, json_enabled=config.log_json)

    app = Celery("ingestion", broker=config.redis_url, backend=config.redis_url)
    app.conf.update(
        task_default_queue="ingestion.default",
        task_default_exchange="ingestion",
        task_default_routing_key="ingestion.default",
        task_routes={INGESTION_TASK: {"queue": INGESTION_QUEUE}},
        task_soft_time_limit=int(config.source_timeout_seconds) + 60,
        beat_schedule=_build_beat_schedule(config),
        timezone="UTC",
        enable_utc=True,
        worker_send_task_events=True,
        task_send_sent_event=True,
    )

    app.autodiscover_tasks(["ingestion.tasks"], related_name="collect")
    _install_signal_handlers(app, config)
    return app


def get_celery_app() -> Celery:
    """Return the process-wide Celery instance."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    return {
        "ingestion.periodic": {
            "task": INGESTION_TASK,
            "schedule": celery_schedule(timedelta(minutes=settings.scrape_interval_minutes)),
            "kwargs": {"trigger": "schedule"},
            "options": {"queue": INGESTION_QUEUE},
        }
    }


def _install_signal_handlers(app: Celery, settings: Settings) -> None:
    logger = logging.getLogger("ingestion.worker")

    @signals.worker_ready.connect(weak=False)
    def _on_worker_ready(sender=None, **kwargs):  # noqa: ANN001
        if not settings.scrape_on_startup:
            return
        logger.info("ingestion.startup_run_enqueued")
        app.send_task(INGESTION_TASK, kwargs={"trigger": "startup"}, queue=INGESTION_QUEUE)

    @signals.worker_shutdown.connect(weak=False)
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("Celery worker shutdown detected", extra={"sender": str(sender)})
