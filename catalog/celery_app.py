"""Celery application setup for background poster backfill runs."""

from __future__ import annotations

import os
from typing import Optional

from celery import Celery


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _sqla_broker_from_db(db_url: Optional[str]) -> Optional[str]:
    if not db_url:
        return None
    return db_url if db_url.startswith("sqla+") else f"sqla+{db_url}"


def create_celery_app() -> Celery:
    """Instantiate the Celery app with environment driven configuration."""

    broker_url = os.getenv("CATALOG_CELERY_BROKER_URL")
    backend_url = os.getenv("CATALOG_CELERY_RESULT_BACKEND")

    if broker_url is None:
        broker_url = _sqla_broker_from_db(os.getenv("CATALOG_DATABASE_URL")) or "memory://"
    if backend_url is None:
        backend_url = "cache+memory://"

    app = Celery("catalog", broker=broker_url, backend=backend_url, include=["catalog.tasks"])
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_always_eager=_env_bool("CATALOG_CELERY_TASK_ALWAYS_EAGER", True),
        task_acks_late=True,
        # A backfill run holds several lookups in flight; run one per worker process.
        worker_prefetch_multiplier=1,
        broker_connection_retry_on_startup=True,
    )
    return app


celery_app = create_celery_app()


__all__ = ["celery_app", "create_celery_app"]
