"""Celery tasks for running the poster backfill outside the request cycle."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from .backfill import run_configured_backfill
from .celery_app import celery_app
from .config import CatalogConfig
from .database import build_session_factory
from .repository import MovieRepository, StorageUnavailable

LOGGER = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _repository(db_url: str) -> MovieRepository:
    return MovieRepository(build_session_factory(db_url))


@celery_app.task(name="catalog.fetch_posters")
def fetch_posters_task(limit: int, worker_count: Optional[int] = None) -> dict[str, int]:
    config = CatalogConfig.from_env()
    repository = _repository(config.db_url)
    try:
        report = run_configured_backfill(config, repository, int(limit), worker_count=worker_count)
    except StorageUnavailable:
        LOGGER.exception("Poster backfill aborted; candidates could not be read")
        raise
    return report.summary()


__all__ = ["fetch_posters_task"]
