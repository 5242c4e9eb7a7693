"""Concurrent poster backfill for movies that have no poster yet."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

import httpx

from .config import CatalogConfig
from .lookup import LookupOutcome, LookupStatus, PosterLookupClient
from .repository import StorageWriteError

LOGGER = logging.getLogger(__name__)

_END_OF_INPUT = object()


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class PosterFetcher(Protocol):
    def fetch(self, imdb_id: str) -> LookupOutcome:
        ...


class PosterStore(Protocol):
    def select_missing_posters(self, limit: int) -> list[str]:
        ...

    def update_poster(self, imdb_id: str, poster_url: str) -> int:
        ...


@dataclass(slots=True)
class ItemResult:
    imdb_id: str
    outcome: Optional[LookupOutcome] = None
    persisted: bool = False
    rows_affected: int = 0
    persist_error: Optional[str] = None
    cancelled: bool = False


@dataclass(slots=True)
class BackfillReport:
    selected: int = 0
    attempted: int = 0
    resolved: int = 0
    not_found: int = 0
    transport_errors: int = 0
    persisted: int = 0
    persist_failures: int = 0
    cancelled: int = 0
    items: list[ItemResult] = field(default_factory=list)

    def record(self, item: ItemResult) -> None:
        self.items.append(item)
        if item.cancelled:
            self.cancelled += 1
            return

        self.attempted += 1
        status = item.outcome.status if item.outcome else LookupStatus.TRANSPORT_ERROR
        if status is LookupStatus.RESOLVED:
            self.resolved += 1
            if item.persisted:
                self.persisted += 1
            else:
                self.persist_failures += 1
        elif status is LookupStatus.NOT_FOUND:
            self.not_found += 1
        else:
            self.transport_errors += 1

    def result_for(self, imdb_id: str) -> Optional[ItemResult]:
        for item in self.items:
            if item.imdb_id == imdb_id:
                return item
        return None

    def summary(self) -> dict[str, int]:
        return {
            "selected": self.selected,
            "attempted": self.attempted,
            "resolved": self.resolved,
            "not_found": self.not_found,
            "transport_errors": self.transport_errors,
            "persisted": self.persisted,
            "persist_failures": self.persist_failures,
            "cancelled": self.cancelled,
        }


class PosterBackfill:
    """Runs lookups and poster writes on a fixed-size pool of worker threads.

    Workers share nothing but the work queue and the report. Failures of a
    single item are recorded in the report and never abort the run.
    """

    def __init__(self, fetcher: PosterFetcher, store: PosterStore, *, worker_count: int = 3) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self._fetcher = fetcher
        self._store = store
        self._worker_count = worker_count

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def run(
        self,
        identifiers: Iterable[str],
        *,
        cancel_event: threading.Event | None = None,
    ) -> BackfillReport:
        pending = list(dict.fromkeys(identifiers))
        report = BackfillReport(selected=len(pending))
        if not pending:
            LOGGER.info("No movies need a poster; nothing to dispatch")
            return report

        # Room for every item plus one end marker per worker, so puts never block.
        work_queue: queue.Queue = queue.Queue(maxsize=len(pending) + self._worker_count)
        report_lock = threading.Lock()

        with ThreadPoolExecutor(
            max_workers=self._worker_count,
            thread_name_prefix="poster-worker",
        ) as executor:
            workers = [
                executor.submit(
                    self._drain,
                    worker_id,
                    work_queue,
                    report,
                    report_lock,
                    cancel_event,
                )
                for worker_id in range(1, self._worker_count + 1)
            ]

            for imdb_id in pending:
                work_queue.put_nowait(imdb_id)
            for _ in workers:
                work_queue.put_nowait(_END_OF_INPUT)

            for worker in workers:
                worker.result()

        LOGGER.info(
            "Poster backfill finished: %d selected, %d resolved, %d persisted, "
            "%d not found, %d lookup errors, %d write errors, %d cancelled",
            report.selected,
            report.resolved,
            report.persisted,
            report.not_found,
            report.transport_errors,
            report.persist_failures,
            report.cancelled,
        )
        return report

    def _drain(
        self,
        worker_id: int,
        work_queue: queue.Queue,
        report: BackfillReport,
        report_lock: threading.Lock,
        cancel_event: threading.Event | None,
    ) -> None:
        handled = 0
        while True:
            imdb_id = work_queue.get()
            if imdb_id is _END_OF_INPUT:
                LOGGER.debug("Worker %d done after %d movies", worker_id, handled)
                return

            if _is_cancelled(cancel_event):
                result = ItemResult(imdb_id=imdb_id, cancelled=True)
            else:
                result = self._process_item(imdb_id, cancel_event)
                handled += 1

            with report_lock:
                report.record(result)

    def _process_item(self, imdb_id: str, cancel_event: threading.Event | None = None) -> ItemResult:
        try:
            outcome = self._fetcher.fetch(imdb_id)
        except Exception:
            LOGGER.exception("Unhandled error looking up poster for %s", imdb_id)
            return ItemResult(imdb_id=imdb_id, outcome=LookupOutcome.transport_error("unhandled lookup error"))

        if not outcome.is_resolved:
            return ItemResult(imdb_id=imdb_id, outcome=outcome)

        if _is_cancelled(cancel_event):
            LOGGER.info("Run cancelled; not storing poster for %s", imdb_id)
            return ItemResult(imdb_id=imdb_id, outcome=outcome, cancelled=True)

        try:
            rows = self._store.update_poster(imdb_id, outcome.url)
        except StorageWriteError as exc:
            LOGGER.warning("Failed to store poster for %s: %s", imdb_id, exc)
            return ItemResult(imdb_id=imdb_id, outcome=outcome, persist_error=str(exc))
        except Exception as exc:
            LOGGER.exception("Unhandled error storing poster for %s", imdb_id)
            return ItemResult(imdb_id=imdb_id, outcome=outcome, persist_error=str(exc))

        return ItemResult(imdb_id=imdb_id, outcome=outcome, persisted=True, rows_affected=rows)


def fetch_posters_concurrently(
    store: PosterStore,
    fetcher: PosterFetcher,
    worker_count: int,
    limit: int,
    *,
    cancel_event: threading.Event | None = None,
) -> BackfillReport:
    """Select up to ``limit`` movies without a poster and backfill them.

    Only a failure to read the candidates (``StorageUnavailable``) is raised;
    lookup and write failures end up in the returned report.
    """

    backfill = PosterBackfill(fetcher, store, worker_count=worker_count)
    imdb_ids = store.select_missing_posters(limit)
    LOGGER.info(
        "Selected %d movies without posters (limit=%d, workers=%d)",
        len(imdb_ids),
        limit,
        worker_count,
    )
    return backfill.run(imdb_ids, cancel_event=cancel_event)


def run_configured_backfill(
    config: CatalogConfig,
    store: PosterStore,
    limit: int,
    *,
    worker_count: int | None = None,
    transport: httpx.BaseTransport | None = None,
) -> BackfillReport:
    workers = worker_count if worker_count is not None else config.backfill.worker_count
    with PosterLookupClient(config.lookup, transport=transport) as fetcher:
        return fetch_posters_concurrently(store, fetcher, workers, limit)


__all__ = [
    "BackfillReport",
    "ItemResult",
    "PosterBackfill",
    "fetch_posters_concurrently",
    "run_configured_backfill",
]
