"""Movie catalog with concurrent poster backfill."""

from .backfill import BackfillReport, PosterBackfill, fetch_posters_concurrently

__all__ = ["BackfillReport", "PosterBackfill", "fetch_posters_concurrently"]
