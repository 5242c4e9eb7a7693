"""Configuration shared by the catalog CLI, REST API and background tasks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_DB_URL = "sqlite:///./movies.db"
DEFAULT_LOOKUP_URL = "http://www.omdbapi.com/"
DEFAULT_USER_AGENT = "movie-catalog/1.0"

_DB_URL_ENV = "CATALOG_DATABASE_URL"
_API_KEY_ENV = "OMDB_API_KEY"
_LOOKUP_URL_ENV = "OMDB_BASE_URL"
_LOOKUP_TIMEOUT_ENV = "CATALOG_LOOKUP_TIMEOUT"
_WORKERS_ENV = "CATALOG_BACKFILL_WORKERS"
_API_PORT_ENV = "CATALOG_API_PORT"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(slots=True)
class LookupConfig:
    """Where and how poster lookups are requested."""

    base_url: str = DEFAULT_LOOKUP_URL
    api_key: Optional[str] = None
    id_param: str = "i"
    key_param: str = "apikey"
    poster_field: str = "Poster"
    request_timeout: float = 5.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(slots=True)
class BackfillConfig:
    worker_count: int = 3
    default_limit: int = 10


@dataclass(slots=True)
class CatalogConfig:
    db_url: str = DEFAULT_DB_URL
    lookup: LookupConfig = field(default_factory=LookupConfig)
    backfill: BackfillConfig = field(default_factory=BackfillConfig)
    api_host: str = "127.0.0.1"
    api_port: int = 8090

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "CatalogConfig":
        env = os.environ if env is None else env
        defaults = cls()

        lookup = LookupConfig(
            base_url=env.get(_LOOKUP_URL_ENV) or defaults.lookup.base_url,
            api_key=(env.get(_API_KEY_ENV) or "").strip() or None,
            request_timeout=_env_float(env, _LOOKUP_TIMEOUT_ENV, defaults.lookup.request_timeout),
        )
        workers = _env_int(env, _WORKERS_ENV, defaults.backfill.worker_count)
        backfill = BackfillConfig(worker_count=max(1, workers))

        return cls(
            db_url=env.get(_DB_URL_ENV) or defaults.db_url,
            lookup=lookup,
            backfill=backfill,
            api_port=_env_int(env, _API_PORT_ENV, defaults.api_port),
        )
