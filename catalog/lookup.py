"""HTTP client for resolving poster URLs from the external lookup service."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import LookupConfig

LOGGER = logging.getLogger(__name__)

_NOT_AVAILABLE = "n/a"


class LookupStatus(str, enum.Enum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(slots=True, frozen=True)
class LookupOutcome:
    """Classification of one lookup response."""

    status: LookupStatus
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def resolved(cls, url: str) -> "LookupOutcome":
        return cls(LookupStatus.RESOLVED, url=url)

    @classmethod
    def not_found(cls) -> "LookupOutcome":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def transport_error(cls, error: str) -> "LookupOutcome":
        return cls(LookupStatus.TRANSPORT_ERROR, error=error)

    @property
    def is_resolved(self) -> bool:
        return self.status is LookupStatus.RESOLVED


class PosterLookupClient:
    """Fetches a single poster reference per identifier. No retries are attempted."""

    def __init__(
        self,
        config: LookupConfig,
        *,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not config.api_key:
            raise ValueError("A lookup API key is required to fetch posters")
        self._config = config
        self._transport = transport
        self._client = client or self._build_client()
        self._owns_client = client is None

    def _build_client(self) -> httpx.Client:
        kwargs: dict[str, object] = {
            "timeout": self._config.request_timeout,
            "headers": {"User-Agent": self._config.user_agent},
        }
        if self._transport:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def build_params(self, imdb_id: str) -> dict[str, str]:
        return {
            self._config.id_param: imdb_id,
            self._config.key_param: self._config.api_key or "",
        }

    def fetch(self, imdb_id: str) -> LookupOutcome:
        try:
            response = self._client.get(self._config.base_url, params=self.build_params(imdb_id))
        except httpx.HTTPError as exc:
            LOGGER.warning("Poster lookup for %s failed: %s", imdb_id, exc)
            return LookupOutcome.transport_error(str(exc) or exc.__class__.__name__)

        if response.status_code != httpx.codes.OK:
            LOGGER.warning("Poster lookup for %s returned status %d", imdb_id, response.status_code)
            return LookupOutcome.transport_error(f"unexpected status code: {response.status_code}")

        return self.classify_payload(imdb_id, response)

    def classify_payload(self, imdb_id: str, response: httpx.Response) -> LookupOutcome:
        try:
            payload = response.json()
        except ValueError as exc:
            LOGGER.warning("Poster lookup for %s returned an unreadable body: %s", imdb_id, exc)
            return LookupOutcome.transport_error("response body is not valid JSON")

        if not isinstance(payload, dict):
            return LookupOutcome.transport_error("response body is not a JSON object")

        poster = payload.get(self._config.poster_field)
        if poster is None:
            return LookupOutcome.not_found()
        if not isinstance(poster, str):
            return LookupOutcome.transport_error(
                f"field {self._config.poster_field!r} is not a string"
            )

        if not poster or poster.lower() == _NOT_AVAILABLE:
            LOGGER.debug("No poster available for %s", imdb_id)
            return LookupOutcome.not_found()
        return LookupOutcome.resolved(poster)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "PosterLookupClient":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.close()
