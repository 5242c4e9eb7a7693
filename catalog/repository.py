"""Database access for catalog records and poster backfill."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Movie

LOGGER = logging.getLogger(__name__)

_SORT_COLUMNS = {
    "year": Movie.year,
    "rating": Movie.rating,
}


class CatalogStorageError(RuntimeError):
    """Base class for storage failures raised by the repository."""


class StorageUnavailable(CatalogStorageError):
    """Raised when candidate records cannot be read."""


class StorageWriteError(CatalogStorageError):
    """Raised when a write to the catalog cannot be performed."""


class MovieNotFound(CatalogStorageError):
    """Raised when no movie matches the requested identifier."""


class MovieAlreadyExists(CatalogStorageError):
    """Raised when adding a movie whose identifier is already stored."""


class MovieRepository:
    """Reads and writes movies through short-lived sessions.

    Every call opens its own session from ``session_factory``, so a single
    repository may be shared by concurrent workers as long as the underlying
    engine pools connections.
    """

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def select_missing_posters(self, limit: int) -> list[str]:
        """Return up to ``limit`` identifiers of movies whose poster is unset."""

        if limit < 0:
            raise ValueError("limit must be zero or positive")

        statement = select(Movie.imdb_id).where(Movie.poster.is_(None)).limit(limit)
        try:
            with self._session_factory() as session:
                return list(session.scalars(statement))
        except SQLAlchemyError as exc:
            raise StorageUnavailable(str(exc)) from exc

    def update_poster(self, imdb_id: str, poster_url: str) -> int:
        """Store ``poster_url`` for ``imdb_id`` and return the number of rows touched."""

        if not poster_url:
            raise ValueError("poster_url must not be empty")

        statement = update(Movie).where(Movie.imdb_id == imdb_id).values(poster=poster_url)
        try:
            with self._session_factory() as session:
                result = session.execute(statement)
                session.commit()
                return result.rowcount
        except SQLAlchemyError as exc:
            raise StorageWriteError(str(exc)) from exc

    def set_poster(self, imdb_id: str, poster_url: str) -> None:
        if self.update_poster(imdb_id.strip(), poster_url) == 0:
            raise MovieNotFound(f"Movie {imdb_id!r} not found")

    def add_movie(self, imdb_id: str, title: str, year: int, rating: float) -> Movie:
        imdb_id = (imdb_id or "").strip()
        title = (title or "").strip()
        if not imdb_id or not title or not year or not rating:
            raise ValueError("All fields (IMDb id, Title, Year, Rating) are required")

        year = int(year)
        movie = Movie(imdb_id=imdb_id, title=title, year=year, rating=float(rating))
        try:
            with self._session_factory() as session:
                session.add(movie)
                session.commit()
        except IntegrityError as exc:
            raise MovieAlreadyExists(f"Movie {imdb_id!r} already exists") from exc
        except SQLAlchemyError as exc:
            raise StorageWriteError(str(exc)) from exc
        LOGGER.info("Added movie %s (%s, %d)", imdb_id, title, year)
        return movie

    def list_movies(
        self,
        sort_by: Optional[str] = None,
        order: Optional[str] = None,
        year: Optional[int] = None,
    ) -> list[Movie]:
        statement = select(Movie)
        if year:
            statement = statement.where(Movie.year == year)

        column = _SORT_COLUMNS.get((sort_by or "").lower())
        if column is not None:
            direction = column.desc() if (order or "").lower() == "desc" else column.asc()
            statement = statement.order_by(direction)

        try:
            with self._session_factory() as session:
                return list(session.scalars(statement))
        except SQLAlchemyError as exc:
            raise StorageUnavailable(str(exc)) from exc

    def get_movie(self, imdb_id: str) -> Movie:
        imdb_id = (imdb_id or "").strip()
        try:
            with self._session_factory() as session:
                movie = session.get(Movie, imdb_id)
        except SQLAlchemyError as exc:
            raise StorageUnavailable(str(exc)) from exc
        if movie is None:
            raise MovieNotFound(f"Movie {imdb_id!r} not found")
        return movie

    def delete_movie(self, imdb_id: str) -> None:
        imdb_id = (imdb_id or "").strip()
        try:
            with self._session_factory() as session:
                result = session.execute(delete(Movie).where(Movie.imdb_id == imdb_id))
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteError(str(exc)) from exc
        if result.rowcount == 0:
            raise MovieNotFound(f"Movie {imdb_id!r} not found")
        LOGGER.info("Deleted movie %s", imdb_id)
