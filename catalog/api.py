"""REST API exposing the movie catalog and the poster backfill trigger."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import Headers

from .backfill import run_configured_backfill
from .config import CatalogConfig
from .database import build_session_factory
from .repository import (
    MovieAlreadyExists,
    MovieNotFound,
    MovieRepository,
    StorageUnavailable,
    StorageWriteError,
)

LOGGER = logging.getLogger(__name__)


class NoContentCORSMiddleware(CORSMiddleware):
    """Answers accepted preflight requests with 204 No Content."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != status.HTTP_200_OK:
            return response
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in {"content-length", "content-type"}
        }
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)


class MovieIn(BaseModel):
    IMDb_id: Optional[str] = None
    Title: Optional[str] = None
    Year: Optional[int] = None
    Rating: Optional[float] = None


def get_repository(request: Request) -> MovieRepository:
    return request.app.state.repository


def get_config(request: Request) -> CatalogConfig:
    return request.app.state.config


def create_app(
    config: CatalogConfig | None = None,
    *,
    repository: MovieRepository | None = None,
    lookup_transport: httpx.BaseTransport | None = None,
) -> FastAPI:
    config = config or CatalogConfig.from_env()
    app = FastAPI(title="Movie Catalog", version="1.0.0")
    app.state.config = config
    app.state.repository = repository or MovieRepository(build_session_factory(config.db_url))
    app.state.lookup_transport = lookup_transport

    app.add_middleware(
        NoContentCORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_input(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "Invalid input"})

    @app.post("/movies", status_code=status.HTTP_201_CREATED)
    def add_movie(payload: MovieIn, repo: MovieRepository = Depends(get_repository)) -> dict:
        if not payload.IMDb_id or not payload.Title or not payload.Year or not payload.Rating:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required fields: IMDb ID, Title, Year, or Rating",
            )
        try:
            movie = repo.add_movie(payload.IMDb_id, payload.Title, payload.Year, payload.Rating)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except MovieAlreadyExists as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except StorageWriteError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Could not add movie: {exc}",
            ) from exc
        return movie.to_dict()

    @app.get("/movies")
    def list_movies(
        sort: Optional[str] = None,
        order: Optional[str] = None,
        year: Optional[int] = None,
        repo: MovieRepository = Depends(get_repository),
    ) -> list[dict]:
        try:
            movies = repo.list_movies(sort_by=sort, order=order, year=year)
        except StorageUnavailable as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
        return [movie.to_dict() for movie in movies]

    @app.get("/movies/{imdb_id}")
    def movie_details(imdb_id: str, repo: MovieRepository = Depends(get_repository)) -> dict:
        try:
            return repo.get_movie(imdb_id).to_dict()
        except MovieNotFound as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StorageUnavailable as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    @app.delete("/movies/{imdb_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_movie(imdb_id: str, repo: MovieRepository = Depends(get_repository)) -> Response:
        try:
            repo.delete_movie(imdb_id)
        except MovieNotFound as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StorageWriteError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/movies/posters/fetch")
    def fetch_posters(
        request: Request,
        limit: int = Query(default=config.backfill.default_limit, ge=0),
        workers: Optional[int] = Query(default=None, ge=1),
        repo: MovieRepository = Depends(get_repository),
        settings: CatalogConfig = Depends(get_config),
    ) -> dict:
        try:
            report = run_configured_backfill(
                settings,
                repo,
                limit,
                worker_count=workers,
                transport=request.app.state.lookup_transport,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
        except StorageUnavailable as exc:
            LOGGER.error("Poster backfill aborted: %s", exc)
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
        return report.summary()

    return app


def serve(config: CatalogConfig) -> None:
    import uvicorn

    app = create_app(config)
    LOGGER.info("Starting server on %s:%d", config.api_host, config.api_port)
    uvicorn.run(app, host=config.api_host, port=config.api_port)
