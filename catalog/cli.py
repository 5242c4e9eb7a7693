"""Command-line entrypoint for managing the movie catalog."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from .backfill import run_configured_backfill
from .config import CatalogConfig
from .database import build_session_factory
from .repository import CatalogStorageError, MovieRepository
from models import Movie

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def build_arg_parser(config: CatalogConfig | None = None) -> argparse.ArgumentParser:
    config = config or CatalogConfig()

    parser = argparse.ArgumentParser(description="Manage the movie catalog and backfill posters")
    parser.add_argument(
        "--db-url",
        type=str,
        default=config.db_url,
        help="SQLAlchemy database URL (default: CATALOG_DATABASE_URL or a local SQLite file)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Add a movie or series")
    add_parser.add_argument("--imdbid", default="tt0000001", help="The IMDb ID of a movie or series")
    add_parser.add_argument("--title", default="Carmencita", help="The movie's or series' title")
    add_parser.add_argument("--year", type=int, default=1894, help="The movie's or series' year of release")
    add_parser.add_argument("--rating", type=float, default=5.7, help="The movie's or series' rating on IMDb")

    list_parser = subparsers.add_parser("list", help="List movie titles")
    list_parser.add_argument("--sort", default="", help="Sort movies by 'year' or 'rating'")
    list_parser.add_argument("--order", default="", help="Order 'asc' or 'desc'")
    list_parser.add_argument("--year", type=int, default=0, help="Filter movies by year")

    details_parser = subparsers.add_parser("details", help="Show the details of a movie")
    details_parser.add_argument("--imdbid", default="tt0000001", help="The IMDb ID of a movie or series")

    delete_parser = subparsers.add_parser("delete", help="Delete a movie")
    delete_parser.add_argument("--imdbid", default="tt0000001", help="The IMDb ID of a movie or series")

    fetch_parser = subparsers.add_parser("fetch-posters", help="Backfill posters for movies without one")
    fetch_parser.add_argument(
        "--limit",
        type=int,
        default=config.backfill.default_limit,
        help="Maximum number of movies to process",
    )
    fetch_parser.add_argument(
        "--workers",
        type=int,
        default=config.backfill.worker_count,
        help="Number of concurrent lookup workers",
    )

    update_parser = subparsers.add_parser("update-poster", help="Set the poster of a movie manually")
    update_parser.add_argument("--imdbid", required=True, help="The IMDb ID of a movie or series")
    update_parser.add_argument("--url", required=True, help="Poster URL to store")

    serve_parser = subparsers.add_parser("serve", help="Start the REST API server")
    serve_parser.add_argument("--host", default=config.api_host, help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=config.api_port, help="Port to listen on")

    return parser


def format_movie(movie: Movie, *, empty_poster: str = "") -> str:
    return (
        f"IMDb id: {movie.imdb_id}\n"
        f"Title: {movie.title}\n"
        f"Rating: {movie.rating:.1f}\n"
        f"Year: {movie.year}\n"
        f"Poster: {movie.poster or empty_poster}"
    )


def _run_command(args: argparse.Namespace, config: CatalogConfig, repo: MovieRepository) -> int:
    if args.command == "add":
        if not args.imdbid or not args.title or not args.year or not args.rating:
            print("All fields (IMDb id, Title, Year, Rating) are required")
            return 1
        movie = repo.add_movie(args.imdbid, args.title, args.year, args.rating)
        print(format_movie(movie, empty_poster="null"))
        return 0

    if args.command == "list":
        for movie in repo.list_movies(sort_by=args.sort, order=args.order, year=args.year):
            print(movie.title)
        return 0

    if args.command == "details":
        if not args.imdbid:
            print("IMDb ID is required")
            return 1
        print(format_movie(repo.get_movie(args.imdbid)))
        return 0

    if args.command == "delete":
        if not args.imdbid:
            print("IMDb ID is required")
            return 1
        repo.delete_movie(args.imdbid)
        print("Movie deleted")
        return 0

    if args.command == "update-poster":
        repo.set_poster(args.imdbid, args.url)
        print("Movie poster updated")
        return 0

    if args.command == "fetch-posters":
        report = run_configured_backfill(config, repo, args.limit, worker_count=args.workers)
        print(
            f"Posters updated: {report.persisted} of {report.selected} "
            f"({report.not_found} not found, {report.transport_errors} lookup errors, "
            f"{report.persist_failures} write errors)"
        )
        return 0

    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    config = CatalogConfig.from_env()
    parser = build_arg_parser(config)
    args = parser.parse_args(argv)

    config.db_url = args.db_url
    if args.command == "serve":
        from .api import serve

        config.api_host = args.host
        config.api_port = args.port
        serve(config)
        return 0

    if args.command == "fetch-posters":
        if args.limit < 0:
            parser.error("--limit must be zero or positive")
        if args.workers < 1:
            parser.error("--workers must be at least 1")
        if not config.lookup.api_key:
            parser.error("OMDB_API_KEY must be set to fetch posters")

    repo = MovieRepository(build_session_factory(config.db_url))
    try:
        return _run_command(args, config, repo)
    except (CatalogStorageError, ValueError) as exc:
        LOGGER.error("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
