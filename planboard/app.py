"""planboard - application wiring.

Builds the planner from settings: one persistence backend chosen at startup,
the weather collaborator, and the board/selection/profile services sharing
them.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from planboard.core.config import Settings, constants, settings
from planboard.core.db_client import DBClient
from planboard.core.logging import configure_logfire
from planboard.core.memory_client import InMemoryDBClient
from planboard.core.pocketbase_client import PocketBaseDBClient
from planboard.core.schema import init_sqlite_schema
from planboard.core.sqlite_client import SQLiteDBClient
from planboard.services.board_state import BoardState
from planboard.services.profile_service import ProfileRegistry
from planboard.services.selection_state import SelectionState
from planboard.services.task_store import TaskStore
from planboard.services.weather_service import CitySearch, WeatherLookup


logger = logging.getLogger(__name__)


@dataclass
class Planner:
    """All services of one running board, sharing a single backend."""

    settings: Settings
    db: DBClient
    http_client: httpx.AsyncClient
    weather: WeatherLookup
    city_search: CitySearch
    tasks: TaskStore
    profiles: ProfileRegistry
    board: BoardState
    selection: SelectionState
    owns_db: bool = True
    owns_http_client: bool = True

    async def close(self) -> None:
        """Settle outstanding moves, then release the backend and HTTP client.

        A db or http_client passed in by the caller stays open; the caller closes it.
        """
        await self.board.drain()
        self.board.close()
        if self.owns_http_client:
            await self.http_client.aclose()
        if self.owns_db:
            await self.db.close()


def create_db_client(app_settings: Settings | None = None) -> DBClient:
    """Instantiate the persistence backend named by settings.storage_backend."""
    active = app_settings or settings
    if active.storage_backend == "memory":
        return InMemoryDBClient()
    if active.storage_backend == "sqlite":
        return SQLiteDBClient(active.sqlite_db_path)
    if active.storage_backend == "pocketbase":
        return PocketBaseDBClient(active.pocketbase_url)
    raise ValueError(f"Unknown storage backend: {active.storage_backend}")


def build_planner(
    app_settings: Settings | None = None,
    *,
    db: DBClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Planner:
    """Wire the services together.

    db and http_client may be injected; the planner then leaves closing them to the caller.
    """
    active = app_settings or settings
    owns_db = db is None
    owns_http_client = http_client is None
    db = db or create_db_client(active)
    http_client = http_client or httpx.AsyncClient(timeout=constants.WEATHER_TIMEOUT_SECONDS)

    weather = WeatherLookup(http_client=http_client, app_settings=active)
    tasks = TaskStore(db)
    board = BoardState(tasks=tasks, weather=weather)

    return Planner(
        settings=active,
        db=db,
        http_client=http_client,
        weather=weather,
        city_search=CitySearch(weather),
        tasks=tasks,
        profiles=ProfileRegistry(db, tasks),
        board=board,
        selection=SelectionState(board=board),
        owns_db=owns_db,
        owns_http_client=owns_http_client,
    )


async def validate_startup_configuration(planner: Planner) -> None:
    """Check the backend is reachable and seed the selection with the registry order.

    Raises:
        ValueError: If the PocketBase URL is not configured
        ConnectionError: If the store cannot be queried
    """
    logger.info("startup_validation_begin", extra={"backend": planner.settings.storage_backend})
    if planner.settings.storage_backend == "pocketbase":
        planner.settings.require_credential("pocketbase_url", "PocketBase URL")

    try:
        profiles = await planner.profiles.list_profiles()
    except Exception as e:
        logger.error("startup_validation_failed", extra={"backend": planner.settings.storage_backend, "error": str(e)})
        raise ConnectionError(f"{planner.settings.storage_backend} store check failed: {e}") from e

    await planner.selection.sync_profiles(profiles)
    logger.info("startup_validation_complete", extra={"status": "ok", "profiles": len(profiles)})


@asynccontextmanager
async def open_planner(
    app_settings: Settings | None = None,
    *,
    db: DBClient | None = None,
    http_client: httpx.AsyncClient | None = None,
    configure_logging: bool = True,
) -> AsyncIterator[Planner]:
    """Planner lifespan: configure logging, prepare schema, validate, then clean up."""
    active = app_settings or settings
    if configure_logging:
        configure_logfire(active)

    planner = build_planner(active, db=db, http_client=http_client)
    try:
        if isinstance(planner.db, SQLiteDBClient):
            await init_sqlite_schema(planner.db)
        await validate_startup_configuration(planner)
        yield planner
    finally:
        await planner.close()
