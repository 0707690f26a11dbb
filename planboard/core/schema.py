"""Schema management for the SQLite and PocketBase backends (code-first approach)."""

import logging
from typing import Any

import httpx
from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from planboard.core.config import Settings, constants, settings
from planboard.core.sqlite_client import SQLiteDBClient


logger = logging.getLogger(__name__)


# Central list of all collections in the schema (parents first)
COLLECTIONS = ["users", "todos"]

HTTP_NOT_FOUND = 404

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT NOT NULL,
    created TEXT NOT NULL,
    updated TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS todos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assignee_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    date TEXT NOT NULL,
    location TEXT NOT NULL,
    weather_summary TEXT NOT NULL DEFAULT '',
    is_done INTEGER NOT NULL DEFAULT 0,
    created TEXT NOT NULL,
    updated TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_todos_assignee ON todos (assignee_id);
"""


async def init_sqlite_schema(client: SQLiteDBClient) -> None:
    """Create the SQLite tables if they do not exist (idempotent)."""
    conn = await client.connection()
    await conn.executescript(SQLITE_SCHEMA)
    await conn.commit()
    logger.info("SQLite schema initialized", extra={"db_path": str(client.db_path)})


def _autodate_fields() -> list[dict[str, Any]]:
    return [
        {"name": "created", "type": "autodate", "onCreate": True, "onUpdate": False},
        {"name": "updated", "type": "autodate", "onCreate": True, "onUpdate": True},
    ]


def _get_collection_schema(
    *,
    collection_name: str,
    collection_ids: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Get the expected schema for a collection.

    PocketBase requires actual collection IDs (not names) in relation fields.

    Args:
        collection_name: The name of the collection to get the schema for.
        collection_ids: Optional mapping of collection names to their actual IDs.
    """
    ids = collection_ids or {}

    schemas = {
        "users": {
            "name": "users",
            "type": "base",
            "system": False,
            # No authentication: profiles are open to every client
            "listRule": "",
            "viewRule": "",
            "createRule": "",
            "updateRule": "",
            "deleteRule": "",
            "fields": [
                {"name": "name", "type": "text", "required": True, "max": constants.MAX_PROFILE_NAME_LENGTH},
                {"name": "color", "type": "text", "required": True, "pattern": r"^#[0-9a-fA-F]{6}$"},
                *_autodate_fields(),
            ],
            "indexes": ["CREATE UNIQUE INDEX idx_users_name ON users (name)"],
        },
        "todos": {
            "name": "todos",
            "type": "base",
            "system": False,
            "listRule": "",
            "viewRule": "",
            "createRule": "",
            "updateRule": "",
            "deleteRule": "",
            "fields": [
                {
                    "name": "assignee_id",
                    "type": "relation",
                    "required": True,
                    "collectionId": ids.get("users", "users"),
                    "cascadeDelete": True,
                    "maxSelect": 1,
                },
                {"name": "title", "type": "text", "required": True},
                {"name": "date", "type": "text", "required": True, "pattern": r"^\d{4}-\d{2}-\d{2}$"},
                {"name": "location", "type": "text", "required": True},
                {"name": "weather_summary", "type": "text", "required": False},
                # required=False: PocketBase rejects False on required bool fields
                {"name": "is_done", "type": "bool", "required": False},
                *_autodate_fields(),
            ],
            "indexes": ["CREATE INDEX idx_todos_assignee ON todos (assignee_id)"],
        },
    }

    return schemas[collection_name]


async def _collection_exists(*, client: httpx.AsyncClient, collection_name: str) -> bool:
    response = await client.get(f"/api/collections/{collection_name}")
    if response.status_code == HTTP_NOT_FOUND:
        return False
    response.raise_for_status()
    return True


async def _get_collection_id(*, client: httpx.AsyncClient, collection_name: str) -> str:
    response = await client.get(f"/api/collections/{collection_name}")
    response.raise_for_status()
    return response.json()["id"]


async def _create_collection(*, client: httpx.AsyncClient, schema: dict[str, Any]) -> None:
    response = await client.post("/api/collections", json=schema)
    response.raise_for_status()
    logger.info("Created collection %s", schema["name"])


async def _update_collection(*, client: httpx.AsyncClient, collection_name: str, schema: dict[str, Any]) -> None:
    """Add any fields missing from an existing collection."""
    response = await client.get(f"/api/collections/{collection_name}")
    response.raise_for_status()
    current = response.json()

    existing = {field["name"] for field in current.get("fields", [])}
    missing = [field for field in schema["fields"] if field["name"] not in existing]
    if not missing:
        logger.debug("Collection %s is up to date", collection_name)
        return

    payload = {"fields": [*current.get("fields", []), *missing]}
    response = await client.patch(f"/api/collections/{collection_name}", json=payload)
    response.raise_for_status()
    logger.info("Updated collection %s: added %s", collection_name, [f["name"] for f in missing])


async def sync_pocketbase_schema(app_settings: Settings | None = None) -> None:
    """Sync PocketBase collections with the domain models (idempotent).

    Raises:
        ValueError: If admin credentials are not configured
        ClientResponseError: If admin authentication fails
    """
    active = app_settings or settings
    email = active.require_credential("pocketbase_admin_email", "PocketBase admin email")
    password = active.require_credential("pocketbase_admin_password", "PocketBase admin password")

    logger.info("Starting PocketBase schema sync...")
    client = PocketBase(active.pocketbase_url)

    try:
        client.admins.auth_with_password(email, password)
    except ClientResponseError as e:
        logger.error("Failed to authenticate as admin: %s", e)
        raise

    async with httpx.AsyncClient(base_url=active.pocketbase_url, timeout=constants.API_TIMEOUT_SECONDS) as http_client:
        http_client.headers["Authorization"] = f"Bearer {client.auth_store.token}"

        collection_ids: dict[str, str] = {}
        for collection_name in COLLECTIONS:
            schema = _get_collection_schema(collection_name=collection_name, collection_ids=collection_ids)

            if not await _collection_exists(client=http_client, collection_name=collection_name):
                await _create_collection(client=http_client, schema=schema)
            else:
                await _update_collection(client=http_client, collection_name=collection_name, schema=schema)

            collection_ids[collection_name] = await _get_collection_id(
                client=http_client, collection_name=collection_name
            )

    logger.info("PocketBase schema sync complete")
