"""PocketBase database backend (hosted relational store).

The PocketBase SDK is synchronous; calls run in a worker thread so the event
loop keeps serving other work while a request is in flight.
"""

import asyncio
import logging
from typing import Any

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from planboard.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError


logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404

# Bookkeeping attributes the SDK sets on Record objects
_SDK_ATTRIBUTES = {"collection_id", "collection_name", "expand"}


def _record_to_dict(record: Any) -> dict[str, Any]:
    data = {key: value for key, value in vars(record).items() if key not in _SDK_ATTRIBUTES}
    for key in ("created", "updated"):
        if key in data and not isinstance(data[key], str):
            data[key] = data[key].isoformat()
    return data


def _duplicate_field(error: ClientResponseError) -> str | None:
    """Return the field name PocketBase flagged as not unique, if any."""
    if error.status != HTTP_BAD_REQUEST or not isinstance(error.data, dict):
        return None
    fields = error.data.get("data", {})
    if not isinstance(fields, dict):
        return None
    for field, detail in fields.items():
        if isinstance(detail, dict) and detail.get("code") == "validation_not_unique":
            return field
    return None


class PocketBaseDBClient:
    """PocketBase-backed implementation of the DB client interface."""

    def __init__(self, url: str, *, client: PocketBase | None = None) -> None:
        self.url = url
        self._pb = client or PocketBase(url)

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a new record in the specified collection."""
        try:
            record = await asyncio.to_thread(self._pb.collection(collection).create, data)
        except ClientResponseError as e:
            field = _duplicate_field(e)
            if field:
                raise DuplicateRecordError(f"Value for {field} must be unique in {collection}", field=field) from e
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            raise DatabaseError(f"Failed to create record in {collection}: {e}") from e
        logger.info("Created record", extra={"collection": collection, "record_id": record.id})
        return _record_to_dict(record)

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Get a record by ID from the specified collection."""
        try:
            record = await asyncio.to_thread(self._pb.collection(collection).get_one, record_id)
        except ClientResponseError as e:
            if e.status == HTTP_NOT_FOUND:
                raise RecordNotFoundError(f"Record not found in {collection}: {record_id}") from e
            raise DatabaseError(f"Failed to get record from {collection}: {e}") from e
        return _record_to_dict(record)

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record in the specified collection."""
        try:
            record = await asyncio.to_thread(self._pb.collection(collection).update, record_id, data)
        except ClientResponseError as e:
            if e.status == HTTP_NOT_FOUND:
                raise RecordNotFoundError(f"Record not found in {collection}: {record_id}") from e
            field = _duplicate_field(e)
            if field:
                raise DuplicateRecordError(f"Value for {field} must be unique in {collection}", field=field) from e
            logger.error(
                "update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise DatabaseError(f"Failed to update record in {collection}: {e}") from e
        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return _record_to_dict(record)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record from the specified collection."""
        try:
            await asyncio.to_thread(self._pb.collection(collection).delete, record_id)
        except ClientResponseError as e:
            if e.status == HTTP_NOT_FOUND:
                raise RecordNotFoundError(f"Record not found in {collection}: {record_id}") from e
            logger.error(
                "delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise DatabaseError(f"Failed to delete record from {collection}: {e}") from e
        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records from the specified collection with filtering and pagination."""
        # Only include filter and sort in query_params if they're not empty
        query_params = {}
        if sort:
            query_params["sort"] = sort
        if filter_query:
            query_params["filter"] = filter_query

        try:
            result = await asyncio.to_thread(
                self._pb.collection(collection).get_list, page, per_page, query_params
            )
        except ClientResponseError as e:
            logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
            raise DatabaseError(f"Failed to list records from {collection}: {e}") from e
        return [_record_to_dict(item) for item in result.items]

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Get the first record matching the filter query, or None if not found."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None

    async def close(self) -> None:
        """The SDK holds no open resources."""
