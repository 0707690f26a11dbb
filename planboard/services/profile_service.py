"""Profile registry: create, rename, recolor and delete profiles."""

import logging

from pydantic import ValidationError

from planboard.core.config import constants
from planboard.core.db_client import DBClient
from planboard.core.errors import classify_persistence_error
from planboard.core.logging import span
from planboard.domain.create_models import HEX_COLOR_RE, ProfileCreate
from planboard.domain.profile import Profile
from planboard.models.service_models import OperationResult, ProfileResult
from planboard.services.task_store import TaskStore


logger = logging.getLogger(__name__)

USERS = "users"


class ProfileRegistry:
    """CRUD over profile records.

    Listing raises on store failure so startup can fail fast; every mutating
    operation reports failures through its ProfileResult instead.
    """

    def __init__(self, db: DBClient, tasks: TaskStore) -> None:
        self._db = db
        self._tasks = tasks

    async def list_profiles(self) -> list[Profile]:
        """Return all profiles in creation order (oldest first).

        Raises:
            DatabaseError: If the store query fails
        """
        records = await self._db.list_records(
            collection=USERS, sort="+created", per_page=constants.DEFAULT_PER_PAGE_LIMIT
        )
        return [Profile.model_validate(record) for record in records]

    async def _next_color(self) -> str:
        count = len(await self.list_profiles())
        return constants.PROFILE_COLORS[count % len(constants.PROFILE_COLORS)]

    async def create_profile(self, name: str, color: str | None = None) -> ProfileResult:
        """Create a profile.

        A blank name or malformed color is refused. A duplicate name fails with
        ERR_DUPLICATE_NAME, distinct from other store failures.
        """
        if not name.strip():
            return ProfileResult.refused()

        with span("profile_service.create_profile"):
            try:
                data = ProfileCreate(name=name, color=color or await self._next_color())
                record = await self._db.create_record(collection=USERS, data=data.model_dump())
            except ValidationError:
                return ProfileResult.refused()
            except Exception as e:
                logger.error("Failed to create profile", extra={"name": name, "error": str(e)})
                return ProfileResult.failed(classify_persistence_error(e, action="create the profile"))

        profile = Profile.model_validate(record)
        logger.info("Created profile %s (%s)", profile.name, profile.id)
        return ProfileResult.ok(profile=profile)

    async def rename_profile(self, profile_id: str, name: str) -> ProfileResult:
        """Rename a profile; blank names are refused, duplicates reported."""
        name = name.strip()
        if not name or len(name) > constants.MAX_PROFILE_NAME_LENGTH:
            return ProfileResult.refused()

        with span("profile_service.rename_profile"):
            try:
                record = await self._db.update_record(collection=USERS, record_id=profile_id, data={"name": name})
            except Exception as e:
                logger.error("Failed to rename profile", extra={"profile_id": profile_id, "error": str(e)})
                return ProfileResult.failed(classify_persistence_error(e, action="rename the profile"))

        return ProfileResult.ok(profile=Profile.model_validate(record))

    async def recolor_profile(self, profile_id: str, color: str) -> ProfileResult:
        """Change a profile's display accent."""
        if not HEX_COLOR_RE.match(color):
            return ProfileResult.refused()

        try:
            record = await self._db.update_record(
                collection=USERS, record_id=profile_id, data={"color": color.lower()}
            )
        except Exception as e:
            logger.error("Failed to recolor profile", extra={"profile_id": profile_id, "error": str(e)})
            return ProfileResult.failed(classify_persistence_error(e, action="change the profile color"))

        return ProfileResult.ok(profile=Profile.model_validate(record))

    async def delete_profile(self, profile_id: str) -> OperationResult:
        """Delete a profile and every task it owns.

        Tasks go first so no task is ever left pointing at a missing profile;
        if that step fails the profile is kept.
        """
        with span("profile_service.delete_profile"):
            try:
                removed = await self._tasks.delete_for_assignee(profile_id)
            except Exception as e:
                logger.error("Failed to delete profile tasks", extra={"profile_id": profile_id, "error": str(e)})
                return OperationResult.failed(classify_persistence_error(e, action="delete the profile's tasks"))

            try:
                await self._db.delete_record(collection=USERS, record_id=profile_id)
            except Exception as e:
                logger.error("Failed to delete profile", extra={"profile_id": profile_id, "error": str(e)})
                return OperationResult.failed(classify_persistence_error(e, action="delete the profile"))

        logger.info("Deleted profile %s and %d tasks", profile_id, removed)
        return OperationResult.ok()
