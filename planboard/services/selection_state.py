"""Active profile selection and the assignee for new tasks."""

import logging

from planboard.domain.profile import Profile
from planboard.models.service_models import OperationResult
from planboard.services.board_state import BoardState


logger = logging.getLogger(__name__)


class SelectionState:
    """Which profiles are shown on the board, and who new tasks go to.

    Active ids are kept in registry creation order. The assignee is always a
    member of the active set, or None when the set is empty; whenever the
    current assignee drops out it becomes the first active profile.
    """

    def __init__(self, profiles: list[Profile] | None = None, *, board: BoardState | None = None) -> None:
        self._order: list[str] = [profile.id for profile in profiles or []]
        self._active: set[str] = set()
        self.assignee_id: str | None = None
        self._board = board

    @property
    def active_ids(self) -> list[str]:
        return [profile_id for profile_id in self._order if profile_id in self._active]

    def is_active(self, profile_id: str) -> bool:
        return profile_id in self._active

    async def toggle(self, profile: Profile | str) -> OperationResult:
        """Add the profile to the active set if absent, remove it if present, then reload the board."""
        profile_id = profile.id if isinstance(profile, Profile) else profile

        if profile_id in self._active:
            self._active.remove(profile_id)
        else:
            if profile_id not in self._order:
                self._order.append(profile_id)
            self._active.add(profile_id)

        self._reconcile_assignee()
        logger.debug("Selection changed", extra={"active": self.active_ids, "assignee_id": self.assignee_id})
        return await self._reload()

    def set_assignee(self, profile_id: str) -> None:
        """Choose the assignee for new tasks.

        Raises:
            ValueError: If the profile is not active
        """
        if profile_id not in self._active:
            raise ValueError(f"Cannot assign to inactive profile {profile_id}")
        self.assignee_id = profile_id

    async def sync_profiles(self, profiles: list[Profile]) -> OperationResult:
        """Adopt the registry's current profiles (after a create or delete).

        Active ids that no longer exist are dropped; the board reloads only if
        the active set changed.
        """
        self._order = [profile.id for profile in profiles]
        remaining = self._active & set(self._order)
        changed = remaining != self._active
        self._active = remaining
        self._reconcile_assignee()
        if changed:
            return await self._reload()
        return OperationResult.ok()

    def _reconcile_assignee(self) -> None:
        active = self.active_ids
        if not active:
            self.assignee_id = None
        elif self.assignee_id not in active:
            self.assignee_id = active[0]

    async def _reload(self) -> OperationResult:
        if self._board is None:
            return OperationResult.ok()
        # An empty selection clears the board
        return await self._board.load(self.active_ids)
