"""Pydantic models for service layer return types.

Board and registry operations catch store failures at their boundary and
report them through these results instead of raising.
"""

from pydantic import BaseModel, Field

from planboard.core.errors import ErrorResponse
from planboard.domain.profile import Profile
from planboard.domain.task import Task


class OperationResult(BaseModel):
    """Outcome of a user-initiated operation.

    A refused no-op (blank input) is success=False with no error attached.
    """

    success: bool = Field(..., description="Whether the operation took effect")
    error: ErrorResponse | None = Field(None, description="User-facing error when the store rejected the operation")

    @classmethod
    def ok(cls, **kwargs: object) -> "OperationResult":
        return cls(success=True, **kwargs)

    @classmethod
    def refused(cls) -> "OperationResult":
        return cls(success=False)

    @classmethod
    def failed(cls, error: ErrorResponse) -> "OperationResult":
        return cls(success=False, error=error)


class TaskResult(OperationResult):
    """Outcome of a task operation."""

    task: Task | None = Field(None, description="The affected task, when there is one")


class ProfileResult(OperationResult):
    """Outcome of a profile operation."""

    profile: Profile | None = Field(None, description="The affected profile, when there is one")
