"""Profile domain model."""

from pydantic import BaseModel, Field, field_validator


class Profile(BaseModel):
    """Profile data transfer object."""

    id: str = Field(..., description="Unique profile ID from the store")
    name: str = Field(..., description="Display name, unique across profiles")
    color: str = Field(..., description="Display accent as #rrggbb")
    created: str = Field(default="", description="Creation timestamp (ISO format)")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> object:
        """Accept integer ids from local backends."""
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v
