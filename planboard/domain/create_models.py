"""Pydantic models for creating records in the store."""

import re
from datetime import date as calendar_date

from pydantic import BaseModel, Field, field_validator

from planboard.core.config import constants


HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    assignee_id: str = Field(..., min_length=1, description="Profile the task belongs to")
    title: str = Field(..., min_length=1, description="What needs to be done")
    date: str = Field(..., description="Planned calendar date (YYYY-MM-DD)")
    location: str = Field(..., min_length=1, description="Free-text place name")
    weather_summary: str = Field(default="", description="Weather text computed at creation")
    is_done: bool = Field(default=False, description="New tasks start in the To Do column")

    @field_validator("date")
    @classmethod
    def validate_iso_date(cls, v: str) -> str:
        """Validate date is an ISO calendar date."""
        try:
            calendar_date.fromisoformat(v)
        except ValueError as e:
            raise ValueError("Date must be in YYYY-MM-DD format") from e
        return v


class ProfileCreate(BaseModel):
    """Pydantic model for creating a profile record."""

    name: str = Field(..., description="Display name")
    color: str = Field(..., description="Display accent as #rrggbb")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip the name and enforce the length limit."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        if len(v) > constants.MAX_PROFILE_NAME_LENGTH:
            raise ValueError(f"Name too long (max {constants.MAX_PROFILE_NAME_LENGTH} characters)")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Validate color is a #rrggbb hex string."""
        if not HEX_COLOR_RE.match(v):
            raise ValueError("Color must be a hex value like #60a5fa")
        return v.lower()
