"""Domain models and DTOs."""

from planboard.domain.create_models import ProfileCreate, TaskCreate
from planboard.domain.profile import Profile
from planboard.domain.task import Column, DragMove, Task


__all__ = [
    "Column",
    "DragMove",
    "Profile",
    "ProfileCreate",
    "Task",
    "TaskCreate",
]
