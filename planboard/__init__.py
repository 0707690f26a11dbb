"""planboard - personal task-planning board."""
