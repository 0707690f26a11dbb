"""Typed return values for the service layer."""

from planboard.models.service_models import OperationResult, ProfileResult, TaskResult


__all__ = ["OperationResult", "ProfileResult", "TaskResult"]
