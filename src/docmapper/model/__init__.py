"""Model instance layer exports."""

from .instance import ModelInstance, storage_value
from .tracking import ChangeTracker, TrackedList
from .validation import ValidationOutcome, Validator

__all__ = [
    "ChangeTracker",
    "ModelInstance",
    "TrackedList",
    "ValidationOutcome",
    "Validator",
    "storage_value",
]
