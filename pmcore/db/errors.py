"""
Store error taxonomy.

Timeouts and cancellation are not represented here: an expired caller
deadline surfaces as the builtin ``TimeoutError`` and cancellation as
``asyncio.CancelledError``.
"""
from __future__ import annotations

from typing import Optional


class StoreError(Exception):
    """Base class for data-access failures."""


class ValidationError(StoreError):
    """Structurally invalid input handed to the store (empty field set, unknown
    column, sort field outside the allow-list, malformed filter value)."""


class NotFoundError(StoreError):
    """Raised by callers that prefer an exception over a ``None`` result."""

    def __init__(self, entity: str, entity_id) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(StoreError):
    """Underlying database failure; the driver error is kept on ``orig``."""

    def __init__(self, message: str, orig: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.orig = orig


class ConstraintViolationError(StorageError):
    """Integrity constraint rejected the write (unique, foreign key, check)."""
