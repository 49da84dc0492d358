"""
Shared exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class AppError(Exception):
    message: str = "Application error"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class StoreError(AppError):
    """Raised by document store adapters when a read or write is rejected."""

    def __init__(self, message: str = "Document store operation failed", details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message=message, details=details)


class OperationFailedError(AppError):
    """Generic "operation failed" signal carrying the attempted action."""

    def __init__(self, action: str, details: Optional[dict[str, Any]] = None) -> None:
        self.action = action
        super().__init__(message=f"Operation failed: {action}", details=details)
