"""Application-level exception types.

Domain errors raised by the limiter and its store adapters. The HTTP layer
maps them to status codes in ``quotaguard.core.exception_handlers``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    operation: str
    backend: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ConfigurationAppError(AppError):
    """Raised when limiter options are invalid."""


class StoreUnavailableError(AppError):
    """Raised when the shared key-value store cannot be read or written."""
