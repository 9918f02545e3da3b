"""Custom exception hierarchy for the savings agent."""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base error for the application."""


class ConfigurationError(AppError):
    """Raised when configuration is invalid or incomplete."""


class PlanNotFoundError(AppError):
    """Raised when a referenced savings plan does not exist."""

    def __init__(self, plan_id: str) -> None:
        super().__init__(f"Plan {plan_id} not found")
        self.plan_id = plan_id


class ChainCallError(AppError):
    """Raised when an RPC read, contract write or receipt wait fails."""

    def __init__(self, message: str, *, tx_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class PersistenceError(AppError):
    """Raised when local state cannot be written."""


class SyncError(AppError):
    """Raised when the external metrics sink rejects a push."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AttributionError(AppError):
    """Raised when an attribution code cannot be encoded."""


__all__ = [
    "AppError",
    "ConfigurationError",
    "PlanNotFoundError",
    "ChainCallError",
    "PersistenceError",
    "SyncError",
    "AttributionError",
]
