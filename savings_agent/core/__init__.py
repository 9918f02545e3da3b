"""Core utilities for configuration, logging, and errors."""

__all__ = [
    "config",
    "logging",
    "errors",
]
