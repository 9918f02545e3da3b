"""Automated savings portfolio agent: planning, execution, rebalancing and harvesting."""

from importlib import metadata


def get_version() -> str:
    """Return the installed package version."""
    try:
        return metadata.version("savings-agent")
    except metadata.PackageNotFoundError:  # pragma: no cover - fallback for editable installs
        return "0.0.0"


__all__ = ["get_version"]
