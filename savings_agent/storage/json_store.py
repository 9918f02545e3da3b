"""Whole-collection JSON files backed by pydantic models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from savings_agent.core.errors import PersistenceError
from savings_agent.core.logging import get_logger


LOG = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class JsonCollection(Generic[ModelT]):
    """A list of models persisted as one JSON document.

    Writes go to a temporary sibling file which then replaces the target, so a
    reader after a crash sees either the previous or the new collection.
    """

    def __init__(self, path: Path, model: type[ModelT]) -> None:
        self._path = path
        self._adapter: TypeAdapter[list[ModelT]] = TypeAdapter(list[model])  # type: ignore[valid-type]

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[ModelT]:
        """Return the persisted items, or an empty list if the file is absent or unreadable."""

        if not self._path.exists():
            return []
        try:
            return self._adapter.validate_json(self._path.read_bytes())
        except (OSError, ValueError, ValidationError) as exc:
            LOG.warning("Discarding unreadable state file", path=str(self._path), error=str(exc))
            return []

    def save(self, items: Iterable[ModelT]) -> None:
        payload = self._adapter.dump_json(list(items), indent=2)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise PersistenceError(f"Could not write {self._path}: {exc}") from exc


__all__ = ["JsonCollection"]
