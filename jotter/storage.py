"""Durable local state.

Only the note collection and the sort preference survive a restart. The
selection, search query, tag filter and archive toggle are session state and
are never written here.
"""
from __future__ import annotations
from pathlib import Path
import json
import logging

from pydantic import BaseModel, Field, ValidationError

from .models import Note, SortOption

logger = logging.getLogger(__name__)


class PersistedState(BaseModel):
    notes: list[Note] = Field(default_factory=list)
    sort_by: SortOption = SortOption.updated


class LocalStateFile:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> PersistedState:
        if not self.path.exists():
            return PersistedState()
        try:
            return PersistedState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ValueError(f"Corrupt state file {self.path}: {e}") from e

    def save(self, state: PersistedState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.debug("saved %d notes to %s", len(state.notes), self.path)


class SyncMarker:
    """Remembers which users already had their local notes uploaded."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> set[str]:
        if not self.path.exists():
            return set()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt sync marker {self.path}: {e}") from e
        return set(data.get("synced", []))

    def has_synced(self, owner_ref: str) -> bool:
        return owner_ref in self._read()

    def mark_synced(self, owner_ref: str) -> None:
        owners = self._read()
        owners.add(owner_ref)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"synced": sorted(owners)}, indent=2), encoding="utf-8")
