from __future__ import annotations
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional
import logging
import os

from .auth import SessionAuth
from .db import data_home
from .gateway import SqlNoteGateway
from .storage import LocalStateFile, SyncMarker
from .store import NoteStore
from .sync import SyncCoordinator

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    home: Path
    user: Optional[str] = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            home=data_home(),
            user=os.getenv("JOTTER_USER") or None,
            log_level=os.getenv("JOTTER_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def state_path(self) -> Path:
        return self.home / "state.json"

    @property
    def marker_path(self) -> Path:
        return self.home / "synced.json"


@asynccontextmanager
async def open_store(settings: Settings, gateway=None, sync: bool = True) -> AsyncIterator[NoteStore]:
    """Load local notes, sync when signed in, and save everything on exit."""
    state_file = LocalStateFile(settings.state_path)
    store = NoteStore.from_state(
        state_file.load(),
        gateway if gateway is not None else SqlNoteGateway(),
        SessionAuth(settings.user),
    )
    if sync and settings.user:
        await SyncCoordinator(store, SyncMarker(settings.marker_path)).start()
    try:
        yield store
    finally:
        await store.aclose()
        state_file.save(store.export_state())
        logger.debug("store closed with %d notes", len(store.notes))
