from __future__ import annotations
import logging

from .errors import RemoteError
from .models import Note
from .storage import SyncMarker
from .store import NoteStore, content_fields

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Brings a freshly signed-in session in line with the remote store.

    Remote notes always replace local ones on start. Notes that were written
    before the user ever signed in are uploaded once per user; the marker is
    the only thing preventing a second upload, since nothing is deduplicated
    by content. A note whose upload fails stays in the local collection and
    the marker is left unset, so the next start retries just those notes.
    """

    def __init__(self, store: NoteStore, marker: SyncMarker) -> None:
        self.store = store
        self.marker = marker

    async def start(self) -> int:
        owner = self.store.auth.current_user()
        if owner is None:
            return 0
        # snapshot before the fetch replaces the collection
        local_only = [n.model_copy(deep=True) for n in self.store.notes if n.owner_ref is None]

        await self.store.fetch_notes()
        if self.marker.has_synced(owner):
            return 0

        failed = await self.upload(local_only, owner)
        await self.store.fetch_notes()
        uploaded = len(local_only) - len(failed)
        logger.info("uploaded %d of %d local notes for %s", uploaded, len(local_only), owner)
        if failed:
            self._keep(failed)
            logger.warning(
                "kept %d local notes that failed to upload: %s",
                len(failed), ", ".join(n.id for n in failed),
            )
        else:
            self.marker.mark_synced(owner)
        return uploaded

    async def upload(self, notes, owner: str) -> list[Note]:
        """Create each note remotely; returns the ones that failed."""
        failed = []
        for note in notes:
            try:
                await self.store.gateway.create(content_fields(note), owner)
            except RemoteError as e:
                logger.warning("uploading note %s failed: %s", note.id, e)
                failed.append(note)
        return failed

    def _keep(self, notes: list[Note]) -> None:
        present = {n.id for n in self.store.notes}
        self.store.notes.extend(n for n in notes if n.id not in present)
