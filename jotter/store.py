"""In-memory note collection with optimistic remote mirroring.

Every mutator changes local state first and returns right away. When a user
is signed in, the matching remote call is queued in an outbox that a single
asyncio task drains in order. Remote failures are logged and never undo the
local change; only :meth:`NoteStore.toggle_public` reports them to its caller.
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Iterable, Optional
import asyncio
import logging

from .auth import AuthProvider
from .errors import AuthRequired, NotFoundError, RemoteError
from .gateway import RemoteNoteGateway
from .models import Note, NoteColor, SortOption, new_note_id, new_public_slug, normal_tag, normal_tags, utc_now
from .storage import PersistedState

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "content", "tags", "is_pinned", "is_archived", "color"})


@dataclass
class _Command:
    label: str
    run: Callable[[], Awaitable[Any]]


def content_fields(note: Note) -> dict[str, Any]:
    return {
        "title": note.title,
        "content": note.content,
        "tags": list(note.tags),
        "is_pinned": note.is_pinned,
        "is_archived": note.is_archived,
        "color": note.color,
    }


class NoteStore:
    def __init__(
        self,
        gateway: RemoteNoteGateway,
        auth: AuthProvider,
        notes: Optional[Iterable[Note]] = None,
        sort_by: SortOption | str = SortOption.updated,
    ) -> None:
        self.gateway = gateway
        self.auth = auth
        self.notes: list[Note] = list(notes or [])
        self.sort_by = SortOption(sort_by)

        # session state, never persisted
        self.active_note_id: Optional[str] = None
        self.search_query: str = ""
        self.filter_tag: Optional[str] = None
        self.show_archived: bool = False

        self._outbox: deque[_Command] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._remote_ids: dict[str, str] = {}  # local id -> server id
        self.closed = False

    # ---------- persistence boundary ----------
    @classmethod
    def from_state(cls, state: PersistedState, gateway: RemoteNoteGateway, auth: AuthProvider) -> "NoteStore":
        return cls(gateway, auth, notes=state.notes, sort_by=state.sort_by)

    def export_state(self) -> PersistedState:
        return PersistedState(notes=[n.model_copy(deep=True) for n in self.notes], sort_by=self.sort_by)

    # ---------- lookup ----------
    def _find(self, id: Optional[str]) -> Optional[Note]:
        if id is None:
            return None
        for note in self.notes:
            if note.id == id:
                return note
        return None

    def find(self, identifier: str) -> Optional[Note]:
        """Note by id, falling back to an exact title match."""
        note = self._find(identifier)
        if note is not None:
            return note
        for n in self.notes:
            if n.title == identifier:
                return n
        return None

    def _remote_id(self, id: str) -> str:
        return self._remote_ids.get(id, id)

    # ---------- outbox ----------
    def _mirror(self, label: str, factory: Callable[[], Awaitable[Any]]) -> None:
        if self.auth.current_user() is None:
            logger.debug("not signed in, %s stays local", label)
            return
        self._outbox.append(_Command(label, factory))
        self._kick()

    def _kick(self) -> None:
        if not self._outbox:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # picked up by the next call made inside a loop
            return
        if self._worker is None or self._worker.done() or self._worker.get_loop() is not loop:
            self._worker = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._outbox:
            cmd = self._outbox.popleft()
            try:
                await cmd.run()
            except (RemoteError, NotFoundError) as e:
                logger.warning("remote %s failed: %s", cmd.label, e)
            except Exception:
                logger.exception("remote %s failed unexpectedly", cmd.label)

    @property
    def pending(self) -> int:
        return len(self._outbox)

    async def flush(self) -> None:
        """Wait until every queued remote mirror has run."""
        self._kick()
        while self._worker is not None and not self._worker.done():
            await self._worker
            self._kick()

    async def aclose(self) -> None:
        await self.flush()
        self.closed = True

    # ---------- remote commands ----------
    async def _remote_create(self, local_id: str, owner_ref: str) -> None:
        note = self._find(local_id)
        if note is None:
            logger.info("note %s deleted before upload, skipping create", local_id)
            return
        created = await self.gateway.create(content_fields(note), owner_ref)
        self._remote_ids[local_id] = created.id
        note = self._find(local_id)
        if note is None:
            # a queued delete resolves local_id to created.id and removes the row
            logger.info("note %s deleted during upload, not restoring it", local_id)
            return
        note.id = created.id
        note.owner_ref = created.owner_ref
        note.created_at = created.created_at
        note.updated_at = max(note.updated_at, created.updated_at)
        if self.active_note_id == local_id:
            self.active_note_id = created.id

    async def _remote_update(self, id: str, fields: dict[str, Any]) -> None:
        await self.gateway.update(self._remote_id(id), fields)

    async def _remote_delete(self, id: str) -> None:
        await self.gateway.delete(self._remote_id(id))

    def _mirror_update(self, id: str, fields: dict[str, Any]) -> None:
        self._mirror(f"update {id}", partial(self._remote_update, id, fields))

    # ---------- mutations ----------
    def create_note(self) -> str:
        note = Note.empty()
        self.notes.insert(0, note)
        self.active_note_id = note.id
        owner = self.auth.current_user()
        if owner is not None:
            self._mirror(f"create {note.id}", partial(self._remote_create, note.id, owner))
        return note.id

    def update_note(self, id: str, /, **fields: Any) -> None:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        note = self._find(id)
        if note is None:
            return
        if "tags" in fields:
            fields["tags"] = normal_tags(fields["tags"])
        if "color" in fields:
            fields["color"] = NoteColor(fields["color"])
        for key, value in fields.items():
            setattr(note, key, value)
        note.touch()
        self._mirror_update(id, dict(fields))

    def delete_note(self, id: str) -> None:
        if self._find(id) is None:
            return
        self.notes = [n for n in self.notes if n.id != id]
        if self.active_note_id == id:
            self.active_note_id = self.notes[0].id if self.notes else None
        self._mirror(f"delete {id}", partial(self._remote_delete, id))

    def duplicate_note(self, id: str) -> Optional[str]:
        note = self._find(id)
        if note is None:
            return None
        now = utc_now()
        # the copy is local-only: no owner, and never the source note's share link
        copy = note.model_copy(
            deep=True,
            update={
                "id": new_note_id(),
                "title": f"{note.title} (copy)",
                "created_at": now,
                "updated_at": now,
                "owner_ref": None,
                "is_public": False,
                "public_slug": None,
            },
        )
        self.notes.insert(0, copy)
        self.active_note_id = copy.id
        return copy.id

    def toggle_pin(self, id: str) -> None:
        note = self._find(id)
        if note is None:
            return
        note.is_pinned = not note.is_pinned
        note.touch()
        self._mirror_update(id, {"is_pinned": note.is_pinned})

    def toggle_archive(self, id: str) -> None:
        note = self._find(id)
        if note is None:
            return
        note.is_archived = not note.is_archived
        note.touch()
        self._mirror_update(id, {"is_archived": note.is_archived})

    def set_color(self, id: str, color: NoteColor | str) -> None:
        color = NoteColor(color)
        note = self._find(id)
        if note is None:
            return
        note.color = color
        note.touch()
        self._mirror_update(id, {"color": color})

    def add_tag(self, id: str, tag: str) -> None:
        tag = normal_tag(tag)
        note = self._find(id)
        if not tag or note is None or tag in note.tags:
            return
        note.tags.append(tag)
        note.touch()
        self._mirror_update(id, {"tags": list(note.tags)})

    def remove_tag(self, id: str, tag: str) -> None:
        tag = normal_tag(tag)
        note = self._find(id)
        if note is None or tag not in note.tags:
            return
        note.tags.remove(tag)
        note.touch()
        self._mirror_update(id, {"tags": list(note.tags)})

    async def toggle_public(self, id: str) -> Optional[Note]:
        """Share or unshare a note and wait for the remote store to agree.

        Raises AuthRequired when nobody is signed in; remote failures are
        re-raised after the local change has been made.
        """
        if self.auth.current_user() is None:
            raise AuthRequired("You must be signed in to share notes.")
        note = self._find(id)
        if note is None:
            return None
        note.is_public = not note.is_public
        if note.is_public and not note.public_slug:
            note.public_slug = new_public_slug()
        note.touch()
        # the note may still be waiting for its server id
        await self.flush()
        await self.gateway.update(
            self._remote_id(note.id),
            {"is_public": note.is_public, "public_slug": note.public_slug},
        )
        return note

    async def fetch_notes(self) -> bool:
        """Replace local notes with the signed-in user's remote notes."""
        owner = self.auth.current_user()
        if owner is None:
            return False
        try:
            remote = await self.gateway.list(owner)
        except RemoteError as e:
            logger.warning("fetching notes failed: %s", e)
            return False
        self.notes = remote
        if self._find(self.active_note_id) is None:
            self.active_note_id = None
        logger.info("fetched %d notes for %s", len(remote), owner)
        return True

    # ---------- session state ----------
    def set_active_note(self, id: Optional[str]) -> None:
        self.active_note_id = id

    def set_search_query(self, query: str) -> None:
        self.search_query = query or ""

    def set_filter_tag(self, tag: Optional[str]) -> None:
        self.filter_tag = tag or None

    def set_show_archived(self, show: bool) -> None:
        self.show_archived = bool(show)

    def set_sort_by(self, sort: SortOption | str) -> None:
        self.sort_by = SortOption(sort)

    # ---------- views ----------
    def active_note(self) -> Optional[Note]:
        return self._find(self.active_note_id)

    def filtered_notes(self) -> list[Note]:
        notes = [n for n in self.notes if n.is_archived == self.show_archived]

        if self.search_query:
            q = self.search_query.lower()
            notes = [
                n for n in notes
                if q in n.title.lower() or q in n.content.lower() or any(q in t for t in n.tags)
            ]

        if self.filter_tag:
            notes = [n for n in notes if self.filter_tag in n.tags]

        # two stable passes: sort key first, then pinned on top
        if self.sort_by == SortOption.created:
            notes.sort(key=lambda n: n.created_at, reverse=True)
        elif self.sort_by == SortOption.title:
            notes.sort(key=lambda n: n.title)
        else:
            notes.sort(key=lambda n: n.updated_at, reverse=True)
        notes.sort(key=lambda n: not n.is_pinned)
        return notes

    def all_tags(self) -> list[str]:
        return sorted({t for n in self.notes for t in n.tags})
