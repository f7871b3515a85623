"""Remote note store access.

The store talks to the remote table only through :class:`RemoteNoteGateway`.
Field naming differs between the two sides (``is_pinned`` locally, ``pinned``
remotely, ``tags`` locally and ``tag_list`` remotely), and the gateway is the
only place that knows about it: callers pass and receive local-shaped data.
"""
from __future__ import annotations
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Protocol
import asyncio
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .db import init_db, session_scope
from .errors import NotFoundError, RemoteError
from .models import Note, NoteColor, NoteRow, PublicNote, utc_now

logger = logging.getLogger(__name__)

# local field -> remote column
_COLUMNS = {
    "title": "title",
    "content": "content",
    "is_pinned": "pinned",
    "is_archived": "archived",
    "color": "color",
    "is_public": "is_public",
    "public_slug": "public_slug",
}
# assigned by the server, never written by clients
_SERVER_FIELDS = {"id", "created_at", "updated_at", "owner_ref"}


class RemoteNoteGateway(Protocol):
    async def list(self, owner_ref: str) -> list[Note]:
        """Notes owned by *owner_ref*, most recently updated first."""
        ...

    async def create(self, fields: Mapping[str, Any], owner_ref: Optional[str]) -> Note:
        ...

    async def update(self, id: str, fields: Mapping[str, Any]) -> Note:
        ...

    async def delete(self, id: str) -> None:
        ...

    async def get_by_public_slug(self, slug: str) -> Note:
        ...


def _aware(ts: datetime) -> datetime:
    # sqlite drops tzinfo on the way back
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


def row_to_note(row: NoteRow) -> Note:
    return Note(
        id=row.id,
        owner_ref=row.user_id,
        title=row.title,
        content=row.content,
        tags=row.tags,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        is_pinned=row.pinned,
        is_archived=row.archived,
        color=NoteColor(row.color) if row.color in NoteColor.__members__ else NoteColor.default,
        is_public=row.is_public,
        public_slug=row.public_slug,
    )


def apply_fields(row: NoteRow, fields: Mapping[str, Any]) -> None:
    for key, value in fields.items():
        if key in _SERVER_FIELDS:
            continue
        if key == "tags":
            row.set_tags(list(value))
            continue
        column = _COLUMNS.get(key)
        if column is None:
            raise ValueError(f"Unknown note field '{key}'")
        if isinstance(value, Enum):
            value = value.value
        setattr(row, column, value)


class SqlNoteGateway:
    """Gateway backed by the sqlmodel ``notes`` table.

    Blocking database calls run in a worker thread so awaiting callers never
    stall the event loop. Every SQLAlchemy failure, including a duplicate
    ``public_slug``, comes out as :class:`RemoteError`.
    """

    def __init__(self, create_tables: bool = True) -> None:
        if create_tables:
            init_db()

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            raise RemoteError(str(e)) from e

    # ---------- reads ----------
    def _list(self, owner_ref: str) -> list[Note]:
        with session_scope() as s:
            stmt = (
                select(NoteRow)
                .where(NoteRow.user_id == owner_ref)
                .order_by(NoteRow.updated_at.desc())
            )
            return [row_to_note(r) for r in s.exec(stmt)]

    async def list(self, owner_ref: str) -> list[Note]:
        if not owner_ref:
            raise RemoteError("Listing notes requires a signed-in user")
        return await self._run(self._list, owner_ref)

    def _by_slug(self, slug: str) -> Note:
        with session_scope() as s:
            stmt = select(NoteRow).where(
                NoteRow.public_slug == slug, NoteRow.is_public == True  # noqa: E712
            )
            row = s.exec(stmt).first()
            if row is None:
                raise NotFoundError(f"No public note for slug '{slug}'")
            return row_to_note(row)

    async def get_by_public_slug(self, slug: str) -> Note:
        if not slug:
            raise NotFoundError("Empty slug")
        return await self._run(self._by_slug, slug)

    async def get_public_note(self, slug: str) -> PublicNote:
        note = await self.get_by_public_slug(slug)
        return note.to_public()

    # ---------- writes ----------
    def _create(self, fields: Mapping[str, Any], owner_ref: str) -> Note:
        with session_scope() as s:
            now = utc_now()
            row = NoteRow(id=uuid.uuid4().hex, user_id=owner_ref, created_at=now, updated_at=now)
            apply_fields(row, fields)
            s.add(row)
            s.flush()
            s.refresh(row)
            return row_to_note(row)

    async def create(self, fields: Mapping[str, Any], owner_ref: Optional[str]) -> Note:
        if not owner_ref:
            raise RemoteError("User not authenticated")
        note = await self._run(self._create, dict(fields), owner_ref)
        logger.debug("created remote note %s for %s", note.id, owner_ref)
        return note

    def _update(self, id: str, fields: Mapping[str, Any]) -> Note:
        with session_scope() as s:
            row = s.get(NoteRow, id)
            if row is None:
                raise NotFoundError(f"Note '{id}' not found")
            apply_fields(row, fields)
            row.touch()
            s.add(row)
            s.flush()
            s.refresh(row)
            return row_to_note(row)

    async def update(self, id: str, fields: Mapping[str, Any]) -> Note:
        return await self._run(self._update, id, dict(fields))

    def _delete(self, id: str) -> None:
        with session_scope() as s:
            row = s.get(NoteRow, id)
            if row is not None:
                s.delete(row)

    async def delete(self, id: str) -> None:
        await self._run(self._delete, id)
