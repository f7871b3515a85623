import asyncio
import logging

from jotter.auth import SessionAuth
from jotter.errors import RemoteError
from jotter.gateway import SqlNoteGateway
from jotter.models import Note
from jotter.storage import SyncMarker
from jotter.store import NoteStore
from jotter.sync import SyncCoordinator


def local_notes():
    return [
        Note(id="note_1_aaaaaaaaa", title="Groceries", tags=["home"]),
        Note(id="note_2_bbbbbbbbb", title="Ideas", is_pinned=True),
    ]


def test_local_notes_uploaded_once(remote_db):
    gw = SqlNoteGateway()
    asyncio.run(gw.create({"title": "already remote"}, "u1"))
    marker = SyncMarker(remote_db / "synced.json")

    store = NoteStore(gw, SessionAuth("u1"), notes=local_notes())
    uploaded = asyncio.run(SyncCoordinator(store, marker).start())
    assert uploaded == 2
    assert marker.has_synced("u1")
    assert sorted(n.title for n in store.notes) == ["Groceries", "Ideas", "already remote"]
    assert all(n.owner_ref == "u1" for n in store.notes)
    ideas = next(n for n in store.notes if n.title == "Ideas")
    assert ideas.is_pinned

    # a second login with stale local notes must not upload them again
    again = NoteStore(gw, SessionAuth("u1"), notes=local_notes())
    assert asyncio.run(SyncCoordinator(again, marker).start()) == 0
    assert len(asyncio.run(gw.list("u1"))) == 3
    assert len(again.notes) == 3


def test_marker_is_per_user(remote_db):
    marker = SyncMarker(remote_db / "synced.json")
    marker.mark_synced("u1")
    assert marker.has_synced("u1")
    assert not marker.has_synced("u2")


def test_signed_out_does_nothing(broken_gateway, tmp_path):
    store = NoteStore(broken_gateway, SessionAuth(), notes=local_notes())
    marker = SyncMarker(tmp_path / "synced.json")
    assert asyncio.run(SyncCoordinator(store, marker).start()) == 0
    assert broken_gateway.calls == []
    assert len(store.notes) == 2
    assert not marker.has_synced("u1")


def test_failed_uploads_are_logged_not_fatal(broken_gateway, tmp_path, caplog):
    caplog.set_level(logging.WARNING)
    store = NoteStore(broken_gateway, SessionAuth("u1"), notes=local_notes())
    marker = SyncMarker(tmp_path / "synced.json")
    assert asyncio.run(SyncCoordinator(store, marker).start()) == 0
    creates = [c for c in broken_gateway.calls if c[0] == "create"]
    assert len(creates) == 2
    assert "uploading note" in caplog.text
    # the fetch failed too, so local notes are still there
    assert len(store.notes) == 2
    assert not marker.has_synced("u1")


class RejectsDrafts(SqlNoteGateway):
    """Refuses to store notes titled "draft"."""

    async def create(self, fields, owner_ref):
        if fields.get("title") == "draft":
            raise RemoteError("row rejected")
        return await super().create(fields, owner_ref)


def test_failed_upload_kept_locally_and_retried(remote_db):
    marker = SyncMarker(remote_db / "synced.json")
    notes = [Note(id="note_1_aaaaaaaaa", title="kept"), Note(id="note_2_bbbbbbbbb", title="draft")]

    store = NoteStore(RejectsDrafts(), SessionAuth("u1"), notes=notes)
    assert asyncio.run(SyncCoordinator(store, marker).start()) == 1
    assert not marker.has_synced("u1")
    assert sorted(n.title for n in store.notes) == ["draft", "kept"]
    draft = next(n for n in store.notes if n.title == "draft")
    assert draft.owner_ref is None

    # next start with a healthy remote uploads only the leftover note
    again = NoteStore(SqlNoteGateway(), SessionAuth("u1"), notes=store.notes)
    assert asyncio.run(SyncCoordinator(again, marker).start()) == 1
    assert marker.has_synced("u1")
    remote = asyncio.run(again.gateway.list("u1"))
    assert sorted(n.title for n in remote) == ["draft", "kept"]
    assert all(n.owner_ref == "u1" for n in again.notes)
