# jotter/app.py
"""Shared-note HTTP app.

Serve it with ``uvicorn --factory jotter.app:create_app``; the factory keeps
importing this module free of database side effects.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .errors import NotFoundError, RemoteError
from .gateway import SqlNoteGateway
from .models import NoteColor, PublicNote


# ---------- Schemas ----------
class PublicNoteOut(BaseModel):
    title: str
    content: str
    tags: list[str]
    created_at: datetime
    color: NoteColor


def _to_out(n: PublicNote) -> PublicNoteOut:
    return PublicNoteOut(
        title=n.title, content=n.content, tags=list(n.tags),
        created_at=n.created_at, color=n.color,
    )


def create_app(gateway: Optional[SqlNoteGateway] = None) -> FastAPI:
    """Read-only app for shared links; safe to run without authentication."""
    app = FastAPI(title="Jotter shared notes")
    app.state.gateway = gateway if gateway is not None else SqlNoteGateway()

    @app.get("/api/public/{slug}", response_model=PublicNoteOut)
    async def api_public_note(slug: str):
        try:
            n = await app.state.gateway.get_public_note(slug)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Not found")
        except RemoteError:
            raise HTTPException(status_code=503, detail="Notes are unavailable")
        return _to_out(n)

    return app
