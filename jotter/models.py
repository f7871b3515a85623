from __future__ import annotations
from datetime import datetime, UTC
from enum import Enum
from typing import Optional
import random
import secrets
import string
import time

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field as SQLField, SQLModel

_ALPHABET = string.ascii_lowercase + string.digits


class NoteColor(str, Enum):
    default = "default"
    rose = "rose"
    red = "red"
    pink = "pink"
    fuchsia = "fuchsia"
    violet = "violet"
    purple = "purple"
    indigo = "indigo"
    navy = "navy"
    blue = "blue"
    sky = "sky"
    cyan = "cyan"
    teal = "teal"
    mint = "mint"
    emerald = "emerald"
    green = "green"
    lime = "lime"
    yellow = "yellow"
    amber = "amber"
    gold = "gold"
    orange = "orange"
    maroon = "maroon"
    coffee = "coffee"
    slate = "slate"


class SortOption(str, Enum):
    updated = "updated"
    created = "created"
    title = "title"


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_note_id() -> str:
    suffix = "".join(random.choices(_ALPHABET, k=9))
    return f"note_{int(time.time() * 1000)}_{suffix}"


def new_public_slug() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(8))


def normal_tag(tag: str) -> str:
    return tag.strip().lower()


def normal_tags(tags) -> list[str]:
    # keep first occurrence so display order survives
    seen: list[str] = []
    for t in tags or []:
        t = normal_tag(t)
        if t and t not in seen:
            seen.append(t)
    return seen


class Note(BaseModel):
    id: str = Field(default_factory=new_note_id)
    title: str = ""
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    is_pinned: bool = False
    is_archived: bool = False
    color: NoteColor = NoteColor.default
    owner_ref: Optional[str] = None
    is_public: bool = False
    public_slug: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str]) -> list[str]:
        return normal_tags(value)

    @classmethod
    def empty(cls) -> "Note":
        now = utc_now()
        return cls(created_at=now, updated_at=now)

    def touch(self) -> None:
        self.updated_at = max(utc_now(), self.updated_at)

    def to_public(self) -> "PublicNote":
        return PublicNote(
            title=self.title, content=self.content, tags=list(self.tags),
            created_at=self.created_at, color=self.color,
        )


class PublicNote(BaseModel):
    """What an anonymous reader of a shared link gets to see."""
    title: str
    content: str
    tags: list[str]
    created_at: datetime
    color: NoteColor


class NoteRow(SQLModel, table=True):
    __tablename__ = "notes"

    id: str = SQLField(primary_key=True)
    user_id: str = SQLField(index=True)
    title: str = ""
    content: str = ""
    # JSON array, insertion order kept; tags may contain commas
    tag_list: list[str] = SQLField(default_factory=list, sa_column=Column(JSON))

    pinned: bool = SQLField(default=False)
    archived: bool = SQLField(default=False)
    color: str = SQLField(default=NoteColor.default.value)
    is_public: bool = SQLField(default=False, index=True)
    public_slug: Optional[str] = SQLField(default=None, unique=True)

    created_at: datetime = SQLField(default_factory=utc_now)
    updated_at: datetime = SQLField(default_factory=utc_now, index=True)

    @property
    def tags(self) -> list[str]:
        return list(self.tag_list or [])

    def set_tags(self, tags: list[str] | None) -> None:
        self.tag_list = list(tags or [])

    def touch(self) -> None:
        self.updated_at = utc_now()
