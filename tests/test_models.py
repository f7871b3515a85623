from datetime import UTC, datetime, timedelta
import re

from jotter.models import Note, NoteColor, SortOption, new_note_id, new_public_slug


def test_empty_note_is_well_formed():
    n = Note.empty()
    assert re.fullmatch(r"note_\d+_[a-z0-9]{9}", n.id)
    assert n.title == "" and n.content == ""
    assert n.tags == []
    assert n.created_at == n.updated_at
    assert n.created_at.tzinfo is not None
    assert n.color is NoteColor.default
    assert not n.is_pinned and not n.is_archived and not n.is_public
    assert n.owner_ref is None and n.public_slug is None


def test_ids_and_slugs_are_fresh():
    assert new_note_id() != new_note_id()
    slug = new_public_slug()
    assert re.fullmatch(r"[a-z0-9]{8}", slug)


def test_tags_normalized_on_load():
    n = Note(tags=[" Work", "ideas", "work", "", "  "])
    assert n.tags == ["work", "ideas"]


def test_touch_never_goes_backwards():
    future = datetime.now(UTC) + timedelta(days=1)
    n = Note(updated_at=future)
    n.touch()
    assert n.updated_at == future

    n = Note(updated_at=datetime(2020, 1, 1, tzinfo=UTC))
    n.touch()
    assert n.updated_at.year >= 2024


def test_sort_options():
    assert [s.value for s in SortOption] == ["updated", "created", "title"]
    assert NoteColor("slate") is NoteColor.slate
