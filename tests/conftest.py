import pytest

from jotter.db import init_db, reset_engine
from jotter.errors import RemoteError


@pytest.fixture
def remote_db(tmp_path, monkeypatch):
    monkeypatch.setenv("JOTTER_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("JOTTER_REMOTE_URL", f"sqlite:///{tmp_path / 'remote.sqlite'}")
    monkeypatch.delenv("JOTTER_USER", raising=False)
    reset_engine()
    init_db()
    yield tmp_path
    reset_engine()


class BrokenGateway:
    """Remote store that is always down."""

    def __init__(self):
        self.calls = []

    async def list(self, owner_ref):
        self.calls.append(("list", owner_ref))
        raise RemoteError("connection refused")

    async def create(self, fields, owner_ref):
        self.calls.append(("create", dict(fields)))
        raise RemoteError("connection refused")

    async def update(self, id, fields):
        self.calls.append(("update", id, dict(fields)))
        raise RemoteError("connection refused")

    async def delete(self, id):
        self.calls.append(("delete", id))
        raise RemoteError("connection refused")

    async def get_by_public_slug(self, slug):
        raise RemoteError("connection refused")


@pytest.fixture
def broken_gateway():
    return BrokenGateway()
