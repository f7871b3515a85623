from pathlib import Path
import os
from sqlmodel import SQLModel, Session, create_engine
from contextlib import contextmanager

from .models import NoteRow  # noqa: F401  (registers the notes table)

_ENGINE = None
_ENGINE_URL = None  # track current engine's URL so we can switch when env changes


def data_home() -> Path:
    env_home = os.getenv("JOTTER_HOME")
    home = Path(env_home) if env_home else Path.home() / ".jotter"
    home.mkdir(parents=True, exist_ok=True)
    return home


def _compute_url() -> str:
    url = os.getenv("JOTTER_REMOTE_URL")
    if url:
        return url
    return f"sqlite:///{data_home() / 'remote.db'}"


def get_engine():
    global _ENGINE, _ENGINE_URL
    url = _compute_url()
    if _ENGINE is None or _ENGINE_URL != url:
        # swap engine if URL changed (common in tests)
        if _ENGINE is not None:
            _ENGINE.dispose()
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _ENGINE = create_engine(url, echo=False, connect_args=connect_args)
        _ENGINE_URL = url
    return _ENGINE


def reset_engine():
    """For tests: drop the cached engine so a new JOTTER_REMOTE_URL is picked up."""
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None


def init_db():
    engine = get_engine()
    SQLModel.metadata.create_all(engine)


def get_session():
    # keep objects alive after commit so returned rows retain values
    return Session(get_engine(), expire_on_commit=False)


@contextmanager
def session_scope():
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
