class NoteError(Exception):
    """Base class for jotter failures."""


class AuthRequired(NoteError):
    """An operation that needs a signed-in user was called without one."""


class NotFoundError(NoteError):
    """The remote store has no matching note."""


class RemoteError(NoteError):
    """The remote store could not complete the request."""
