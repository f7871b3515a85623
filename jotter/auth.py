from __future__ import annotations
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class AuthProvider(Protocol):
    def current_user(self) -> Optional[str]:
        """Identifier of the signed-in user, or ``None``."""
        ...


class SessionAuth:
    """In-process sign-in state."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self._user_id = user_id or None

    def current_user(self) -> Optional[str]:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user id must not be empty")
        self._user_id = user_id

    def sign_out(self) -> None:
        self._user_id = None
