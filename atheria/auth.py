# atheria/auth.py
from __future__ import annotations
from typing import Callable, Optional

from atheria.log import logger
from atheria.utils import safe_key_part

UserListener = Callable[[Optional[str]], None]


class UserSession:
    """Observable "current user or none"."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = safe_key_part(user_id) if user_id else None
        self._listeners: list[UserListener] = []

    @property
    def current_user(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, listener: UserListener) -> Callable[[], None]:
        """Call listener now and on every change; returns an unsubscribe function."""
        self._listeners.append(listener)
        listener(self._user_id)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def _set(self, user_id: Optional[str]) -> None:
        if user_id == self._user_id:
            return
        self._user_id = user_id
        for listener in list(self._listeners):
            listener(user_id)

    def sign_in(self, user_id: str) -> None:
        logger.info(f"[auth] signed in as {user_id}")
        self._set(safe_key_part(user_id))

    def sign_out(self) -> None:
        if self._user_id is not None:
            logger.info(f"[auth] signed out {self._user_id}")
        self._set(None)
