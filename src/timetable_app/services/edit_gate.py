from __future__ import annotations

import hmac


class EditLockedError(PermissionError):
    """Raised when a timetable edit is attempted without unlocking editing."""


class EditGate:
    def __init__(self, password: str) -> None:
        self._password = password
        self._unlocked = False

    @property
    def is_unlocked(self) -> bool:
        return self._unlocked

    def unlock(self, password: str) -> bool:
        self._unlocked = hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        return self._unlocked

    def lock(self) -> None:
        self._unlocked = False

    def require_unlocked(self) -> None:
        if not self._unlocked:
            raise EditLockedError("Editing is locked. Enter the admin password to enable editing.")
