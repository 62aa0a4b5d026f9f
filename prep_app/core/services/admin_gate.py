"""Password gate in front of the question-bank admin panel."""

from __future__ import annotations

from dataclasses import dataclass
import hmac
import logging
from threading import Lock

logger = logging.getLogger(__name__)


class AdminLockedError(RuntimeError):
    """Raised once a browser has used up its password attempts."""


@dataclass(slots=True)
class _GateEntry:
    failed_attempts: int = 0
    authenticated: bool = False


class AdminGate:
    """Tracks admin authentication per browser token."""

    def __init__(self, password: str, max_attempts: int = 5) -> None:
        if not password:
            raise ValueError("Admin password must not be empty.")
        self._password = password
        self._max_attempts = max(1, max_attempts)
        self._entries: dict[str, _GateEntry] = {}
        self._lock = Lock()

    def attempt(self, token: str, password: str) -> bool:
        """Check ``password`` for ``token``. Returns True when it matches."""
        with self._lock:
            entry = self._entries.setdefault(token, _GateEntry())
            if entry.failed_attempts >= self._max_attempts:
                raise AdminLockedError("Too many failed attempts.")

            if hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8")):
                entry.authenticated = True
                entry.failed_attempts = 0
                return True

            entry.failed_attempts += 1
            entry.authenticated = False
            failed = entry.failed_attempts

        logger.warning("Failed admin login (%d/%d attempts)", failed, self._max_attempts)
        if failed >= self._max_attempts:
            logger.warning("Admin panel locked for a browser after %d attempts", failed)
        return False

    def is_authenticated(self, token: str | None) -> bool:
        if token is None:
            return False
        with self._lock:
            entry = self._entries.get(token)
            return entry is not None and entry.authenticated

    def remaining_attempts(self, token: str) -> int:
        with self._lock:
            entry = self._entries.get(token)
            used = entry.failed_attempts if entry else 0
        return max(0, self._max_attempts - used)

    def logout(self, token: str) -> None:
        """Drop the authenticated flag. Failed attempts still count toward the lockout."""
        with self._lock:
            entry = self._entries.get(token)
            if entry is not None:
                entry.authenticated = False
