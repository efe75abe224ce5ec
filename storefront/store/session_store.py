import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple
import structlog

from storefront.security.utils import generate_token, mask_token, now_utc
from storefront.utils.locks import ReadWriteLock

logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(hours=24)

class SessionStore:
    """Process-local map of session token -> expiry instant.

    `validate` shares the lock with other readers; `issue`, `revoke` and
    `sweep` take it exclusively. Nothing is persisted, so a restart logs
    every operator out.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], datetime] = now_utc):
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, datetime] = {}
        self._lock = ReadWriteLock()

    def issue(self) -> Tuple[str, datetime]:
        token = generate_token()
        expires_at = self._clock() + self.ttl
        with self._lock.write_locked():
            self._sessions[token] = expires_at
        logger.info("session_issued", token=mask_token(token), expires_at=expires_at.isoformat())
        return token, expires_at

    def validate(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._lock.read_locked():
            expires_at = self._sessions.get(token)
        return expires_at is not None and expires_at > self._clock()

    def revoke(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock.write_locked():
            removed = self._sessions.pop(token, None)
        if removed is not None:
            logger.info("session_revoked", token=mask_token(token))

    def sweep(self) -> int:
        now = self._clock()
        with self._lock.write_locked():
            expired = [t for t, exp in self._sessions.items() if exp <= now]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._sessions)


class SessionSweeper:
    """Periodically reclaims expired sessions until stopped."""

    def __init__(self, sessions: SessionStore, interval: float):
        self.sessions = sessions
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_loop(self):
        # wait() returns True as soon as stop() is called
        while not self._stop_event.wait(self.interval):
            try:
                removed = self.sessions.sweep()
            except Exception:
                logger.exception("session_sweep_failed")
                continue
            if removed:
                logger.info("sessions_swept", removed=removed, remaining=len(self.sessions))

    def start(self):
        if self._thread and self._thread.is_alive(): return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_loop, name="session-sweeper", daemon=True)
        self._thread.start()
        logger.debug("session_sweeper_started", interval=self.interval)

    def stop(self, timeout: Optional[float] = 5.0):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
