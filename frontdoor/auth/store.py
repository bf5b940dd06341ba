"""
Session Store
=============

Per-browser server-side storage of BrowserSession records, keyed by the
opaque browser identifier carried in the session cookie.

Every request works on its browser's record through ``SessionStore.open``,
which holds a per-browser asyncio.Lock for the whole request. Two requests
from the same browser (a double-submitted form, say) therefore never
interleave a read-authenticate-rewrite of a rotating session token.

InMemorySessionStore applies one inactivity timeout to all records; each
read slides the expiry forward.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

from .state import ANONYMOUS, BrowserSession, FlowState

logger = logging.getLogger(__name__)


class SessionHandle:
    """
    A browser's record, opened for the duration of one request.

    All writes go through ``transition`` so the stored record always
    matches exactly one flow state.
    """

    def __init__(self, store: "SessionStore", browser_id: str, record: BrowserSession):
        self._store = store
        self.browser_id = browser_id
        self._record = record

    @property
    def record(self) -> BrowserSession:
        return self._record

    @property
    def state(self) -> FlowState:
        return self._record.state

    async def transition(self, state: FlowState) -> None:
        record = BrowserSession.from_state(state)
        if record.is_empty:
            await self._store.delete(self.browser_id)
        else:
            await self._store.put(self.browser_id, record)
        self._record = record

    async def clear(self) -> None:
        await self.transition(ANONYMOUS)


class SessionStore(ABC):
    """
    Storage interface injected into the request layer.

    Subclasses provide get/put/delete; per-browser locking lives here
    because it only has to hold within one process.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @abstractmethod
    async def get(self, browser_id: str) -> Optional[BrowserSession]:
        """Return the live record for a browser, or None."""

    @abstractmethod
    async def put(self, browser_id: str, record: BrowserSession) -> None:
        """Replace the record for a browser."""

    @abstractmethod
    async def delete(self, browser_id: str) -> None:
        """Remove the record for a browser (no error if absent)."""

    @asynccontextmanager
    async def open(self, browser_id: str) -> AsyncIterator[SessionHandle]:
        """
        Lock a browser's record and yield a handle to it.

        Concurrent ``open`` calls for the same browser id wait for each
        other; distinct browsers never contend.
        """
        lock = self._locks.setdefault(browser_id, asyncio.Lock())
        self._lock_users[browser_id] = self._lock_users.get(browser_id, 0) + 1
        try:
            async with lock:
                record = await self.get(browser_id) or BrowserSession()
                yield SessionHandle(self, browser_id, record)
        finally:
            self._lock_users[browser_id] -= 1
            if self._lock_users[browser_id] == 0:
                del self._lock_users[browser_id]
                del self._locks[browser_id]


class InMemorySessionStore(SessionStore):
    """
    Process-local store with a uniform inactivity timeout.

    Suitable for a single worker process; records are lost on restart.
    """

    def __init__(
        self,
        inactivity_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self._records: Dict[str, Tuple[BrowserSession, float]] = {}
        self._inactivity_seconds = inactivity_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, browser_id: str) -> Optional[BrowserSession]:
        self._purge_expired()
        entry = self._records.get(browser_id)
        if entry is None:
            return None

        record, _ = entry
        self._records[browser_id] = (record, self._clock() + self._inactivity_seconds)
        return record.model_copy()

    async def put(self, browser_id: str, record: BrowserSession) -> None:
        self._records[browser_id] = (
            record.model_copy(),
            self._clock() + self._inactivity_seconds,
        )

    async def delete(self, browser_id: str) -> None:
        self._records.pop(browser_id, None)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._records.items() if now >= expires_at]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug(f"Expired {len(expired)} idle browser sessions")


__all__ = [
    "InMemorySessionStore",
    "SessionHandle",
    "SessionStore",
]
