"""Store of active sessions keyed by handle.

The registry is created by the caller and passed to every session that should
share it; there is no module-level instance. Operations take a lock so they
are safe from any thread or task, and removal is idempotent because a
session's exit path and a concurrent stop request may both try to remove the
same entry.
"""

import logging
import threading
from typing import TYPE_CHECKING, Dict, List, Optional

from .errors import SessionAlreadyRunningError

if TYPE_CHECKING:
    from .session import ExecutionSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Thread-safe handle -> session map."""

    def __init__(self) -> None:
        self._sessions: Dict[str, "ExecutionSession"] = {}
        self._lock = threading.Lock()

    def add(self, handle: str, session: "ExecutionSession") -> None:
        """Register session under handle.

        Raises:
            SessionAlreadyRunningError: If another session holds the handle
        """
        with self._lock:
            existing = self._sessions.get(handle)
            if existing is not None and existing is not session:
                raise SessionAlreadyRunningError(
                    f"Execution '{handle}' is already running"
                )
            self._sessions[handle] = session

    def get(self, handle: str) -> Optional["ExecutionSession"]:
        with self._lock:
            return self._sessions.get(handle)

    def remove(self, handle: str, session: Optional["ExecutionSession"] = None) -> bool:
        """Remove the entry for handle.

        If session is given, the entry is only removed when it still belongs
        to that session, so a finished session cannot evict a newer one that
        reused its handle.

        Returns:
            True if an entry was removed, False if there was nothing to remove
        """
        with self._lock:
            existing = self._sessions.get(handle)
            if existing is None:
                return False
            if session is not None and existing is not session:
                return False
            del self._sessions[handle]
            return True

    def handles(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def terminate_all(self) -> int:
        """Signal every registered session to stop. Used on shutdown.

        Returns:
            Number of sessions signalled
        """
        with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            try:
                await session.terminate()
            except Exception as e:
                logger.warning(f"Failed to terminate session {session.handle}: {e}")
        return len(sessions)
