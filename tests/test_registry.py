"""Tests for SessionRegistry."""

import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from flowwatch.execution.errors import SessionAlreadyRunningError
from flowwatch.execution.registry import SessionRegistry


class TestSessionRegistry:
    """Tests for add/get/remove."""

    def test_add_and_get(self):
        registry = SessionRegistry()
        session = object()

        registry.add("exec-1", session)

        assert registry.get("exec-1") is session
        assert "exec-1" in registry
        assert len(registry) == 1
        assert registry.handles() == ["exec-1"]

    def test_get_unknown_returns_none(self):
        assert SessionRegistry().get("exec-missing") is None

    def test_add_same_session_twice_is_allowed(self):
        registry = SessionRegistry()
        session = object()

        registry.add("exec-1", session)
        registry.add("exec-1", session)

        assert len(registry) == 1

    def test_add_conflicting_session_raises(self):
        registry = SessionRegistry()
        first = object()
        registry.add("exec-1", first)

        with pytest.raises(SessionAlreadyRunningError, match="exec-1"):
            registry.add("exec-1", object())

        assert registry.get("exec-1") is first

    def test_remove_is_idempotent(self):
        registry = SessionRegistry()
        session = object()
        registry.add("exec-1", session)

        assert registry.remove("exec-1", session) is True
        assert registry.remove("exec-1", session) is False
        assert registry.remove("exec-never") is False

    def test_remove_checks_owner(self):
        """A finished session cannot evict a newer one that reused its handle."""
        registry = SessionRegistry()
        old, new = object(), object()
        registry.add("exec-1", new)

        assert registry.remove("exec-1", old) is False
        assert registry.get("exec-1") is new

    def test_concurrent_add_and_remove(self):
        registry = SessionRegistry()
        sessions = [object() for _ in range(200)]

        def worker(start):
            for i in range(start, len(sessions), 4):
                registry.add(f"exec-{i}", sessions[i])
                registry.remove(f"exec-{i}", sessions[i])
                registry.remove(f"exec-{i}", sessions[i])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 0


class TestTerminateAll:
    @pytest.mark.asyncio
    async def test_signals_every_session(self):
        registry = SessionRegistry()
        sessions = []
        for i in range(3):
            session = MagicMock()
            session.handle = f"exec-{i}"
            session.terminate = AsyncMock(return_value=True)
            registry.add(session.handle, session)
            sessions.append(session)

        count = await registry.terminate_all()

        assert count == 3
        for session in sessions:
            session.terminate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_others(self, caplog):
        registry = SessionRegistry()
        broken = MagicMock(handle="exec-broken")
        broken.terminate = AsyncMock(side_effect=RuntimeError("gone"))
        healthy = MagicMock(handle="exec-ok")
        healthy.terminate = AsyncMock(return_value=True)
        registry.add("exec-broken", broken)
        registry.add("exec-ok", healthy)

        await registry.terminate_all()

        healthy.terminate.assert_awaited_once()
        assert "exec-broken" in caplog.text
