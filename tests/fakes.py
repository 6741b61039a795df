"""Fakes standing in for the engine process in session and aggregator tests."""

import asyncio

from flowwatch.execution.bus import EventBus
from flowwatch.execution.events import (
    LogEmitted,
    SessionCompleted,
    SessionErrored,
    SessionStarted,
    StepParsed,
)


class MockStreamReader:
    """Mock StreamReader that supports .read() for chunk-based reading."""

    def __init__(self, data: bytes, chunk_limit: int = None):
        self.data = data
        self.pos = 0
        self.chunk_limit = chunk_limit

    async def read(self, n: int) -> bytes:
        if self.pos >= len(self.data):
            return b""
        max_read = min(n, self.chunk_limit) if self.chunk_limit else n
        chunk = self.data[self.pos:self.pos + max_read]
        self.pos += len(chunk)
        return chunk


class BlockingStreamReader:
    """Returns its data once, then blocks until released (EOF)."""

    def __init__(self, data: bytes, released: asyncio.Event):
        self.data = data
        self.released = released

    async def read(self, n: int) -> bytes:
        if self.data:
            chunk, self.data = self.data, b""
            return chunk
        await self.released.wait()
        return b""


class FakeProcess:
    """Stands in for ProcessHandle."""

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", exit_code: int = 0,
                 block: bool = False, chunk_limit: int = None,
                 ignore_terminate: bool = False):
        self.pid = 4242
        self.returncode = None
        self.terminate_calls = 0
        self._exit_code = exit_code
        self._ignore_terminate = ignore_terminate
        self._released = asyncio.Event()
        if block:
            self.stdout = BlockingStreamReader(stdout, self._released)
            self.stderr = BlockingStreamReader(stderr, self._released)
        else:
            self._released.set()
            self.stdout = MockStreamReader(stdout, chunk_limit)
            self.stderr = MockStreamReader(stderr, chunk_limit)

    async def wait(self) -> int:
        await self._released.wait()
        self.returncode = self._exit_code
        return self._exit_code

    async def terminate(self) -> None:
        self.terminate_calls += 1
        if self._ignore_terminate:
            return
        self._exit_code = -15
        self._released.set()

    def exit(self, exit_code: int) -> None:
        """Let a blocked process exit on its own."""
        self._exit_code = exit_code
        self._released.set()


class FakeLauncher:
    def __init__(self, process=None, error: Exception = None):
        self.process = process
        self.error = error
        self.calls = []

    async def launch(self, argv, cwd):
        self.calls.append((list(argv), cwd))
        if self.error is not None:
            raise self.error
        return self.process


class EventRecorder:
    """Subscribes to every session event and records them in order."""

    def __init__(self, bus: EventBus):
        self.events = []
        for event_type in (SessionStarted, LogEmitted, StepParsed, SessionCompleted, SessionErrored):
            bus.on(event_type, self.events.append)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


async def until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")

