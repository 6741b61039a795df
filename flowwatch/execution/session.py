"""One engine invocation, from launch to exit.

ExecutionSession launches the engine, merges its stdout and stderr lines in
arrival order through a single queue, and for each line appends it to the raw
log, feeds it to its own StreamParser and emits a LogEmitted event before
taking the next line. Steps finalized by the parser are republished as
StepParsed events; lifecycle changes are published as SessionStarted,
SessionCompleted and SessionErrored.

State machine:

    IDLE -> STARTING -> RUNNING -> COMPLETED | CANCELLED
                     \\-> FAILED (launch failure, never reaches RUNNING)

COMPLETED covers both zero and non-zero exit codes; SessionCompleted.success
tells them apart.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..models import StepRecord, StepStatus, StopResult
from ..parsing import StreamParser
from ..proc_wrap import (
    DEFAULT_EXECUTABLE,
    ExecutionOptions,
    ProcessHandle,
    ProcessLauncher,
    SubprocessLauncher,
    build_command,
    iter_lines,
    resolve_cwd,
)
from .bus import EventBus
from .errors import SessionError
from .events import (
    LOG_LEVEL_ERROR,
    LOG_LEVEL_INFO,
    LogEmitted,
    SessionCompleted,
    SessionErrored,
    SessionStarted,
    StepParsed,
)
from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED})

# Marks the end of one output channel on the line queue
_CHANNEL_CLOSED = None


def generate_handle() -> str:
    """Generate a unique session handle, e.g. 'exec-1718000000000-3f9a1c'."""
    return f"exec-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class ExecutionSession:
    """Owns one engine process and the parser reading its output.

    Args:
        options: What to run
        bus: Bus that receives this session's events
        registry: Shared store of active sessions
        launcher: Process launcher (defaults to SubprocessLauncher)
        handle: Session handle; generated when omitted. Two sessions may not
            be active under the same handle at the same time.
        executable: Command prefix that starts the engine
        empty_status: Status for steps that recorded no assertions
        clock: Time source for step timestamps
    """

    def __init__(
        self,
        options: ExecutionOptions,
        bus: EventBus,
        registry: SessionRegistry,
        launcher: Optional[ProcessLauncher] = None,
        handle: Optional[str] = None,
        executable: Sequence[str] = DEFAULT_EXECUTABLE,
        empty_status: StepStatus = StepStatus.PASSED,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.options = options
        self.handle = handle or generate_handle()
        self.state = SessionState.IDLE
        self.raw_log_lines: List[str] = []
        self.exit_code: Optional[int] = None
        self.error: Optional[str] = None
        self._bus = bus
        self._registry = registry
        self._launcher = launcher or SubprocessLauncher()
        self._executable = tuple(executable)
        self._parser = StreamParser(empty_status=empty_status, clock=clock)
        self._process: Optional[ProcessHandle] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._surfaced = 0
        self._started_at = 0.0

    @property
    def steps(self) -> List[StepRecord]:
        """Steps finalized so far."""
        return self._parser.steps

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    async def start(self) -> str:
        """Launch the engine and begin streaming its output.

        Suspends until the process is confirmed to exist. A launch failure
        is reported through SessionErrored, not raised.

        Returns:
            The session handle

        Raises:
            SessionAlreadyRunningError: If another session is active under the
                same handle; nothing is launched
            SessionError: If this session was already started
        """
        if self.state is not SessionState.IDLE:
            raise SessionError(f"Session {self.handle} was already started (state: {self.state.value})")

        self._registry.add(self.handle, self)
        self.state = SessionState.STARTING

        argv = build_command(self.options, self._executable)
        cwd = resolve_cwd(self.options)
        self._started_at = time.monotonic()

        try:
            self._process = await self._launcher.launch(argv, cwd)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to launch {' '.join(argv)}: {e}")
            self._fail(f"Failed to start {argv[0]}: {e}")
            return self.handle

        self.state = SessionState.RUNNING
        self._bus.emit(SessionStarted(
            handle=self.handle,
            command=argv,
            cwd=str(cwd),
            pid=self._process.pid,
        ))
        self._pump_task = asyncio.create_task(self._pump(self._process))

        if self._cancel_requested:
            await self._process.terminate()
        return self.handle

    async def wait(self) -> SessionState:
        """Suspend until the session reaches a terminal state.

        Cancelling the waiter terminates the engine process.
        """
        if self.state is SessionState.IDLE:
            raise SessionError(f"Session {self.handle} has not been started")
        if self._pump_task is not None:
            await self._pump_task
        return self.state

    async def run(self) -> SessionState:
        """Start the session and wait for it to finish."""
        await self.start()
        return await self.wait()

    async def terminate(self) -> bool:
        """Request termination of the engine process.

        Returns once the signal has been issued. Output already produced is
        still delivered.

        Returns:
            True if the session was active and has been signalled
        """
        if self.state is SessionState.IDLE or self.is_terminal:
            return False
        self._cancel_requested = True
        if self._process is not None:
            await self._process.terminate()
        return True

    async def _pump(self, process: ProcessHandle) -> None:
        queue: asyncio.Queue = asyncio.Queue()
        readers = [
            asyncio.create_task(self._read_channel(process.stdout, LOG_LEVEL_INFO, queue)),
            asyncio.create_task(self._read_channel(process.stderr, LOG_LEVEL_ERROR, queue)),
        ]
        open_channels = len(readers)
        try:
            while open_channels:
                item: Optional[Tuple[str, str]] = await queue.get()
                if item is _CHANNEL_CLOSED:
                    open_channels -= 1
                    continue
                level, line = item
                self._handle_line(level, line)
            exit_code = await process.wait()
        except asyncio.CancelledError:
            for reader in readers:
                reader.cancel()
            await process.terminate()
            self._cancel_requested = True
            self._finish(process.returncode if process.returncode is not None else -1)
            raise
        self._finish(exit_code)

    async def _read_channel(self, reader: Optional[asyncio.StreamReader], level: str,
                            queue: asyncio.Queue) -> None:
        try:
            if reader is not None:
                async for line in iter_lines(reader):
                    await queue.put((level, line))
        except Exception as e:
            logger.warning(f"Session {self.handle}: error reading {level} channel: {e}")
        finally:
            queue.put_nowait(_CHANNEL_CLOSED)

    def _handle_line(self, level: str, line: str) -> None:
        self.raw_log_lines.append(line)
        self._parser.add_line(line)
        self._bus.emit(LogEmitted(handle=self.handle, level=level, message=line))
        self._surface_steps(self._parser.steps)

    def _surface_steps(self, steps: List[StepRecord]) -> None:
        total = len(steps)
        for i in range(self._surfaced, total):
            self._bus.emit(StepParsed(handle=self.handle, step=steps[i], position=i + 1, total=total))
        self._surfaced = max(self._surfaced, total)

    def _finish(self, exit_code: int) -> None:
        # Stream end closes any step still in progress
        self._surface_steps(self._parser.get_steps())
        self.exit_code = exit_code
        duration_ms = (time.monotonic() - self._started_at) * 1000.0
        cancelled = self._cancel_requested
        self.state = SessionState.CANCELLED if cancelled else SessionState.COMPLETED
        self._registry.remove(self.handle, self)
        logger.info(
            f"Session {self.handle} finished with exit code {exit_code} "
            f"({len(self._parser.steps)} steps, {duration_ms:.0f}ms)"
        )
        self._bus.emit(SessionCompleted(
            handle=self.handle,
            success=exit_code == 0 and not cancelled,
            exit_code=exit_code,
            duration_ms=duration_ms,
            cancelled=cancelled,
        ))

    def _fail(self, message: str) -> None:
        self.error = message
        self.state = SessionState.FAILED
        self._registry.remove(self.handle, self)
        self._bus.emit(SessionErrored(handle=self.handle, message=message))


async def stop_session(registry: SessionRegistry, handle: str) -> StopResult:
    """Stop the session registered under handle.

    Stopping an unknown or finished session is not an error; it returns a
    StopResult with success=False.

    A signalled session keeps its handle until its process has actually
    exited, so the handle cannot be reused while output is still streaming.
    """
    session = registry.get(handle)
    if session is None:
        return StopResult(success=False, message="Execution not found")
    signalled = await session.terminate()
    if not signalled:
        if session.is_terminal:
            registry.remove(handle, session)
        return StopResult(success=False, message="Execution already finished")
    return StopResult(success=True, message="Execution stopped")
