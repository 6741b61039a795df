"""Process boundary for the flow-test engine.

Builds the engine command line, launches it with asyncio and exposes its two
output channels as async line iterators. Everything above this module talks to
the ProcessLauncher / ProcessHandle pair, so tests can substitute fakes.
"""

import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = ("npx", "flow-test-engine")

# Read in chunks so that very long lines (large JSON bodies) do not hit the
# 64KB asyncio readline limit
CHUNK_SIZE = 64 * 1024


def _is_unix() -> bool:
    """Check if running on Unix (Linux, macOS, etc.)."""
    return not sys.platform.startswith('win')


@dataclass
class ExecutionOptions:
    """What to run and how.

    Attributes:
        suite_file_path: Suite file passed to the engine as positional argument
        collection_path: Working directory for the engine (defaults to cwd)
        verbose: Pass --verbose
        dry_run: Pass --dry-run
        priority: Pass --priority <value>
        tags: Pass --tags <comma-joined list> when non-empty
    """
    suite_file_path: Optional[str] = None
    collection_path: Optional[str] = None
    verbose: bool = False
    dry_run: bool = False
    priority: Optional[str] = None
    tags: List[str] = field(default_factory=list)


def build_command(
    options: ExecutionOptions,
    executable: Sequence[str] = DEFAULT_EXECUTABLE,
) -> List[str]:
    """Build the engine argv from execution options.

    Args:
        options: Execution options
        executable: Command prefix that starts the engine

    Returns:
        List of command arguments
    """
    cmd = list(executable)
    if options.suite_file_path:
        cmd.append(options.suite_file_path)
    if options.verbose:
        cmd.append("--verbose")
    if options.dry_run:
        cmd.append("--dry-run")
    if options.priority:
        cmd.extend(["--priority", options.priority])
    if options.tags:
        cmd.extend(["--tags", ",".join(options.tags)])
    return cmd


def resolve_cwd(options: ExecutionOptions) -> Path:
    if options.collection_path:
        return Path(options.collection_path).resolve()
    return Path.cwd()


async def iter_lines(reader: asyncio.StreamReader, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[str]:
    """Yield decoded lines from a byte stream as they arrive.

    Partial lines are buffered until their newline arrives; a trailing partial
    line is yielded at EOF. Undecodable bytes are replaced rather than raising.
    """
    buffer = b""
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            if buffer:
                yield buffer.decode("utf-8", errors="replace").rstrip("\r")
            return
        buffer += chunk
        while b"\n" in buffer:
            line_bytes, buffer = buffer.split(b"\n", 1)
            yield line_bytes.decode("utf-8", errors="replace").rstrip("\r")


class ProcessHandle:
    """A running engine process.

    Wraps an asyncio subprocess so the session only depends on this small
    surface: the two output streams, wait() and terminate().
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader:
        return self._process.stderr

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def wait(self) -> int:
        return await self._process.wait()

    async def terminate(self) -> None:
        """Send a termination signal to the process and its children.

        Returns once the signal is issued, not once the process has exited.
        """
        if self._process.returncode is not None:
            return
        pgid = self._process.pid
        if _is_unix() and pgid is not None:
            try:
                os.killpg(pgid, signal.SIGTERM)
            except (ProcessLookupError, PermissionError):
                # Process group may already be gone
                pass
        else:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass


class ProcessLauncher:
    """Starts engine processes. Subclass to change how processes are created."""

    async def launch(self, argv: Sequence[str], cwd: Union[str, Path]) -> ProcessHandle:
        raise NotImplementedError


class SubprocessLauncher(ProcessLauncher):
    """Launches the engine with asyncio.create_subprocess_exec.

    On Unix the child gets its own session (and process group) so terminate()
    can signal everything it spawned, e.g. the node process behind npx.
    """

    async def launch(self, argv: Sequence[str], cwd: Union[str, Path]) -> ProcessHandle:
        logger.debug(f"Launching {' '.join(argv)} in {cwd}")
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=_is_unix(),
        )
        return ProcessHandle(process)


async def get_tool_version(
    executable: Sequence[str] = DEFAULT_EXECUTABLE,
    launcher: Optional[ProcessLauncher] = None,
    timeout: float = 30.0,
) -> str:
    """Return the engine's `--version` output, stripped.

    Raises:
        OSError: If the engine cannot be started
        asyncio.TimeoutError: If it does not answer within timeout seconds
    """
    launcher = launcher or SubprocessLauncher()
    handle = await launcher.launch([*executable, "--version"], Path.cwd())

    async def collect() -> str:
        lines = [line async for line in iter_lines(handle.stdout)]
        await handle.wait()
        return "\n".join(lines).strip()

    try:
        return await asyncio.wait_for(collect(), timeout=timeout)
    except asyncio.TimeoutError:
        await handle.terminate()
        raise
