"""Build session - runs one MSBuild rebuild with a binary log.

State machine:
IDLE → BUILDING → READY | FAILED | CANCELLED

stdout and stderr are drained concurrently into one shared buffer so a full
pipe on either stream can never stall the build. Both readers finish before
the exit code is inspected.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import time
from collections.abc import Callable, Mapping

from .policy import DEFAULT_CONFIGURATION, DEFAULT_PLATFORM, BuildPolicy, merge_properties
from .state import BuildCancelled, BuildFailure, BuildResult, BuildState, LaunchFailure

logger = logging.getLogger(__name__)

# Output buffer limits
MAX_OUTPUT_BYTES: int = 5_000_000  # 5MB total
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line

# StreamReader buffer; longer lines cannot be read whole
STREAM_READ_LIMIT: int = 1024 * 1024

# Seconds to wait for a killed process to exit
PROCESS_EXIT_TIMEOUT: float = 5.0


def _delete_file(path: str) -> None:
    """Delete a file if it exists."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def create_log_path() -> str:
    """Allocate a uniquely named temporary binary log file."""
    fd, path = tempfile.mkstemp(prefix="buildcapture-", suffix=".binlog")
    os.close(fd)
    return path


class BuildSession:
    """Runs the external build driver and observes its output.

    Only one build can run at a time per session.
    """

    def __init__(self, policy: BuildPolicy | None = None):
        """Initialize build session.

        Args:
            policy: Build policy (created with defaults if not provided)
        """
        self._policy = policy or BuildPolicy()
        self._state = BuildState.IDLE
        self._lock = asyncio.Lock()
        self._current_process: asyncio.subprocess.Process | None = None
        self._cancel_requested = False
        self._state_listeners: list[Callable[[BuildState], None]] = []

    @property
    def state(self) -> BuildState:
        """Current build state."""
        return self._state

    @property
    def is_building(self) -> bool:
        """Whether a build is currently running."""
        return self._state == BuildState.BUILDING

    def on_state_change(self, listener: Callable[[BuildState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: BuildState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Build state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    async def _run_command(
        self,
        command: list[str],
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> tuple[int, str]:
        """Run command capturing combined output.

        Args:
            command: Command and arguments
            cwd: Working directory
            timeout: Timeout in seconds, None to wait indefinitely

        Returns:
            Tuple of (exit_code, combined_output)

        Raises:
            LaunchFailure: If the process cannot be started
            asyncio.CancelledError: If cancelled
            asyncio.TimeoutError: If timeout exceeded
        """
        # Never use shell=True
        try:
            self._current_process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=cwd,
                limit=STREAM_READ_LIMIT,
            )
        except Exception as e:
            raise LaunchFailure(
                f"Unexpected exception when trying to build {command[2]}. Reason:\n{e}"
            ) from e

        process = self._current_process
        # Lines from both streams, in arrival order
        lines: list[str] = []
        byte_counter = [0]

        def append_line(text: str) -> None:
            if len(text) > MAX_OUTPUT_LINE:
                text = text[:MAX_OUTPUT_LINE] + "...[truncated]"
            lines.append(text)
            byte_counter[0] += len(text)
            # Drop old lines if buffer too large
            while byte_counter[0] > MAX_OUTPUT_BYTES and lines:
                removed = lines.pop(0)
                byte_counter[0] -= len(removed)

        async def read_stream(stream: asyncio.StreamReader | None) -> None:
            if stream is None:
                return
            while True:
                try:
                    line = await asyncio.wait_for(stream.readline(), timeout=1.0)
                except asyncio.TimeoutError:
                    if self._cancel_requested:
                        raise asyncio.CancelledError()
                    continue
                except ValueError:
                    # Line longer than the stream limit; the reader already dropped it
                    append_line(f"...[line longer than {STREAM_READ_LIMIT} bytes dropped]")
                    continue
                if not line:
                    break
                decoded = line.decode("utf-8", errors="replace").rstrip("\r\n")
                if decoded.strip():
                    append_line(decoded)

        readers = [
            asyncio.ensure_future(read_stream(process.stdout)),
            asyncio.ensure_future(read_stream(process.stderr)),
        ]
        try:
            await asyncio.wait_for(asyncio.gather(*readers), timeout=timeout)
            await process.wait()
        except (Exception, asyncio.CancelledError):
            for reader in readers:
                reader.cancel()
            await self._terminate_current_process()
            raise
        finally:
            self._current_process = None

        return process.returncode or 0, "\n".join(lines)

    def _kill_current_process(self) -> None:
        if self._current_process is None:
            return
        try:
            self._current_process.kill()
        except ProcessLookupError:
            pass

    async def _terminate_current_process(self) -> None:
        """Kill the running process and reap it."""
        process = self._current_process
        if process is None:
            return
        self._kill_current_process()
        try:
            await asyncio.wait_for(process.wait(), timeout=PROCESS_EXIT_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Build process {process.pid} did not exit after kill")

    async def run_build(
        self,
        target_path: str,
        configuration: str = DEFAULT_CONFIGURATION,
        platform: str = DEFAULT_PLATFORM,
        properties: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> BuildResult:
        """Rebuild a project or solution with a binary log.

        The caller owns ``result.log_path`` and must delete it once read.
        On any failure the log file is deleted before the error is raised.

        Args:
            target_path: Path to project or solution file
            configuration: Build configuration
            platform: Build platform
            properties: Extra MSBuild properties, overriding the two above
            timeout: Timeout in seconds, None to wait indefinitely

        Returns:
            Build result holding the binary log path

        Raises:
            ArgumentError: If the target does not exist
            LaunchFailure: If the build driver cannot be started
            BuildFailure: If the build exits with a non-zero code
            BuildCancelled: If the build is cancelled or times out
        """
        validated_path = self._policy.validate_target_path(target_path)
        merged = self._policy.validate_properties(
            merge_properties(configuration, platform, properties)
        )

        async with self._lock:
            self._cancel_requested = False
            self._set_state(BuildState.BUILDING)
            start_time = time.perf_counter()
            log_path = create_log_path()
            cmd = self._policy.get_msbuild_command(validated_path, log_path, merged)
            logger.info(f"Running: {' '.join(cmd)}")

            try:
                exit_code, output = await self._run_command(
                    cmd, cwd=os.path.dirname(validated_path), timeout=timeout
                )
            except asyncio.TimeoutError:
                _delete_file(log_path)
                self._set_state(BuildState.CANCELLED)
                logger.warning(f"Build timeout after {timeout}s")
                raise BuildCancelled(
                    f"Unable to build {validated_path}. Reason: timeout after {timeout}s"
                )
            except asyncio.CancelledError:
                _delete_file(log_path)
                self._set_state(BuildState.CANCELLED)
                raise BuildCancelled(f"Build of {validated_path} was cancelled")
            except BaseException:
                _delete_file(log_path)
                self._set_state(BuildState.FAILED)
                raise

            duration = (time.perf_counter() - start_time) * 1000

            if self._cancel_requested:
                _delete_file(log_path)
                self._set_state(BuildState.CANCELLED)
                raise BuildCancelled(
                    f"Build of {validated_path} was cancelled", output=output, exit_code=exit_code
                )

            if exit_code != 0:
                _delete_file(log_path)
                self._set_state(BuildState.FAILED)
                raise BuildFailure(
                    f"Unable to build {validated_path}. Reason:\n{output}",
                    output=output,
                    exit_code=exit_code,
                )

            self._set_state(BuildState.READY)
            logger.info(f"Build of {validated_path} succeeded in {duration:.0f}ms")
            return BuildResult(
                log_path=log_path,
                target_path=validated_path,
                properties=merged,
                exit_code=exit_code,
                output=output,
                duration_ms=duration,
            )

    async def cancel(self) -> bool:
        """Cancel current build.

        Returns:
            True if a build was cancelled
        """
        if not self.is_building:
            return False

        self._cancel_requested = True
        self._kill_current_process()
        return True
