"""Tests for build session - running the rebuild and observing output."""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from buildcapture_mcp.build.policy import BuildPolicy
from buildcapture_mcp.build.session import BuildSession, create_log_path
from buildcapture_mcp.build.state import BuildCancelled, BuildFailure, BuildState, LaunchFailure
from buildcapture_mcp.errors import ArgumentError


def write_fake_dotnet(tmp_path, body):
    """Executable standing in for the dotnet driver."""
    script = tmp_path / "fake-dotnet"
    script.write_text(f"#!{sys.executable}\nimport sys, time\n{body}\n", encoding="utf-8")
    script.chmod(0o755)
    return BuildPolicy(dotnet_path=str(script))


def make_process(stdout_lines=(), stderr_lines=(), returncode=0):
    """Fake asyncio subprocess producing the given output lines."""
    process = MagicMock()
    process.stdout.readline = AsyncMock(side_effect=[*stdout_lines, b""])
    process.stderr.readline = AsyncMock(side_effect=[*stderr_lines, b""])
    process.wait = AsyncMock(return_value=returncode)
    process.returncode = returncode
    return process


@pytest.fixture
def target(tmp_path):
    path = tmp_path / "App.sln"
    path.touch()
    return str(path)


@pytest.fixture
def log_path(tmp_path):
    path = tmp_path / "capture.binlog"
    path.write_bytes(b"binlog")
    with patch("buildcapture_mcp.build.session.create_log_path", return_value=str(path)):
        yield str(path)


class TestCreateLogPath:
    """Tests for temporary log allocation."""

    def test_unique_binlog_files(self):
        """Test that each call allocates a new file."""
        first = create_log_path()
        second = create_log_path()
        try:
            assert first != second
            assert first.endswith(".binlog")
            assert os.path.exists(first)
        finally:
            os.remove(first)
            os.remove(second)


class TestBuildSessionInit:
    """Tests for BuildSession initialization."""

    def test_state_starts_idle(self):
        """Test initial state is IDLE."""
        session = BuildSession()
        assert session.state == BuildState.IDLE
        assert not session.is_building

    def test_init_creates_policy(self):
        """Test that policy is created if not provided."""
        session = BuildSession()
        assert session._policy.dotnet_path == "dotnet"


class TestBuildSessionStateListeners:
    """Tests for state change listeners."""

    def test_state_change_notifies_listeners(self):
        """Test that state changes notify listeners."""
        session = BuildSession()
        listener = MagicMock()
        session.on_state_change(listener)

        session._set_state(BuildState.BUILDING)

        listener.assert_called_once_with(BuildState.BUILDING)

    def test_same_state_does_not_notify(self):
        """Test that setting the current state is silent."""
        session = BuildSession()
        listener = MagicMock()
        session.on_state_change(listener)

        session._set_state(BuildState.IDLE)

        listener.assert_not_called()

    def test_listener_exception_doesnt_crash(self):
        """Test that listener exceptions don't crash session."""
        session = BuildSession()
        session.on_state_change(MagicMock(side_effect=Exception("Listener error")))

        session._set_state(BuildState.BUILDING)

        assert session.state == BuildState.BUILDING


class TestRunBuild:
    """Tests for successful and failing builds."""

    @pytest.mark.asyncio
    async def test_success_returns_log_and_output(self, target, log_path):
        """Test that a successful build keeps the log and captures both streams."""
        process = make_process([b"Restored App\n"], [b"some warning text\n"])
        session = BuildSession()
        states = []
        session.on_state_change(states.append)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await session.run_build(target)

        assert result.log_path == log_path
        assert os.path.exists(log_path)
        assert result.target_path == target
        assert "Restored App" in result.output
        assert "some warning text" in result.output
        assert result.properties == {"Configuration": "Debug", "Platform": "Any CPU"}
        assert states == [BuildState.BUILDING, BuildState.READY]

    @pytest.mark.asyncio
    async def test_command_and_working_directory(self, target, log_path):
        """Test the launched command and its working directory."""
        process = make_process()
        session = BuildSession(BuildPolicy(dotnet_path="/opt/dotnet/dotnet"))
        exec_mock = AsyncMock(return_value=process)

        with patch("asyncio.create_subprocess_exec", exec_mock):
            await session.run_build(
                target, "Release", "x64", {"Configuration": "Custom", "TargetFramework": "net8.0"}
            )

        args = exec_mock.call_args.args
        assert args[:4] == ("/opt/dotnet/dotnet", "msbuild", target, "/t:rebuild")
        assert f"/binaryLogger:{log_path}" in args
        assert "/p:Configuration=Custom" in args
        assert "/p:Platform=x64" in args
        assert "/p:TargetFramework=net8.0" in args
        assert exec_mock.call_args.kwargs["cwd"] == os.path.dirname(target)

    @pytest.mark.asyncio
    async def test_blank_lines_dropped(self, target, log_path):
        """Test that empty output lines are not kept."""
        process = make_process([b"first\n", b"\n", b"   \r\n", b"second\r\n"])

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await BuildSession().run_build(target)

        assert result.output == "first\nsecond"

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_build_failure(self, target, log_path):
        """Test that a failing build raises with its output and deletes the log."""
        process = make_process(
            [b"Program.cs(3,1): error CS1002: ; expected [/src/App.csproj]\n"], returncode=1
        )
        session = BuildSession()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(BuildFailure) as exc_info:
                await session.run_build(target)

        error = exc_info.value
        assert error.exit_code == 1
        assert "error CS1002" in error.output
        assert str(error).startswith(f"Unable to build {target}. Reason:")
        assert [d.code for d in error.errors] == ["CS1002"]
        assert not os.path.exists(log_path)
        assert session.state == BuildState.FAILED

    @pytest.mark.asyncio
    async def test_launch_failure(self, target, log_path):
        """Test that a missing build driver raises LaunchFailure."""
        session = BuildSession()
        exec_mock = AsyncMock(side_effect=FileNotFoundError("dotnet"))

        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(LaunchFailure) as exc_info:
                await session.run_build(target)

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert not os.path.exists(log_path)
        assert session.state == BuildState.FAILED

    @pytest.mark.asyncio
    async def test_read_error_is_not_launch_failure(self, target, log_path):
        """Test that an error while reading output kills the process and propagates."""
        process = make_process()
        process.stdout.readline = AsyncMock(side_effect=RuntimeError("pipe broke"))
        session = BuildSession()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(RuntimeError):
                await session.run_build(target)

        process.kill.assert_called_once()
        process.wait.assert_awaited()
        assert not os.path.exists(log_path)
        assert session.state == BuildState.FAILED

    @pytest.mark.asyncio
    async def test_missing_target_not_launched(self, tmp_path):
        """Test that an invalid target fails before anything is started."""
        exec_mock = AsyncMock()

        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(ArgumentError):
                await BuildSession().run_build(str(tmp_path / "Missing.sln"))

        exec_mock.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_property_not_launched(self, target):
        """Test that a bad property name fails before a log is allocated."""
        exec_mock = AsyncMock()

        with patch("asyncio.create_subprocess_exec", exec_mock), patch(
            "buildcapture_mcp.build.session.create_log_path"
        ) as log_mock:
            with pytest.raises(ArgumentError):
                await BuildSession().run_build(target, properties={"Bad Name": "1"})

        exec_mock.assert_not_called()
        log_mock.assert_not_called()


class TestBuildTimeoutAndCancel:
    """Tests for timeout and cancellation."""

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, target, log_path):
        """Test that a build exceeding its timeout is killed."""

        async def hang():
            await asyncio.sleep(60)

        process = make_process()
        process.stdout.readline = hang
        process.stderr.readline = hang
        session = BuildSession()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(BuildCancelled):
                await session.run_build(target, timeout=0.1)

        process.kill.assert_called_once()
        process.wait.assert_awaited()
        assert not os.path.exists(log_path)
        assert session.state == BuildState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self):
        """Test that cancel without a running build does nothing."""
        assert await BuildSession().cancel() is False


@pytest.mark.skipif(sys.platform == "win32", reason="needs an executable script")
class TestBuildWithChildProcess:
    """Tests running a real child process in place of dotnet."""

    @pytest.mark.asyncio
    async def test_long_output_line_is_truncated(self, tmp_path, target, log_path):
        """Test that a line above the default stream limit does not fail the build."""
        policy = write_fake_dotnet(tmp_path, 'print("x" * 200000)\nprint("done")')
        session = BuildSession(policy)

        result = await session.run_build(target)

        assert "...[truncated]" in result.output
        assert result.output.endswith("done")
        assert session.state == BuildState.READY

    @pytest.mark.asyncio
    async def test_line_above_read_limit_is_dropped(self, tmp_path, target, log_path, monkeypatch):
        """Test that a line longer than the stream buffer is skipped."""
        monkeypatch.setattr(sys.modules["buildcapture_mcp.build.session"], "STREAM_READ_LIMIT", 1024)
        policy = write_fake_dotnet(tmp_path, 'print("y" * 5000)\nprint("done")')
        session = BuildSession(policy)

        result = await session.run_build(target)

        assert "bytes dropped]" in result.output
        assert result.output.endswith("done")
        assert session.state == BuildState.READY
        assert session._current_process is None

    @pytest.mark.asyncio
    async def test_cancel_running_build(self, tmp_path, target, log_path):
        """Test that cancel stops a running build and reaps the process."""
        policy = write_fake_dotnet(
            tmp_path, 'print("building", flush=True)\ntime.sleep(30)'
        )
        session = BuildSession(policy)
        task = asyncio.ensure_future(session.run_build(target))

        async def cancel_when_started():
            while session._current_process is None:
                await asyncio.sleep(0.05)
            process = session._current_process
            assert await session.cancel() is True
            return process

        process = await asyncio.wait_for(cancel_when_started(), timeout=10)
        with pytest.raises(BuildCancelled):
            await asyncio.wait_for(task, timeout=10)

        assert process.returncode is not None
        assert not os.path.exists(log_path)
        assert session.state == BuildState.CANCELLED

    @pytest.mark.asyncio
    async def test_timeout_reaps_process(self, tmp_path, target, log_path):
        """Test that a timed out build leaves no running child behind."""
        policy = write_fake_dotnet(tmp_path, "time.sleep(30)")
        session = BuildSession(policy)
        started = []
        real_exec = asyncio.create_subprocess_exec

        async def record_exec(*args, **kwargs):
            process = await real_exec(*args, **kwargs)
            started.append(process)
            return process

        with patch("asyncio.create_subprocess_exec", record_exec):
            with pytest.raises(BuildCancelled):
                await session.run_build(target, timeout=0.5)

        assert started[0].returncode is not None
        assert session.state == BuildState.CANCELLED
