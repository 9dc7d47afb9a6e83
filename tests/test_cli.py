"""Tests for CLI entry point - argument parsing and one-shot capture."""

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from buildcapture_mcp.__main__ import main, parse_args, run_capture
from buildcapture_mcp.build.state import BuildResult
from buildcapture_mcp.capture import CaptureResult, CompilationCapture
from buildcapture_mcp.workspace.model import Workspace


def write_dump(path, invocations):
    path.write_text("\n".join(json.dumps(i.to_dict()) for i in invocations), encoding="utf-8")
    return str(path)


class TestParseArgs:
    """Tests for parse_args function."""

    def test_defaults(self, monkeypatch):
        """Test default option values."""
        monkeypatch.delenv("BUILDCAPTURE_READER", raising=False)
        monkeypatch.delenv("DOTNET_PATH", raising=False)

        args = parse_args([])

        assert args.project is None
        assert args.project_from_cwd is False
        assert args.reader is None
        assert args.dotnet == "dotnet"
        assert args.configuration == "Debug"
        assert args.platform == "Any CPU"
        assert args.properties == []
        assert args.timeout is None

    def test_reader_from_environment(self, monkeypatch):
        """Test that the reader defaults to BUILDCAPTURE_READER."""
        monkeypatch.setenv("BUILDCAPTURE_READER", "my_reader:Reader")

        assert parse_args([]).reader == "my_reader:Reader"

    def test_properties(self):
        """Test repeatable Name=Value properties."""
        args = parse_args(["-p", "TargetFramework=net8.0", "--property", "Empty="])

        assert args.properties == [("TargetFramework", "net8.0"), ("Empty", "")]

    def test_invalid_property_exits(self):
        """Test that a property without '=' is a usage error."""
        with pytest.raises(SystemExit):
            parse_args(["-p", "NoValue"])

    def test_capture_and_invocations_exclusive(self):
        """Test that only one one-shot mode can be given."""
        with pytest.raises(SystemExit):
            parse_args(["--capture", "App.sln", "--invocations", "dump.jsonl"])


class TestRunCapture:
    """Tests for the one-shot capture modes."""

    @pytest.mark.asyncio
    async def test_invocations_dump(self, tmp_path, make_invocation, capsys):
        """Test assembling from a dump prints the projects."""
        dump = write_dump(
            tmp_path / "dump.jsonl", [make_invocation("net8.0"), make_invocation("net6.0")]
        )

        exit_code = await run_capture(parse_args(["--invocations", dump]))

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert [p["name"] for p in data["projects"]] == ["Lib", "Lib"]

    @pytest.mark.asyncio
    async def test_bad_dump_fails(self, tmp_path):
        """Test that an unreadable dump exits with an error code."""
        args = parse_args(["--invocations", str(tmp_path / "missing.jsonl")])

        assert await run_capture(args) == 1

    @pytest.mark.asyncio
    async def test_no_build_target_fails(self, tmp_path):
        """Test that a directory without a solution or project fails."""
        assert await run_capture(parse_args(["--capture", str(tmp_path)])) == 1

    @pytest.mark.asyncio
    async def test_capture_without_reader_fails(self, tmp_path, monkeypatch):
        """Test that building requires a binary log reader."""
        monkeypatch.delenv("BUILDCAPTURE_READER", raising=False)
        (tmp_path / "App.sln").touch()

        assert await run_capture(parse_args(["--capture", str(tmp_path)])) == 1

    @pytest.mark.asyncio
    async def test_capture_logs_build_summary(self, tmp_path, capsys, caplog):
        """Test that a successful build logs its summary and prints the projects."""
        (tmp_path / "App.sln").touch()
        build_result = BuildResult(
            log_path=str(tmp_path / "capture.binlog"),
            target_path=str(tmp_path / "App.sln"),
            properties={"Configuration": "Release", "Platform": "x64"},
            duration_ms=1200,
        )
        result = CaptureResult(Workspace(), {}, build_result=build_result)
        args = parse_args(["--capture", str(tmp_path), "--reader", "r:R"])

        with patch("buildcapture_mcp.__main__.load_reader"), patch.object(
            CompilationCapture, "build", AsyncMock(return_value=result)
        ), caplog.at_level(logging.INFO, logger="buildcapture_mcp.__main__"):
            assert await run_capture(args) == 0

        assert "[OK] Build succeeded" in caplog.text
        assert "Configuration: Release" in caplog.text
        assert json.loads(capsys.readouterr().out)["build"]["targetPath"].endswith("App.sln")


class TestMain:
    """Tests for main entry point."""

    @pytest.mark.asyncio
    async def test_project_from_cwd_conflicts_with_project(self, tmp_path):
        """Test that --project-from-cwd and --project cannot be combined."""
        assert await main(["--project-from-cwd", "--project", str(tmp_path)]) == 1
