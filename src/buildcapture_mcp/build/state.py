"""Build state management, result and failure types.

State machine for build sessions:
IDLE → BUILDING → READY | FAILED | CANCELLED
     ↑_____________________________|
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import CaptureError


class BuildState(str, Enum):
    """Build session state machine states."""

    IDLE = "idle"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BuildErrorSeverity(str, Enum):
    """MSBuild error severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class BuildDiagnostic:
    """Parsed MSBuild diagnostic (error/warning)."""

    severity: BuildErrorSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    project: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.project:
            result["project"] = self.project
        return result

    def __str__(self) -> str:
        location = ""
        if self.file:
            location = self.file
            if self.line is not None:
                location += f"({self.line},{self.column or 0})"
            location += ": "
        return f"{location}{self.severity.value} {self.code}: {self.message}"


# Format: path(line,col): severity code: message [project]
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?P<file>[^(]+)\((?P<line>\d+),(?P<col>\d+)\):\s*"
    r"(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Format without location, optionally prefixed by the tool: [MSBUILD : ]severity code: message
MSBUILD_SIMPLE_PATTERN = re.compile(
    r"^(?:[^:]+ : )?(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)


def parse_msbuild_output(output: str) -> list[BuildDiagnostic]:
    """Parse MSBuild output into structured diagnostics.

    Args:
        output: MSBuild console output

    Returns:
        List of parsed diagnostics
    """
    diagnostics: list[BuildDiagnostic] = []

    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
        if match:
            diagnostics.append(
                BuildDiagnostic(
                    severity=BuildErrorSeverity(match.group("severity").lower()),
                    code=match.group("code"),
                    message=match.group("message"),
                    file=match.group("file").strip(),
                    line=int(match.group("line")),
                    column=int(match.group("col")),
                    project=match.group("project"),
                )
            )
            continue

        match = MSBUILD_SIMPLE_PATTERN.match(line)
        if match:
            diagnostics.append(
                BuildDiagnostic(
                    severity=BuildErrorSeverity(match.group("severity").lower()),
                    code=match.group("code"),
                    message=match.group("message"),
                    project=match.group("project"),
                )
            )

    return diagnostics


class LaunchFailure(CaptureError):
    """The build driver process could not be started."""

    pass


class BuildFailure(CaptureError):
    """The build driver exited with a non-zero code.

    Carries the combined stdout/stderr output captured while it ran.
    """

    def __init__(
        self,
        message: str,
        output: str = "",
        exit_code: int | None = None,
        diagnostics: list[BuildDiagnostic] | None = None,
    ):
        super().__init__(message)
        self.output = output
        self.exit_code = exit_code
        if diagnostics is None:
            diagnostics = parse_msbuild_output(output)
        self.diagnostics = diagnostics

    @property
    def errors(self) -> list[BuildDiagnostic]:
        """Get only error diagnostics."""
        return [d for d in self.diagnostics if d.severity == BuildErrorSeverity.ERROR]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "output": self.output,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        return result


class BuildCancelled(BuildFailure):
    """The build was cancelled or exceeded its timeout."""

    pass


@dataclass
class BuildResult:
    """Result of a successful build: the binary log and captured output."""

    log_path: str
    target_path: str
    properties: dict[str, str]
    exit_code: int = 0
    output: str = ""
    diagnostics: list[BuildDiagnostic] = field(default_factory=list)
    duration_ms: float = 0.0

    def __post_init__(self) -> None:
        """Parse diagnostics from output if not provided."""
        if not self.diagnostics and self.output:
            self.diagnostics = parse_msbuild_output(self.output)

    @property
    def warnings(self) -> list[BuildDiagnostic]:
        """Get only warning diagnostics."""
        return [d for d in self.diagnostics if d.severity == BuildErrorSeverity.WARNING]

    @property
    def warning_count(self) -> int:
        """Count of warnings."""
        return len(self.warnings)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "targetPath": self.target_path,
            "properties": dict(self.properties),
            "exitCode": self.exit_code,
            "warningCount": self.warning_count,
            "durationMs": round(self.duration_ms, 2),
        }
        if self.diagnostics:
            result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        parts = [
            "[OK] Build succeeded",
            f"  Target: {self.target_path}",
            f"  Configuration: {self.properties.get('Configuration', '')}",
            f"  Platform: {self.properties.get('Platform', '')}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.warning_count > 0:
            parts.append(f"  Warnings: {self.warning_count}")
        for warning in self.warnings[:5]:
            parts.append(f"    {warning}")
        if self.warning_count > 5:
            parts.append(f"    ... and {self.warning_count - 5} more warnings")
        return "\n".join(parts)
