"""Compiler invocation records and invocation log readers.

Reading MSBuild binary logs is delegated to an external reader; anything
implementing :class:`InvocationReader` can be plugged into a capture.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import InvocationLogError

logger = logging.getLogger(__name__)

LANGUAGE_CSHARP = "C#"
LANGUAGE_VB = "VB"


@dataclass(frozen=True)
class Invocation:
    """One compiler process launched by the build."""

    language: str
    project_file_path: str
    project_directory: str
    command_line_arguments: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Invocation:
        """Create from a JSON object using camelCase keys."""
        try:
            return cls(
                language=data["language"],
                project_file_path=data["projectFilePath"],
                project_directory=data["projectDirectory"],
                command_line_arguments=data["commandLineArguments"],
            )
        except KeyError as e:
            raise InvocationLogError(f"Invocation is missing field {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "language": self.language,
            "projectFilePath": self.project_file_path,
            "projectDirectory": self.project_directory,
            "commandLineArguments": self.command_line_arguments,
        }


class InvocationReader(Protocol):
    """Turns a structured build log into compiler invocations."""

    def read_invocations(self, log_path: str) -> Iterable[Invocation]:
        ...


class JsonInvocationReader:
    """Reads invocations from a JSON-lines dump.

    Each non-blank line holds one object with ``language``,
    ``projectFilePath``, ``projectDirectory`` and ``commandLineArguments``.
    """

    def read_invocations(self, log_path: str) -> Iterator[Invocation]:
        try:
            with open(log_path, encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            raise InvocationLogError(f"Cannot read invocation log {log_path}: {e}") from e

        for line_number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise InvocationLogError(
                    f"{log_path}:{line_number}: invalid JSON ({e.msg})"
                ) from e
            if not isinstance(data, dict):
                raise InvocationLogError(
                    f"{log_path}:{line_number}: expected an object"
                )
            yield Invocation.from_dict(data)

        logger.debug(f"Read invocations from {log_path} ({len(lines)} lines)")
