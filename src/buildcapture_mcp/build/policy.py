"""Build policy - target validation and MSBuild command line construction.

The build is always a full ``/t:rebuild`` with a binary logger, so every
compiler invocation of the solution is recorded in the log.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from ..errors import ArgumentError

DEFAULT_CONFIGURATION: Final[str] = "Debug"
DEFAULT_PLATFORM: Final[str] = "Any CPU"

# Values containing whitespace or a colon must be quoted for MSBuild switches
NEEDS_QUOTING: Final[re.Pattern[str]] = re.compile(r"[\s:]")

# MSBuild property names (e.g. TargetFramework, _Internal, My.Prop)
PROPERTY_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


def escape_value(value: str) -> str:
    """Escape a switch value for the MSBuild command line.

    Embedded double quotes are backslash-escaped; the value is wrapped in
    quotes when it contains whitespace or a colon.
    """
    value = value.replace('"', '\\"')
    if NEEDS_QUOTING.search(value):
        return f'"{value}"'
    return value


def merge_properties(
    configuration: str = DEFAULT_CONFIGURATION,
    platform: str = DEFAULT_PLATFORM,
    properties: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge configuration/platform with caller properties.

    Caller-supplied properties override ``Configuration`` and ``Platform``.
    """
    merged = {"Configuration": configuration, "Platform": platform}
    if properties:
        for key, value in properties.items():
            merged[key] = value
    return merged


@dataclass
class BuildPolicy:
    """Validates build targets and produces the MSBuild command line."""

    dotnet_path: str = "dotnet"
    verbosity: str = "minimal"

    def validate_target_path(self, target_path: str | None) -> str:
        """Validate that the project or solution file exists.

        Args:
            target_path: Path to a project or solution file

        Returns:
            Absolute path to the target

        Raises:
            ArgumentError: If the path is empty or does not exist
        """
        if not target_path:
            raise ArgumentError("Missing project or solution file path")

        abs_path = os.path.abspath(target_path)
        if not os.path.isfile(abs_path):
            raise ArgumentError(
                f"Invalid file path argument `{target_path}`. The file path does not exist"
            )
        return abs_path

    def validate_properties(self, properties: Mapping[str, str]) -> dict[str, str]:
        """Validate property names.

        Raises:
            ArgumentError: If a property name is not a valid MSBuild name
        """
        validated: dict[str, str] = {}
        for key, value in properties.items():
            if not PROPERTY_NAME_PATTERN.match(key):
                raise ArgumentError(f"Invalid MSBuild property name: {key!r}")
            validated[key] = "" if value is None else str(value)
        return validated

    def get_msbuild_command(
        self,
        target_path: str,
        log_path: str,
        properties: Mapping[str, str],
    ) -> list[str]:
        """Build the ``dotnet msbuild`` rebuild command line.

        Args:
            target_path: Validated project or solution path
            log_path: Binary log destination
            properties: Merged MSBuild properties

        Returns:
            Complete command line as list
        """
        command = [
            self.dotnet_path,
            "msbuild",
            target_path,
            "/t:rebuild",
            f"/binaryLogger:{escape_value(log_path)}",
            f"/verbosity:{self.verbosity}",
            "/nologo",
            "/interactive:false",
        ]
        for key, value in self.validate_properties(properties).items():
            command.append(f"/p:{key}={escape_value(value)}")
        return command
