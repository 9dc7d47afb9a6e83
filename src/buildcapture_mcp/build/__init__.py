"""Build orchestration for compilation capture.

Runs a full MSBuild rebuild with a binary logger:
- Target validation and property merging
- Concurrent stdout/stderr draining into one buffer
- Temporary log cleanup on every failure path
- Optional timeout and cancellation
"""

from .policy import BuildPolicy, escape_value, merge_properties
from .session import BuildSession
from .state import (
    BuildCancelled,
    BuildDiagnostic,
    BuildFailure,
    BuildResult,
    BuildState,
    LaunchFailure,
)

__all__ = [
    "BuildPolicy",
    "escape_value",
    "merge_properties",
    "BuildSession",
    "BuildCancelled",
    "BuildDiagnostic",
    "BuildFailure",
    "BuildResult",
    "BuildState",
    "LaunchFailure",
]
