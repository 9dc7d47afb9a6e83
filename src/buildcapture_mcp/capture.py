"""Compilation capture - build a solution and reconstruct its projects.

Usage:
    result = build("/path/to/Solution.sln", reader=my_binlog_reader)
    for project in result.workspace:
        arguments, found = result.try_get_command_line_arguments(project)
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

from .build.policy import DEFAULT_CONFIGURATION, DEFAULT_PLATFORM, BuildPolicy
from .build.session import BuildSession
from .build.state import BuildResult
from .compiler.arguments import ArgumentInterpreter, CSharpArgumentInterpreter, StructuredArguments
from .compiler.invocations import LANGUAGE_CSHARP, Invocation, InvocationReader
from .errors import ArgumentError
from .workspace.builder import WorkspaceBuilder
from .workspace.model import Project, ProjectId, Workspace
from .workspace.references import MetadataReferenceCache, ReferenceLoader

logger = logging.getLogger(__name__)


class CaptureResult:
    """Captured workspace plus the arguments each project was compiled with."""

    def __init__(
        self,
        workspace: Workspace,
        command_line_arguments: Mapping[ProjectId, StructuredArguments],
        build_result: BuildResult | None = None,
    ):
        self._workspace = workspace
        self._command_line_arguments = dict(command_line_arguments)
        self._build_result = build_result

    @property
    def workspace(self) -> Workspace:
        """The reconstructed workspace."""
        return self._workspace

    @property
    def build_result(self) -> BuildResult | None:
        """Result of the build that produced this capture, if any."""
        return self._build_result

    @property
    def projects(self) -> list[Project]:
        return self._workspace.projects

    def try_get_command_line_arguments(
        self, project: Project | ProjectId
    ) -> tuple[StructuredArguments | None, bool]:
        """Get the arguments a project was compiled with.

        Args:
            project: Project or its identity

        Returns:
            Tuple of (arguments, found); arguments is None when not found
        """
        project_id = project.id if isinstance(project, Project) else project
        arguments = self._command_line_arguments.get(project_id)
        return arguments, arguments is not None

    def __len__(self) -> int:
        return len(self._workspace)

    def to_dict(self) -> dict[str, Any]:
        """Summary for JSON serialization."""
        result: dict[str, Any] = {
            "projects": [p.to_dict() for p in self._workspace],
        }
        if self._build_result is not None:
            result["build"] = self._build_result.to_dict()
        return result


class CompilationCapture:
    """Runs a build and assembles a workspace from its compiler invocations.

    Each call to :meth:`build` uses a fresh metadata reference cache.
    """

    def __init__(
        self,
        reader: InvocationReader | None = None,
        interpreter: ArgumentInterpreter | None = None,
        reference_loader: ReferenceLoader | None = None,
        language: str = LANGUAGE_CSHARP,
        policy: BuildPolicy | None = None,
    ):
        """Initialize capture.

        Args:
            reader: Reads compiler invocations from a binary log
            interpreter: Interprets compiler arguments (C# by default)
            reference_loader: Loads metadata references from files
            language: Language of the projects to capture
            policy: Build policy (created with defaults if not provided)
        """
        self._reader = reader
        self._interpreter = interpreter or CSharpArgumentInterpreter()
        self._reference_loader = reference_loader
        self._language = language
        self._session = BuildSession(policy)

    @property
    def session(self) -> BuildSession:
        return self._session

    def _assemble(
        self, invocations: Iterable[Invocation]
    ) -> tuple[Workspace, dict[ProjectId, StructuredArguments]]:
        references = MetadataReferenceCache(self._reference_loader)
        builder = WorkspaceBuilder(self._interpreter, references, self._language)
        try:
            return builder.assemble(invocations)
        finally:
            references.clear()

    def assemble(self, invocations: Iterable[Invocation]) -> CaptureResult:
        """Assemble a capture result from already recorded invocations."""
        workspace, arguments = self._assemble(invocations)
        return CaptureResult(workspace, arguments)

    async def build(
        self,
        project_or_solution: str,
        configuration: str = DEFAULT_CONFIGURATION,
        platform: str = DEFAULT_PLATFORM,
        properties: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CaptureResult:
        """Build a project or solution and capture its compilations.

        Raises:
            ArgumentError: If the path is invalid or no reader is configured
            LaunchFailure: If the build driver cannot be started
            BuildFailure: If the build fails
            TokenizerError: If a recorded command line is malformed
            InterpreterError: If compiler arguments cannot be interpreted
            AssemblyError: If a source file cannot be read
        """
        if self._reader is None:
            raise ArgumentError("No invocation reader configured for binary logs")

        build_result = await self._session.run_build(
            project_or_solution,
            configuration=configuration,
            platform=platform,
            properties=properties,
            timeout=timeout,
        )

        try:
            invocations = self._reader.read_invocations(build_result.log_path)
            workspace, arguments = self._assemble(invocations)
        finally:
            try:
                os.remove(build_result.log_path)
            except FileNotFoundError:
                pass

        return CaptureResult(workspace, arguments, build_result)


async def build_async(
    project_or_solution: str,
    configuration: str = DEFAULT_CONFIGURATION,
    platform: str = DEFAULT_PLATFORM,
    properties: Mapping[str, str] | None = None,
    *,
    reader: InvocationReader | None = None,
    interpreter: ArgumentInterpreter | None = None,
    reference_loader: ReferenceLoader | None = None,
    timeout: float | None = None,
    dotnet_path: str = "dotnet",
) -> CaptureResult:
    """Build a project or solution and reconstruct its C# projects."""
    capture = CompilationCapture(
        reader=reader,
        interpreter=interpreter,
        reference_loader=reference_loader,
        policy=BuildPolicy(dotnet_path=dotnet_path),
    )
    return await capture.build(
        project_or_solution, configuration, platform, properties, timeout=timeout
    )


def build(
    project_or_solution: str,
    configuration: str = DEFAULT_CONFIGURATION,
    platform: str = DEFAULT_PLATFORM,
    properties: Mapping[str, str] | None = None,
    *,
    reader: InvocationReader | None = None,
    interpreter: ArgumentInterpreter | None = None,
    reference_loader: ReferenceLoader | None = None,
    timeout: float | None = None,
    dotnet_path: str = "dotnet",
) -> CaptureResult:
    """Synchronous version of :func:`build_async`.

    Must not be called from a running event loop.
    """
    return asyncio.run(
        build_async(
            project_or_solution,
            configuration,
            platform,
            properties,
            reader=reader,
            interpreter=interpreter,
            reference_loader=reference_loader,
            timeout=timeout,
            dotnet_path=dotnet_path,
        )
    )


def capture_from_invocations(
    invocations: Iterable[Invocation],
    *,
    interpreter: ArgumentInterpreter | None = None,
    reference_loader: ReferenceLoader | None = None,
    language: str = LANGUAGE_CSHARP,
) -> CaptureResult:
    """Assemble a capture result without running a build."""
    capture = CompilationCapture(
        interpreter=interpreter, reference_loader=reference_loader, language=language
    )
    return capture.assemble(invocations)


def load_reader(spec: str) -> InvocationReader:
    """Instantiate an invocation reader from ``module:attribute``.

    The attribute may be a class (instantiated without arguments) or an
    object already providing ``read_invocations``.

    Raises:
        ArgumentError: If the reader cannot be imported
    """
    module_name, _, attribute = spec.partition(":")
    if not module_name or not attribute:
        raise ArgumentError(f"Invalid reader `{spec}`, expected module:attribute")
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ArgumentError(f"Cannot load reader `{spec}`: {e}") from e

    reader = target() if isinstance(target, type) else target
    if not hasattr(reader, "read_invocations"):
        raise ArgumentError(f"Reader `{spec}` has no read_invocations method")
    logger.debug(f"Loaded invocation reader {spec}")
    return reader
