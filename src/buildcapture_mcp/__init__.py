"""Capture the C# compilations of a .NET build as an in-memory workspace."""

from .build import BuildCancelled, BuildFailure, BuildResult, LaunchFailure
from .capture import (
    CaptureResult,
    CompilationCapture,
    build,
    build_async,
    capture_from_invocations,
)
from .compiler import Invocation, InvocationReader, StructuredArguments, tokenize
from .errors import (
    ArgumentError,
    AssemblyError,
    CaptureError,
    InterpreterError,
    InvocationLogError,
    ReferenceLoadError,
    TokenizerError,
)
from .workspace import Document, MetadataReferenceCache, Project, ProjectId, Workspace

__all__ = [
    "build",
    "build_async",
    "capture_from_invocations",
    "CaptureResult",
    "CompilationCapture",
    "BuildCancelled",
    "BuildFailure",
    "BuildResult",
    "LaunchFailure",
    "Invocation",
    "InvocationReader",
    "StructuredArguments",
    "tokenize",
    "ArgumentError",
    "AssemblyError",
    "CaptureError",
    "InterpreterError",
    "InvocationLogError",
    "ReferenceLoadError",
    "TokenizerError",
    "Document",
    "MetadataReferenceCache",
    "Project",
    "ProjectId",
    "Workspace",
]
