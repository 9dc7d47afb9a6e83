"""Workspace builder - turns compiler invocations into projects.

Invocations are processed strictly in log order. Any failure aborts the
whole assembly; a partially built workspace is never returned.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from ..compiler.arguments import ArgumentInterpreter, StructuredArguments
from ..compiler.invocations import LANGUAGE_CSHARP, Invocation
from ..compiler.tokenizer import strip_executable_prefix, tokenize
from ..errors import AssemblyError, CaptureError, InterpreterError
from .model import Document, Project, ProjectId, Workspace
from .references import MetadataReferenceCache

logger = logging.getLogger(__name__)


def document_name(file_path: str, project_directory: str) -> str:
    """Display name for a source file.

    Strips the project directory prefix when the path starts with it,
    otherwise returns the path unchanged.
    """
    if project_directory and file_path.startswith(project_directory):
        return file_path[len(project_directory):]
    return file_path


def read_source_text(file_path: str) -> str:
    """Read a source file, honoring a UTF-8 byte order mark.

    Raises:
        AssemblyError: If the file cannot be read or decoded
    """
    try:
        with open(file_path, encoding="utf-8-sig") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise AssemblyError(f"Unable to read source file {file_path}: {e}") from e


class WorkspaceBuilder:
    """Assembles a :class:`Workspace` from compiler invocations.

    Usage:
        builder = WorkspaceBuilder(CSharpArgumentInterpreter(), MetadataReferenceCache())
        workspace, arguments = builder.assemble(invocations)
    """

    def __init__(
        self,
        interpreter: ArgumentInterpreter,
        references: MetadataReferenceCache,
        language: str = LANGUAGE_CSHARP,
    ):
        """Initialize builder.

        Args:
            interpreter: Turns argument vectors into structured arguments
            references: Reference cache for the current capture session
            language: Only invocations with this language tag are assembled
        """
        self._interpreter = interpreter
        self._references = references
        self._language = language

    def assemble(
        self, invocations: Iterable[Invocation]
    ) -> tuple[Workspace, dict[ProjectId, StructuredArguments]]:
        """Build the workspace and the per-project arguments table.

        Raises:
            TokenizerError: If a command line has malformed quoting
            InterpreterError: If arguments cannot be interpreted
            AssemblyError: If a source file cannot be read
            ReferenceLoadError: If a referenced binary cannot be loaded
        """
        workspace = Workspace()
        project_to_args: dict[ProjectId, StructuredArguments] = {}
        skipped = 0

        for invocation in invocations:
            if invocation.language != self._language:
                logger.debug(
                    f"Skipping {invocation.language} invocation for "
                    f"{invocation.project_file_path}"
                )
                skipped += 1
                continue

            project, arguments = self.create_project(invocation)
            project_to_args[project.id] = arguments
            workspace.add_project(project)

        logger.info(
            f"Assembled {len(workspace)} projects "
            f"({skipped} invocations in other languages skipped)"
        )
        return workspace, project_to_args

    def create_project(
        self, invocation: Invocation
    ) -> tuple[Project, StructuredArguments]:
        """Create a project and its arguments from one invocation."""
        command_line = strip_executable_prefix(invocation.command_line_arguments)
        args = tokenize(command_line)

        try:
            arguments = self._interpreter.parse(args, invocation.project_directory)
        except CaptureError:
            raise
        except Exception as e:
            raise InterpreterError(
                f"Unable to interpret arguments of {invocation.project_file_path}: {e}"
            ) from e

        name = os.path.splitext(os.path.basename(invocation.project_file_path))[0]
        project_id = ProjectId.create_new(name)

        # Aliased references to one file share a handle
        references = tuple(
            dict.fromkeys(
                self._references.get_or_load(path) for path in arguments.metadata_references
            )
        )

        documents = tuple(
            Document(
                name=document_name(path, invocation.project_directory),
                file_path=path,
                text=read_source_text(path),
            )
            for path in arguments.source_files
        )

        project = Project(
            id=project_id,
            name=name,
            language=invocation.language,
            compilation_options=arguments.compilation_options,
            parse_options=arguments.parse_options,
            metadata_references=references,
            documents=documents,
            file_path=invocation.project_file_path,
        )
        logger.debug(
            f"Created project {name} ({project_id}): "
            f"{len(documents)} documents, {len(references)} references"
        )
        return project, arguments
