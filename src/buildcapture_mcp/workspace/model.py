"""In-memory workspace model: projects, documents and identities.

Projects are keyed by an opaque :class:`ProjectId`. Names are for display
only; the same project file compiled for two target frameworks produces two
projects with the same name and different ids.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ..compiler.arguments import CompilationOptions, ParseOptions
from .references import MetadataReference


@dataclass(frozen=True)
class ProjectId:
    """Opaque project identity."""

    id: uuid.UUID
    debug_name: str = field(default="", compare=False)

    @classmethod
    def create_new(cls, debug_name: str = "") -> ProjectId:
        """Create a fresh identity, never equal to any other."""
        return cls(id=uuid.uuid4(), debug_name=debug_name)

    def __str__(self) -> str:
        return str(self.id)


@dataclass(frozen=True)
class Document:
    """Source file attached to a project."""

    name: str
    file_path: str
    text: str

    def to_dict(self, include_text: bool = False) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"name": self.name, "filePath": self.file_path}
        if include_text:
            result["text"] = self.text
        return result


@dataclass(frozen=True)
class Project:
    """One compiled unit reconstructed from a compiler invocation."""

    id: ProjectId
    name: str
    language: str
    compilation_options: CompilationOptions
    parse_options: ParseOptions
    metadata_references: tuple[MetadataReference, ...] = ()
    documents: tuple[Document, ...] = ()
    file_path: str | None = None

    def get_document(self, name: str) -> Document | None:
        """Find a document by display name or file path."""
        for document in self.documents:
            if document.name == name or document.file_path == name:
                return document
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": str(self.id),
            "name": self.name,
            "language": self.language,
            "filePath": self.file_path,
            "documentCount": len(self.documents),
            "referenceCount": len(self.metadata_references),
            "optimizationLevel": self.compilation_options.optimization_level.value,
        }


class Workspace:
    """Projects captured during one session, keyed by identity."""

    def __init__(self) -> None:
        self._projects: dict[ProjectId, Project] = {}

    def add_project(self, project: Project) -> None:
        """Add a project.

        Raises:
            ValueError: If a project with the same id already exists
        """
        if project.id in self._projects:
            raise ValueError(f"Project {project.id} already in workspace")
        self._projects[project.id] = project

    def get_project(self, project_id: ProjectId) -> Project | None:
        """Get project by identity."""
        return self._projects.get(project_id)

    def find_project(self, project_id: str) -> Project | None:
        """Get project by the string form of its identity."""
        for key, project in self._projects.items():
            if str(key) == project_id:
                return project
        return None

    def find_projects_by_name(self, name: str) -> list[Project]:
        """Get all projects with the given display name."""
        return [p for p in self._projects.values() if p.name == name]

    @property
    def projects(self) -> list[Project]:
        """Projects in creation order."""
        return list(self._projects.values())

    @property
    def project_ids(self) -> list[ProjectId]:
        return list(self._projects)

    def __iter__(self) -> Iterator[Project]:
        return iter(list(self._projects.values()))

    def __len__(self) -> int:
        return len(self._projects)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._projects
