"""Workspace reconstruction from captured compiler invocations."""

from .builder import WorkspaceBuilder
from .model import Document, Project, ProjectId, Workspace
from .references import MetadataReference, MetadataReferenceCache, load_metadata_reference

__all__ = [
    "WorkspaceBuilder",
    "Document",
    "Project",
    "ProjectId",
    "Workspace",
    "MetadataReference",
    "MetadataReferenceCache",
    "load_metadata_reference",
]
