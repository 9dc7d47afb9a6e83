"""Utility modules for buildcapture-mcp."""

from .project import (
    ProjectRootConfig,
    configure_project_root,
    find_build_target,
    find_dotnet_project_root,
    get_project_root,
    parse_file_uri,
)

__all__ = [
    "ProjectRootConfig",
    "configure_project_root",
    "find_build_target",
    "find_dotnet_project_root",
    "get_project_root",
    "parse_file_uri",
]
