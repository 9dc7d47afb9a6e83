"""Project root and build target detection utilities.

The project root is determined from, in order:
1. MCP Roots from client (via Context.list_roots())
2. Environment variables (BUILDCAPTURE_PROJECT_ROOT, MCP_PROJECT_ROOT)
3. Explicit --project path
4. Startup CWD (when --project-from-cwd is used)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)

PROJECT_FILE_PATTERNS = ("*.csproj", "*.vbproj", "*.fsproj")


@dataclass
class ProjectRootConfig:
    """Configuration for project root detection."""

    startup_cwd: Path | None = None
    """CWD captured at server startup."""

    use_project_from_cwd: bool = False
    """Whether --project-from-cwd flag was provided."""

    explicit_project_path: Path | None = None
    """Explicit project path from --project flag."""

    env_var_names: tuple[str, ...] = field(
        default_factory=lambda: ("BUILDCAPTURE_PROJECT_ROOT", "MCP_PROJECT_ROOT")
    )
    """Environment variable names to check for project root."""


# Global configuration (set at startup)
_config: ProjectRootConfig = ProjectRootConfig()


def configure_project_root(
    *,
    use_project_from_cwd: bool = False,
    explicit_project_path: str | Path | None = None,
    startup_cwd: str | Path | None = None,
) -> None:
    """Configure project root detection.

    Should be called once at server startup.
    """
    global _config
    _config = ProjectRootConfig(
        use_project_from_cwd=use_project_from_cwd,
        explicit_project_path=Path(explicit_project_path) if explicit_project_path else None,
        startup_cwd=Path(startup_cwd) if startup_cwd else None,
    )
    logger.debug(
        f"Project root configured: use_cwd={use_project_from_cwd}, "
        f"explicit={explicit_project_path}, startup_cwd={startup_cwd}"
    )


def get_config() -> ProjectRootConfig:
    """Get current project root configuration."""
    return _config


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to a Path.

    Handles platform-specific path formats:
    - Unix: file:///home/user/project → /home/user/project
    - Windows: file:///C:/Users/project → C:\\Users\\project
    - Windows UNC: file://server/share → \\\\server\\share

    Returns:
        Path object if parsing succeeds, None otherwise
    """
    parsed = urlparse(str(uri))
    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)

    if sys.platform == "win32":
        # file:///C:/path → parsed.path = "/C:/path"
        if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
            path_str = path_str[1:]
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path


def _ancestors(start: Path) -> Iterator[Path]:
    """Yield a directory and its ancestors."""
    yield start
    yield from start.parents


def find_dotnet_project_root(start_dir: Path | None = None) -> Path:
    """Find .NET project root by walking up from a directory.

    Searches for a .sln, then a project file, then .git. Falls back to
    ``start_dir`` if no marker is found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for directory in _ancestors(current):
        if any(directory.glob("*.sln")):
            return directory

    for directory in _ancestors(current):
        if any(any(directory.glob(pattern)) for pattern in PROJECT_FILE_PATTERNS):
            return directory

    for directory in _ancestors(current):
        if (directory / ".git").exists():
            return directory

    return current


def find_build_target(path: str | Path) -> Path | None:
    """Resolve a file or directory to a solution or project file.

    A file is returned as-is. For a directory, the single solution file is
    preferred, then the single project file.

    Returns:
        Path to the build target, or None if none or several candidates exist
    """
    path = Path(path)
    if path.is_file():
        return path
    if not path.is_dir():
        return None

    solutions = sorted(path.glob("*.sln")) + sorted(path.glob("*.slnx"))
    if len(solutions) == 1:
        return solutions[0]
    if len(solutions) > 1:
        logger.warning(f"Several solution files in {path}, specify one explicitly")
        return None

    projects = sorted(p for pattern in PROJECT_FILE_PATTERNS for p in path.glob(pattern))
    if len(projects) == 1:
        return projects[0]
    if len(projects) > 1:
        logger.warning(f"Several project files in {path}, specify one explicitly")
    return None


async def get_project_root(ctx: Context | None = None) -> Path | None:
    """Determine the project root directory from available sources.

    Args:
        ctx: MCP Context for accessing client-provided roots.
             Can be None if called outside of tool context.

    Returns:
        Path to project root, or None if not determinable
    """
    config = get_config()

    if ctx is not None:
        try:
            roots = await ctx.list_roots()
            if roots:
                path = parse_file_uri(str(roots[0].uri))
                if path and path.is_dir():
                    logger.info(f"Using project root from MCP client: {path}")
                    return path
                logger.warning(f"MCP root path invalid or not accessible: {path}")
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")

    for env_var in config.env_var_names:
        env_value = os.environ.get(env_var)
        if env_value:
            path = Path(env_value)
            if path.is_dir():
                logger.info(f"Using project root from {env_var}: {path}")
                return path
            logger.warning(f"{env_var}={env_value} - path does not exist or is not a directory")

    if config.explicit_project_path and config.explicit_project_path.is_dir():
        return config.explicit_project_path

    if config.use_project_from_cwd and config.startup_cwd:
        return find_dotnet_project_root(config.startup_cwd)

    if config.startup_cwd:
        return config.startup_cwd

    logger.warning("Could not determine project root from any source")
    return None
