"""MCP Server exposing compilation capture."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP

from .build.policy import BuildPolicy
from .capture import CaptureResult, CompilationCapture, load_reader
from .compiler.invocations import InvocationReader, JsonInvocationReader
from .utils.project import find_build_target, get_project_root

logger = logging.getLogger(__name__)

# Last capture (single client mode)
_capture: CaptureResult | None = None


def get_capture() -> CaptureResult | None:
    """Get the result of the last capture, if any."""
    return _capture


def _set_capture(result: CaptureResult | None) -> None:
    global _capture
    _capture = result


def create_server(
    project_path: str | None = None,
    reader_spec: str | None = None,
    dotnet_path: str | None = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        project_path: Initial root path used to resolve relative targets
        reader_spec: Binary log reader as ``module:attribute``
        dotnet_path: dotnet executable (defaults to DOTNET_PATH or "dotnet")
    """
    mcp = FastMCP("buildcapture-mcp")
    reader: InvocationReader | None = load_reader(reader_spec) if reader_spec else None
    policy = BuildPolicy(dotnet_path=dotnet_path or os.environ.get("DOTNET_PATH", "dotnet"))

    async def resolve_target(ctx: Context, path: str | None) -> Path | None:
        """Resolve a target path against the project root."""
        root = await get_project_root(ctx)
        if root is None and project_path:
            root = Path(project_path)
        if path is None:
            return find_build_target(root) if root else None
        target = Path(path)
        if not target.is_absolute() and root is not None:
            target = root / target
        return find_build_target(target)

    def require_capture() -> CaptureResult:
        if _capture is None:
            raise ValueError("No capture available. Run capture_build first.")
        return _capture

    def find_project(project_id: str):
        project = require_capture().workspace.find_project(project_id)
        if project is None:
            raise ValueError(f"Unknown project id: {project_id}")
        return project

    # ============== Capture Tools ==============

    @mcp.tool()
    async def capture_build(
        ctx: Context,
        path: str | None = None,
        configuration: str = "Debug",
        platform: str = "Any CPU",
        properties: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> dict:
        """
        Rebuild a .NET solution or project and capture every C# compilation.

        Runs `dotnet msbuild /t:rebuild` with a binary log, reads the compiler
        invocations from it and reconstructs the projects in memory. Projects
        compiled for several target frameworks appear once per framework.

        Args:
            path: Solution or project file (or a directory holding one).
                  Defaults to the project root.
            configuration: Build configuration (Debug/Release)
            platform: Build platform
            properties: Extra MSBuild properties; override configuration/platform
            timeout: Timeout in seconds (no timeout by default)
        """
        try:
            target = await resolve_target(ctx, path)
            if target is None:
                return {"success": False, "error": f"No solution or project file found for {path!r}"}

            capture = CompilationCapture(reader=reader, policy=policy)
            result = await capture.build(
                str(target), configuration, platform, properties, timeout=timeout
            )
            _set_capture(result)
            return {"success": True, "data": result.to_dict()}
        except Exception as e:
            to_dict = getattr(e, "to_dict", None)
            if callable(to_dict):
                return {"success": False, **to_dict()}
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def assemble_invocations(path: str) -> dict:
        """
        Reconstruct projects from a JSON-lines compiler invocation dump.

        Each line holds language, projectFilePath, projectDirectory and
        commandLineArguments. No build is run.

        Args:
            path: Path to the invocation dump
        """
        try:
            capture = CompilationCapture()
            result = capture.assemble(JsonInvocationReader().read_invocations(path))
            _set_capture(result)
            return {"success": True, "data": result.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Inspection Tools ==============

    @mcp.tool()
    async def list_projects(name: str | None = None) -> dict:
        """
        List captured projects.

        Args:
            name: Only projects with this display name
        """
        try:
            workspace = require_capture().workspace
            projects = workspace.find_projects_by_name(name) if name else workspace.projects
            return {"success": True, "data": [p.to_dict() for p in projects]}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_project_arguments(project_id: str) -> dict:
        """
        Get the compiler arguments a captured project was built with.

        Args:
            project_id: Project id from list_projects
        """
        try:
            project = find_project(project_id)
            arguments, found = require_capture().try_get_command_line_arguments(project)
            if not found:
                return {"success": False, "error": f"No arguments for project {project_id}"}
            return {"success": True, "data": arguments.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def list_documents(project_id: str) -> dict:
        """
        List source documents of a captured project.

        Args:
            project_id: Project id from list_projects
        """
        try:
            project = find_project(project_id)
            return {"success": True, "data": [d.to_dict() for d in project.documents]}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_document(project_id: str, name: str) -> dict:
        """
        Get the text of a source document.

        Args:
            project_id: Project id from list_projects
            name: Document name or full file path
        """
        try:
            document = find_project(project_id).get_document(name)
            if document is None:
                return {"success": False, "error": f"Unknown document: {name}"}
            return {"success": True, "data": document.to_dict(include_text=True)}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Resources ==============

    @mcp.resource("capture://projects", mime_type="application/json")
    async def projects_resource() -> str:
        """Projects of the last capture (JSON).

        Updates when: capture_build or assemble_invocations completes.
        """
        if _capture is None:
            return json.dumps({"projects": []}, indent=2)
        return json.dumps(_capture.to_dict(), indent=2)

    @mcp.resource("capture://build-output", mime_type="text/plain")
    async def build_output_resource() -> str:
        """Console output of the last build (plain text)."""
        if _capture is None or _capture.build_result is None:
            return ""
        return _capture.build_result.output

    logger.info("BuildCapture MCP Server initialized")
    return mcp
