"""Entry point for buildcapture-mcp."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from .build.policy import BuildPolicy
from .capture import CompilationCapture, load_reader
from .compiler.invocations import JsonInvocationReader
from .errors import CaptureError
from .server import create_server
from .utils.project import configure_project_root, find_build_target, find_dotnet_project_root


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _parse_property(value: str) -> tuple[str, str]:
    """Parse a ``Name=Value`` property flag."""
    key, sep, prop_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected Name=Value, got {value!r}")
    return key, prop_value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="BuildCapture MCP Server - Capture C# compilations of a .NET solution"
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Project root path. Relative build targets are resolved against it.",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect project from current working directory. "
        "Searches upward for .sln, .csproj/.vbproj/.fsproj, or .git markers. "
        "Cannot be used with --project.",
    )
    parser.add_argument(
        "--reader",
        type=str,
        default=os.environ.get("BUILDCAPTURE_READER"),
        help="Binary log reader as module:attribute (default: $BUILDCAPTURE_READER).",
    )
    parser.add_argument(
        "--dotnet",
        type=str,
        default=os.environ.get("DOTNET_PATH", "dotnet"),
        help="dotnet executable (default: $DOTNET_PATH or dotnet).",
    )

    oneshot = parser.add_mutually_exclusive_group()
    oneshot.add_argument(
        "--capture",
        metavar="PATH",
        default=None,
        help="Capture a solution or project once, print a JSON summary and exit.",
    )
    oneshot.add_argument(
        "--invocations",
        metavar="FILE",
        default=None,
        help="Assemble projects from a JSON-lines invocation dump and exit.",
    )

    parser.add_argument("-c", "--configuration", default="Debug")
    parser.add_argument("--platform", default="Any CPU")
    parser.add_argument(
        "-p",
        "--property",
        dest="properties",
        action="append",
        type=_parse_property,
        default=[],
        metavar="NAME=VALUE",
        help="Extra MSBuild property (repeatable).",
    )
    parser.add_argument("--timeout", type=float, default=None)
    return parser.parse_args(argv)


async def run_capture(args: argparse.Namespace) -> int:
    """Run a one-shot capture and print its summary."""
    logger = logging.getLogger(__name__)

    try:
        if args.invocations:
            capture = CompilationCapture()
            result = capture.assemble(JsonInvocationReader().read_invocations(args.invocations))
        else:
            target = find_build_target(args.capture)
            if target is None:
                logger.error(f"No solution or project file found for {args.capture}")
                return 1
            reader = load_reader(args.reader) if args.reader else None
            capture = CompilationCapture(
                reader=reader, policy=BuildPolicy(dotnet_path=args.dotnet)
            )
            result = await capture.build(
                str(target),
                args.configuration,
                args.platform,
                dict(args.properties),
                timeout=args.timeout,
            )
            logger.info(result.build_result.to_summary())
    except CaptureError as e:
        logger.error(str(e))
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


async def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)

    if args.capture or args.invocations:
        return await run_capture(args)

    if args.project_from_cwd:
        if args.project is not None:
            logger.error("--project-from-cwd cannot be used with --project")
            return 1
        project_path = str(find_dotnet_project_root(Path.cwd()))
        logger.info(f"Auto-detected project root: {project_path}")
    else:
        project_path = args.project or os.getcwd()

    configure_project_root(
        use_project_from_cwd=args.project_from_cwd,
        explicit_project_path=args.project,
        startup_cwd=project_path,
    )

    logger.info(f"Starting BuildCapture MCP Server (project: {project_path})...")
    mcp = create_server(project_path, reader_spec=args.reader, dotnet_path=args.dotnet)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("Server stopped")
    return 0


def run() -> None:
    """Run the server."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
