"""Pytest fixtures for buildcapture-mcp tests."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from buildcapture_mcp.compiler.invocations import LANGUAGE_CSHARP, Invocation  # noqa: E402


@pytest.fixture
def sample_solution(tmp_path):
    """A small solution layout with sources and a shared reference.

    Returns a dict of the interesting paths. ``project_dir`` ends with a
    separator, as MSBuild reports project directories.
    """
    project_dir = tmp_path / "Lib"
    (project_dir / "Properties").mkdir(parents=True)
    (project_dir / "Lib.csproj").write_text("<Project Sdk=\"Microsoft.NET.Sdk\" />")
    (project_dir / "Class1.cs").write_text("namespace Lib { public class Class1 { } }")
    (project_dir / "Properties" / "AssemblyInfo.cs").write_text("[assembly: System.CLSCompliant(true)]")

    shared_dir = tmp_path / "Shared"
    shared_dir.mkdir()
    (shared_dir / "Shared.cs").write_text("namespace Shared { }")

    refs_dir = tmp_path / "refs"
    refs_dir.mkdir()
    (refs_dir / "System.Runtime.dll").write_bytes(b"MZ\x90\x00fake")

    return {
        "root": tmp_path,
        "project_file": str(project_dir / "Lib.csproj"),
        "project_dir": str(project_dir) + os.sep,
        "class1": str(project_dir / "Class1.cs"),
        "assembly_info": str(project_dir / "Properties" / "AssemblyInfo.cs"),
        "shared": str(shared_dir / "Shared.cs"),
        "reference": str(refs_dir / "System.Runtime.dll"),
    }


@pytest.fixture
def make_invocation(sample_solution):
    """Factory for C# invocations of the sample project."""

    def factory(
        framework: str = "net8.0",
        extra: str = "",
        language: str = LANGUAGE_CSHARP,
        sources: list[str] | None = None,
    ) -> Invocation:
        if sources is None:
            sources = [
                sample_solution["class1"],
                sample_solution["assembly_info"],
                sample_solution["shared"],
            ]
        command_line = (
            "/usr/share/dotnet/dotnet exec csc.dll /noconfig /unsafe- /checked- "
            f"/reference:{sample_solution['reference']} "
            f"/out:obj/Debug/{framework}/Lib.dll /target:library "
            f"/define:TRACE;DEBUG;{framework.upper().replace('.', '_')} "
            f"{extra} " + " ".join(sources)
        )
        return Invocation(
            language=language,
            project_file_path=sample_solution["project_file"],
            project_directory=sample_solution["project_dir"],
            command_line_arguments=command_line,
        )

    return factory
