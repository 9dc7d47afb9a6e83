"""Structured compiler arguments and the C# command line interpreter.

Interpretation is pluggable through :class:`ArgumentInterpreter`; the
bundled :class:`CSharpArgumentInterpreter` understands the subset of csc
options that MSBuild emits for SDK-style projects.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Protocol

from ..errors import InterpreterError

logger = logging.getLogger(__name__)


class OutputKind(str, Enum):
    """Kind of binary produced by a compilation."""

    CONSOLE_APPLICATION = "exe"
    WINDOWS_APPLICATION = "winexe"
    DYNAMICALLY_LINKED_LIBRARY = "library"
    NET_MODULE = "module"
    WINDOWS_RUNTIME_METADATA = "winmdobj"
    WINDOWS_RUNTIME_APPLICATION = "appcontainerexe"


class OptimizationLevel(str, Enum):
    """Compiler optimization level."""

    DEBUG = "debug"
    RELEASE = "release"


class NullableContext(str, Enum):
    """Nullable reference type context."""

    DISABLE = "disable"
    ENABLE = "enable"
    WARNINGS = "warnings"
    ANNOTATIONS = "annotations"


class ReportDiagnostic(str, Enum):
    """Per-diagnostic reporting override."""

    ERROR = "error"
    WARN = "warn"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class CompilationOptions:
    """Options that affect code generation and diagnostics."""

    output_kind: OutputKind = OutputKind.CONSOLE_APPLICATION
    module_name: str | None = None
    main_type_name: str | None = None
    optimization_level: OptimizationLevel = OptimizationLevel.DEBUG
    platform: str = "AnyCPU"
    allow_unsafe: bool = False
    checked: bool = False
    deterministic: bool = False
    nullable: NullableContext = NullableContext.DISABLE
    warning_level: int = 4
    treat_warnings_as_errors: bool = False
    specific_diagnostic_options: dict[str, ReportDiagnostic] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "outputKind": self.output_kind.value,
            "moduleName": self.module_name,
            "mainTypeName": self.main_type_name,
            "optimizationLevel": self.optimization_level.value,
            "platform": self.platform,
            "allowUnsafe": self.allow_unsafe,
            "checked": self.checked,
            "deterministic": self.deterministic,
            "nullable": self.nullable.value,
            "warningLevel": self.warning_level,
            "treatWarningsAsErrors": self.treat_warnings_as_errors,
            "specificDiagnosticOptions": {
                k: v.value for k, v in self.specific_diagnostic_options.items()
            },
        }


@dataclass(frozen=True)
class ParseOptions:
    """Options that affect how source text is parsed."""

    language_version: str = "default"
    preprocessor_symbols: tuple[str, ...] = ()
    documentation_mode: str = "parse"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "languageVersion": self.language_version,
            "preprocessorSymbols": list(self.preprocessor_symbols),
            "documentationMode": self.documentation_mode,
        }


@dataclass(frozen=True)
class StructuredArguments:
    """Compiler arguments interpreted from one invocation."""

    compilation_options: CompilationOptions
    parse_options: ParseOptions
    source_files: tuple[str, ...]
    metadata_references: tuple[str, ...]
    base_directory: str = ""
    output_file_name: str | None = None
    output_directory: str | None = None
    unrecognized: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "compilationOptions": self.compilation_options.to_dict(),
            "parseOptions": self.parse_options.to_dict(),
            "sourceFiles": list(self.source_files),
            "metadataReferences": list(self.metadata_references),
            "baseDirectory": self.base_directory,
            "outputFileName": self.output_file_name,
            "outputDirectory": self.output_directory,
            "unrecognized": list(self.unrecognized),
        }


class ArgumentInterpreter(Protocol):
    """Turns a compiler argument vector into structured arguments."""

    def parse(self, args: list[str], base_directory: str) -> StructuredArguments:
        ...


# Diagnostic ids accepted by /nowarn and /warnaserror (CS0168, 0168, nullable, ...)
DIAGNOSTIC_ID_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[,;\s]+")

LIST_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[,;]")


def _unquote(value: str) -> str:
    """Remove surrounding quotes left by the recorded command line."""
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        value = value[1:-1]
    return value.replace('\\"', '"')


def _split_option(arg: str) -> tuple[str, str | None] | None:
    """Split ``/name:value`` into ``(name, value)``.

    Returns None when ``arg`` is not an option. A leading ``/`` followed by
    another ``/`` before any ``:`` is a rooted Unix path, not an option.
    """
    if len(arg) < 2 or arg[0] not in "/-":
        return None

    colon = arg.find(":")
    if arg[0] == "/":
        separator = arg.find("/", 1)
        if separator > 0 and (colon < 0 or separator < colon):
            return None

    if colon < 0:
        return arg[1:].lower(), None
    return arg[1:colon].lower(), arg[colon + 1:]


# Switches that take a trailing + or - and map onto a boolean option
TOGGLE_OPTIONS: Final[dict[str, str]] = {
    "optimize": "optimize",
    "o": "optimize",
    "unsafe": "allow_unsafe",
    "checked": "checked",
    "deterministic": "deterministic",
}


class CSharpArgumentInterpreter:
    """Interprets csc command line arguments.

    Unknown options are tolerated and kept in
    :attr:`StructuredArguments.unrecognized`; malformed values for the
    options below raise :class:`InterpreterError`.
    """

    def parse(self, args: list[str], base_directory: str) -> StructuredArguments:
        base_directory = os.path.abspath(base_directory) if base_directory else os.getcwd()

        options: dict[str, Any] = {}
        diagnostics: dict[str, ReportDiagnostic] = {}
        symbols: list[str] = []
        language_version = "default"
        documentation_mode = "parse"
        sources: list[str] = []
        references: list[str] = []
        unrecognized: list[str] = []
        output_file_name: str | None = None
        output_directory: str | None = None

        for arg in args:
            if arg.startswith("@"):
                raise InterpreterError(f"Response files are not supported: {arg}")

            split = _split_option(arg)
            if split is None:
                sources.append(self._resolve(_unquote(arg), base_directory))
                continue

            name, value = split
            if not name:
                raise InterpreterError(f"Command-line syntax error: missing option name in `{arg}`")
            enabled = True
            if name[-1] in "+-":
                name, enabled = name[:-1], name[-1] == "+"

            if name == "out":
                path = self._resolve(self._require(arg, value), base_directory)
                output_directory, output_file_name = os.path.split(path)
            elif name in ("target", "t"):
                kind = self._require(arg, value).lower()
                try:
                    options["output_kind"] = OutputKind(kind)
                except ValueError as e:
                    raise InterpreterError(f"Invalid target type `{kind}` in `{arg}`") from e
            elif name in ("reference", "r"):
                for item in LIST_SEPARATORS.split(self._require(arg, value)):
                    item = _unquote(item.strip())
                    if not item:
                        continue
                    # extern alias form: Alias=path
                    if "=" in item:
                        item = _unquote(item.split("=", 1)[1])
                    references.append(self._resolve(item, base_directory))
            elif name in ("define", "d"):
                for symbol in LIST_SEPARATORS.split(self._require(arg, value)):
                    symbol = symbol.strip()
                    if symbol and symbol not in symbols:
                        symbols.append(symbol)
            elif name == "langversion":
                language_version = self._require(arg, value).lower()
            elif name == "nullable":
                options["nullable"] = self._parse_nullable(arg, enabled, value)
            elif name in ("warn", "w"):
                level = self._require(arg, value)
                if not level.isdigit():
                    raise InterpreterError(f"Invalid warning level `{level}` in `{arg}`")
                options["warning_level"] = int(level)
            elif name == "warnaserror":
                if value:
                    for diagnostic_id in self._diagnostic_ids(value):
                        if enabled:
                            diagnostics[diagnostic_id] = ReportDiagnostic.ERROR
                        elif diagnostics.get(diagnostic_id) == ReportDiagnostic.ERROR:
                            diagnostics[diagnostic_id] = ReportDiagnostic.WARN
                else:
                    options["treat_warnings_as_errors"] = enabled
            elif name == "nowarn":
                for diagnostic_id in self._diagnostic_ids(self._require(arg, value)):
                    diagnostics[diagnostic_id] = ReportDiagnostic.SUPPRESS
            elif name == "platform":
                options["platform"] = self._require(arg, value)
            elif name in ("main", "m"):
                options["main_type_name"] = self._require(arg, value)
            elif name == "doc":
                documentation_mode = "diagnose"
            elif name in TOGGLE_OPTIONS and value is None:
                options[TOGGLE_OPTIONS[name]] = enabled
            else:
                unrecognized.append(arg)

        if "optimize" in options:
            optimize = options.pop("optimize")
            options["optimization_level"] = (
                OptimizationLevel.RELEASE if optimize else OptimizationLevel.DEBUG
            )
        if output_file_name is not None:
            options["module_name"] = output_file_name

        if unrecognized:
            logger.debug(f"Ignored {len(unrecognized)} compiler options")

        return StructuredArguments(
            compilation_options=CompilationOptions(
                specific_diagnostic_options=diagnostics, **options
            ),
            parse_options=ParseOptions(
                language_version=language_version,
                preprocessor_symbols=tuple(symbols),
                documentation_mode=documentation_mode,
            ),
            source_files=tuple(sources),
            metadata_references=tuple(references),
            base_directory=base_directory,
            output_file_name=output_file_name,
            output_directory=output_directory,
            unrecognized=tuple(unrecognized),
        )

    @staticmethod
    def _require(arg: str, value: str | None) -> str:
        """Return the unquoted option value or fail when it is empty."""
        value = _unquote(value) if value is not None else ""
        if not value:
            raise InterpreterError(f"Command-line syntax error: missing value for `{arg}`")
        return value

    @staticmethod
    def _resolve(path: str, base_directory: str) -> str:
        return os.path.normpath(os.path.join(base_directory, path))

    @staticmethod
    def _diagnostic_ids(value: str) -> list[str]:
        ids = []
        for item in DIAGNOSTIC_ID_SEPARATORS.split(_unquote(value)):
            if not item:
                continue
            # Bare numbers refer to C# compiler diagnostics
            ids.append(f"CS{int(item):04d}" if item.isdigit() else item)
        return ids

    @staticmethod
    def _parse_nullable(arg: str, enabled: bool, value: str | None) -> NullableContext:
        if not enabled:
            return NullableContext.DISABLE
        if value is None:
            return NullableContext.ENABLE
        try:
            return NullableContext(_unquote(value).lower())
        except ValueError as e:
            raise InterpreterError(f"Invalid nullable context in `{arg}`") from e
