"""Compiler invocation handling: tokenizing and interpreting command lines."""

from .arguments import (
    ArgumentInterpreter,
    CompilationOptions,
    CSharpArgumentInterpreter,
    OptimizationLevel,
    OutputKind,
    ParseOptions,
    StructuredArguments,
)
from .invocations import (
    LANGUAGE_CSHARP,
    LANGUAGE_VB,
    Invocation,
    InvocationReader,
    JsonInvocationReader,
)
from .tokenizer import strip_executable_prefix, tokenize

__all__ = [
    "ArgumentInterpreter",
    "CompilationOptions",
    "CSharpArgumentInterpreter",
    "OptimizationLevel",
    "OutputKind",
    "ParseOptions",
    "StructuredArguments",
    "LANGUAGE_CSHARP",
    "LANGUAGE_VB",
    "Invocation",
    "InvocationReader",
    "JsonInvocationReader",
    "strip_executable_prefix",
    "tokenize",
]
