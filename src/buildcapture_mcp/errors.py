"""Compilation capture exceptions."""


class CaptureError(Exception):
    """Base exception for compilation capture errors."""

    pass


class ArgumentError(CaptureError, ValueError):
    """Raised when a caller-supplied argument is missing or invalid."""

    pass


class TokenizerError(CaptureError):
    """Raised when a captured command line has malformed quoting."""

    def __init__(self, message: str, command_line: str = ""):
        super().__init__(message)
        self.command_line = command_line


class InterpreterError(CaptureError):
    """Raised when compiler arguments cannot be interpreted."""

    pass


class AssemblyError(CaptureError):
    """Raised when a project cannot be assembled (e.g. unreadable source)."""

    pass


class ReferenceLoadError(CaptureError):
    """Raised when a metadata reference cannot be loaded."""

    pass


class InvocationLogError(CaptureError):
    """Raised when an invocation log cannot be read."""

    pass
