"""Tokenizer for compiler command lines recorded by MSBuild.

The grammar is the one MSBuild uses when it logs a compiler invocation, not
full shell quoting:

- tokens are separated by runs of whitespace outside quoted regions
- a ``"`` opens a quoted region, which ends the token when it closes
- inside a quoted region, a backslash directly before ``"`` escapes it;
  every other character (further backslashes included) is literal
- an unterminated quoted region is an error

Only the single preceding character is inspected when deciding whether a
quote is escaped, so ``\\\\"`` inside a quoted region is still an escaped
quote.
"""

from __future__ import annotations

from ..errors import TokenizerError

# Separator between the compiler executable and its first option
OPTION_MARKER = " /"


def strip_executable_prefix(command_line: str) -> str:
    """Drop a leading executable name before the first ``/option``.

    Returns the command line unchanged when no option marker is present.
    """
    index = command_line.find(OPTION_MARKER)
    if index >= 0:
        return command_line[index + 1:]
    return command_line


def tokenize(command_line: str, keep_quotes: bool = False) -> list[str]:
    """Split a recorded compiler command line into arguments.

    Args:
        command_line: Raw command line string
        keep_quotes: Keep quote delimiters and escaping backslashes in the
            returned tokens (the raw form MSBuild recorded)

    Returns:
        List of argument tokens

    Raises:
        TokenizerError: If a quoted region is not terminated
    """
    args: list[str] = []
    length = len(command_line)
    i = 0

    while i < length:
        if command_line[i].isspace():
            i += 1
            continue

        token: list[str] = []
        while i < length:
            c = command_line[i]
            if c == '"':
                i = _read_quoted(command_line, i, token, keep_quotes)
                break
            if c.isspace():
                break
            token.append(c)
            i += 1

        args.append("".join(token))

    return args


def _read_quoted(
    command_line: str, start: int, token: list[str], keep_quotes: bool
) -> int:
    """Consume a quoted region starting at ``start``.

    Returns the index just past the closing quote.
    """
    if keep_quotes:
        token.append('"')

    i = start + 1
    while i < len(command_line):
        c = command_line[i]
        escaped = command_line[i - 1] == "\\" and i - 1 > start
        if c == '"':
            if not escaped:
                if keep_quotes:
                    token.append('"')
                return i + 1
            if not keep_quotes:
                # The escaping backslash is the last character emitted
                token.pop()
        token.append(c)
        i += 1

    partial = command_line[start:]
    raise TokenizerError(
        f"Invalid string `{partial}` non terminated by a closing `\"`",
        command_line=command_line,
    )
