"""Custom exception hierarchy for the deobfuscator."""

from __future__ import annotations


class DeobfuscationError(Exception):
    """Base class for all deobfuscation related errors."""


class PatternMismatch(DeobfuscationError):
    """Raised by shape checks when a cursor does not match a pass's pattern.

    Passes catch it and skip the cursor; it never escapes a pass invocation.
    """


class UnsupportedConstruct(DeobfuscationError):
    """Raised when a recognised node kind carries a sub-shape we cannot handle.

    Continuing would risk corrupting the binding tables, so the current pass
    invocation is aborted and the error surfaces to the driver.
    """


class ReferenceInvariantError(DeobfuscationError):
    """Raised when a binding's reference list disagrees with the tree."""


class JSSyntaxError(DeobfuscationError):
    """Raised when esprima rejects malformed input."""

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        super().__init__(f"{message} (line {line}, column {column})")
        self.line = line
        self.column = column


__all__ = [
    "DeobfuscationError",
    "PatternMismatch",
    "UnsupportedConstruct",
    "ReferenceInvariantError",
    "JSSyntaxError",
]
