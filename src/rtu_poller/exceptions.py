"""
Error Taxonomy
==============

Exceptions raised by the register poller.

Built-in exceptions cover the rest of the taxonomy:
- OSError: file system failure while loading or saving
- ConnectionError: the serial session could not be opened
- TimeoutError: a register read did not complete within its bound

Only ProtocolError, TimeoutError and InsufficientDataError raised while
reading a single register are absorbed by the poll scheduler. Everything
else propagates to the caller.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""


class ConfigFormatError(ValueError):
    """A persisted register table or settings file is malformed."""

    def __init__(self, path, message: str, line: int = None):
        self.path = str(path)
        self.line = line
        location = f"{self.path}:{line}" if line is not None else self.path
        super().__init__(f"{location}: {message}")


class ValidationError(ValueError):
    """A user-supplied field was rejected. The table is left untouched."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class InsufficientDataError(ValueError):
    """Fewer words were supplied than the value type needs."""

    def __init__(self, value_type, needed: int, received: int):
        self.value_type = value_type
        self.needed = needed
        self.received = received
        super().__init__(
            f"{value_type} needs {needed} word(s), received {received}"
        )


class ProtocolError(RuntimeError):
    """The device or the protocol stack reported a failed read."""


class PollSetupError(RuntimeError):
    """A fatal precondition prevented the poll session from starting."""
