"""
Configuration File Helpers
==========================

Whole-file replace and decode-error handling shared by both stores.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import os
import tempfile
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import IO, Iterator

from ..exceptions import ConfigFormatError


@contextmanager
def replace_file(path: Path) -> Iterator[IO[str]]:
    """
    Open a temporary file next to path and move it into place on success.

    The target always holds either the old or the new complete content.
    On any error the temporary file is removed and the target is untouched.
    """
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(directory)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            yield f
        os.replace(tmp_name, path)
    except BaseException:
        with suppress(OSError):
            os.unlink(tmp_name)
        raise


def decode_error(path: Path, error: UnicodeDecodeError) -> ConfigFormatError:
    """Describe an undecodable byte as a malformed file."""
    byte = error.object[error.start]
    return ConfigFormatError(path, f"not valid UTF-8 (byte 0x{byte:02x}: {error.reason})")
