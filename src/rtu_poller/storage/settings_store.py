"""
Connection Settings Store
=========================

JSON persistence for the serial connection descriptor.

Document layout:
    {
      "connection": {"port", "device_address", "baud_rate", "parity", "stop_bits"},
      "metadata": {"last_updated", "version", "description"}
    }

Saving always rewrites the whole document and regenerates the metadata.
Loading fails closed: a missing or malformed file is an error, never a
silent default.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import datetime
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Tuple, Union

from ..exceptions import ConfigFormatError
from ..modbus.client import ConnectionDescriptor
from .files import decode_error, replace_file


logger = logging.getLogger(__name__)

SETTINGS_VERSION = "1.0"
SETTINGS_DESCRIPTION = "Modbus RTU connection settings for RS-485"

CONNECTION_FIELDS = ("port", "device_address", "baud_rate", "parity", "stop_bits")
METADATA_FIELDS = ("last_updated", "version", "description")


@dataclass
class SettingsMetadata:
    """Metadata written next to the descriptor."""

    last_updated: str
    version: str = SETTINGS_VERSION
    description: str = SETTINGS_DESCRIPTION

    @classmethod
    def now(cls) -> "SettingsMetadata":
        stamp = datetime.datetime.now(datetime.timezone.utc).isoformat()
        return cls(last_updated=stamp)


class SettingsStore:
    """Load and save the connection settings document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> ConnectionDescriptor:
        """
        Read the connection descriptor.

        Raises:
            OSError: If the file cannot be read
            ConfigFormatError: If the document is malformed
        """
        descriptor, _ = self.load_document()
        return descriptor

    def load_document(self) -> Tuple[ConnectionDescriptor, SettingsMetadata]:
        """Read the descriptor together with its metadata."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise decode_error(self.path, e) from e

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigFormatError(self.path, f"invalid JSON: {e}", line=e.lineno) from e

        if not isinstance(document, dict):
            raise ConfigFormatError(self.path, "top level must be an object")

        connection = _section(self.path, document, "connection", CONNECTION_FIELDS)
        metadata = _section(self.path, document, "metadata", METADATA_FIELDS)

        try:
            descriptor = ConnectionDescriptor(
                port=str(connection["port"]),
                device_address=_as_int(connection["device_address"]),
                baud_rate=_as_int(connection["baud_rate"]),
                parity=connection["parity"],
                stop_bits=_as_int(connection["stop_bits"]),
            )
        except (TypeError, ValueError) as e:
            raise ConfigFormatError(self.path, f"invalid connection settings: {e}") from e

        meta = SettingsMetadata(
            last_updated=str(metadata["last_updated"]),
            version=str(metadata["version"]),
            description=str(metadata["description"]),
        )
        return descriptor, meta

    def save(self, descriptor: ConnectionDescriptor) -> SettingsMetadata:
        """
        Overwrite the document with the descriptor and fresh metadata.

        Raises:
            OSError: If the file cannot be written
        """
        metadata = SettingsMetadata.now()
        document = {
            "connection": {
                "port": descriptor.port,
                "device_address": descriptor.device_address,
                "baud_rate": int(descriptor.baud_rate),
                "parity": descriptor.parity.value,
                "stop_bits": int(descriptor.stop_bits),
            },
            "metadata": asdict(metadata),
        }

        with replace_file(self.path) as f:
            json.dump(document, f, indent=2, ensure_ascii=False)

        logger.info(f"Connection settings saved to {self.path}")
        return metadata


def _section(path, document: dict, key: str, fields) -> dict:
    section = document.get(key)
    if not isinstance(section, dict):
        raise ConfigFormatError(path, f"missing '{key}' section")

    missing = [name for name in fields if name not in section]
    if missing:
        raise ConfigFormatError(path, f"'{key}' is missing: {', '.join(missing)}")

    return section


def _as_int(value) -> int:
    # JSON booleans and floats are not valid integers here
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {value!r}")
    return value
