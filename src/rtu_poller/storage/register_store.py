"""
Register Table Store
====================

CSV persistence for the register table.

File format:
- UTF-8, ';'-delimited
- Header row: name;description;address;var_type;modbus_type;enabled
- One row per register, enabled written as 'true' / 'false'

Every mutation loads the whole table, changes it in memory and rewrites
the whole file. There is no locking: a reader racing a writer may see a
stale file, which is accepted for a single-user tool.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import csv
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..exceptions import ConfigFormatError, ValidationError
from ..modbus.register_map import (
    ReadClass,
    RegisterDefinition,
    RegisterTable,
    ValueType,
    parse_address,
)
from .files import decode_error, replace_file


logger = logging.getLogger(__name__)

DELIMITER = ";"
HEADER = ["name", "description", "address", "var_type", "modbus_type", "enabled"]

# Metadata reported alongside a loaded table (the CSV itself carries none)
TABLE_VERSION = "csv-1.0"


class RegisterStore:
    """Load, save and edit the register table file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> RegisterTable:
        """
        Read the whole table.

        Raises:
            OSError: If the file cannot be read
            ConfigFormatError: If the header or any row is malformed
        """
        # utf-8-sig drops a BOM left by spreadsheet editors
        try:
            with open(self.path, "r", encoding="utf-8-sig", newline="") as f:
                rows = list(csv.reader(f, delimiter=DELIMITER))
        except UnicodeDecodeError as e:
            raise decode_error(self.path, e) from e

        if not rows:
            raise ConfigFormatError(self.path, "empty file, header row missing", line=1)

        header = [cell.strip() for cell in rows[0]]
        if header != HEADER:
            raise ConfigFormatError(
                self.path,
                f"unexpected header {DELIMITER.join(header)!r}, "
                f"expected {DELIMITER.join(HEADER)!r}",
                line=1,
            )

        registers = []
        for line_no, row in enumerate(rows[1:], start=2):
            if not row or all(not cell.strip() for cell in row):
                continue
            registers.append(self._parse_row(row, line_no))

        logger.debug(f"Loaded {len(registers)} registers from {self.path}")
        return RegisterTable(registers)

    def _parse_row(self, row: List[str], line_no: int) -> RegisterDefinition:
        if len(row) != len(HEADER):
            raise ConfigFormatError(
                self.path,
                f"expected {len(HEADER)} fields, found {len(row)}",
                line=line_no,
            )

        name, description, address, var_type, modbus_type, enabled = row

        try:
            register = RegisterDefinition(
                name=name,
                description=description,
                address=parse_address(address),
                value_type=ValueType.parse(var_type),
                read_class=ReadClass.parse(modbus_type),
                enabled=_parse_bool_cell(enabled),
            )
            register.validate()
        except ValueError as e:
            raise ConfigFormatError(self.path, str(e), line=line_no) from e

        return register

    def save(self, table: Union[RegisterTable, Sequence[RegisterDefinition]]):
        """
        Rewrite the whole file with the given table.

        The new content is written to a temporary file next to the target
        and moved into place, so the file always holds one complete table.

        Raises:
            OSError: If the file cannot be written
        """
        with replace_file(self.path) as f:
            writer = csv.writer(f, delimiter=DELIMITER, lineterminator="\n")
            writer.writerow(HEADER)
            for reg in table:
                writer.writerow(
                    [
                        reg.name,
                        reg.description,
                        str(reg.address),
                        reg.value_type.value,
                        reg.read_class.value,
                        "true" if reg.enabled else "false",
                    ]
                )

        logger.debug(f"Saved {len(table)} registers to {self.path}")

    def create_empty(self):
        """Write a header-only table if no file exists yet."""
        if self.path.exists():
            return False
        self.save(RegisterTable())
        logger.info(f"Created empty register table {self.path}")
        return True

    def add(
        self,
        name: str,
        description: str,
        address: str,
        value_type: str,
        read_class: str,
        enabled: str = "true",
    ) -> RegisterTable:
        """
        Validate a new row and append it at the end of the table.

        A missing table file is created first.

        Raises:
            ValidationError: If a field is invalid (nothing is written)
            OSError, ConfigFormatError: If the current table cannot be loaded
        """
        register = RegisterDefinition.from_fields(
            name, description, address, value_type, read_class, enabled
        )

        self.create_empty()
        table = self.load()
        table.append(register)
        self.save(table)

        logger.info(
            f"Register '{register.name}' added at address {register.address}"
        )
        return table

    def update(
        self,
        position: int,
        name: str,
        description: str,
        address: str,
        value_type: str,
        read_class: str,
        enabled: str = "true",
    ) -> RegisterTable:
        """Replace the row at a 1-based position with a validated one."""
        register = RegisterDefinition.from_fields(
            name, description, address, value_type, read_class, enabled
        )

        table = self.load()
        table.replace(position, register)
        self.save(table)

        logger.info(f"Register #{position} replaced by '{register.name}'")
        return table

    def delete(self, position: int) -> Optional[RegisterDefinition]:
        """
        Remove the row at a 1-based position.

        Position 0 cancels and returns None without touching the file.

        Raises:
            ValidationError: If the position is out of range (nothing is written)
        """
        if position == 0:
            logger.info("Delete cancelled")
            return None

        table = self.load()
        if not 1 <= position <= len(table):
            raise ValidationError(
                "position", f"{position} out of range (1-{len(table)})"
            )

        removed = table.remove(position)
        self.save(table)

        logger.info(f"Register '{removed.name}' (address {removed.address}) deleted")
        return removed

    def sort_by_address(self) -> RegisterTable:
        """Sort the table by ascending address (stable) and persist it."""
        table = self.load().sorted_by_address()
        self.save(table)
        logger.info(f"Registers sorted by address and saved to {self.path}")
        return table


def _parse_bool_cell(text: str) -> bool:
    s = text.strip().lower()
    if s == "true":
        return True
    if s == "false":
        return False
    raise ValueError(f"enabled must be 'true' or 'false', got '{text}'")
