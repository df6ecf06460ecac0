"""
Modbus Register Table
=====================

Defines the operator's table of polled data points.

This module contains ONLY the register layout - it does not:
- Talk to the serial line
- Decode register values
- Persist the table

Read Classes:
- Input Registers (FC 04): Read-only 16-bit words
- Holding Registers (FC 03): Read/write 16-bit words
- Coils (FC 01): Read/write single bits
- Discrete Inputs (FC 02): Read-only single bits

Addresses are not checked for collisions. Two rows may share an address
and are polled independently.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from ..exceptions import ValidationError


MIN_ADDRESS = 0
MAX_ADDRESS = 65535

TRUE_TOKENS = ("1", "true", "t", "yes", "y", "on", "да")
FALSE_TOKENS = ("2", "0", "false", "f", "no", "n", "off", "нет")

_DECIMAL = re.compile(r"[0-9]+")


class ValueType(Enum):
    """Decoding scheme applied to the raw words. Values are the CSV tokens."""

    BOOL = "bool"
    UINT16 = "u16"
    INT16 = "i16"
    UINT32 = "u32"
    INT32 = "i32"
    FLOAT32 = "float"

    @classmethod
    def parse(cls, token: str, allow_index: bool = False) -> "ValueType":
        """
        Parse a value type token.

        Args:
            token: CSV token ('u16', 'float', ...)
            allow_index: Also accept the 1-based position in the menu order

        Raises:
            ValueError: If the token names no value type
        """
        return _parse_enum(cls, token, allow_index)


class ReadClass(Enum):
    """Protocol read primitive used for a register. Values are the CSV tokens."""

    INPUT_REGISTER = "input_register"
    HOLDING_REGISTER = "holding_register"
    COIL = "coil"
    DISCRETE_INPUT = "discrete_input"

    @property
    def function_code(self) -> int:
        """Modbus read function code."""
        return _FUNCTION_CODES[self]

    @property
    def is_bit_access(self) -> bool:
        """Coils and discrete inputs return bits, not words."""
        return self in (ReadClass.COIL, ReadClass.DISCRETE_INPUT)

    @classmethod
    def parse(cls, token: str, allow_index: bool = False) -> "ReadClass":
        """Parse a read class token (see ValueType.parse)."""
        return _parse_enum(cls, token, allow_index)


_FUNCTION_CODES: Dict[ReadClass, int] = {
    ReadClass.INPUT_REGISTER: 0x04,
    ReadClass.HOLDING_REGISTER: 0x03,
    ReadClass.COIL: 0x01,
    ReadClass.DISCRETE_INPUT: 0x02,
}


def _parse_enum(enum_cls, token: str, allow_index: bool):
    text = str(token).strip()
    members = list(enum_cls)

    if allow_index and _DECIMAL.fullmatch(text):
        index = int(text)
        if 1 <= index <= len(members):
            return members[index - 1]

    for member in members:
        if member.value == text.lower():
            return member

    choices = ", ".join(m.value for m in members)
    raise ValueError(f"unknown {enum_cls.__name__} '{text}' (expected one of: {choices})")


def parse_address(text: str) -> int:
    """
    Parse a decimal register address.

    Raises:
        ValueError: If the text is not an integer in [0, 65535]
    """
    s = str(text).strip()
    if not _DECIMAL.fullmatch(s):
        raise ValueError(f"'{s}' is not a decimal number")

    address = int(s)
    if not MIN_ADDRESS <= address <= MAX_ADDRESS:
        raise ValueError(f"address {address} out of range [{MIN_ADDRESS}, {MAX_ADDRESS}]")

    return address


def parse_enabled(text: str) -> bool:
    """
    Parse an enabled flag from a small set of yes/no tokens.

    Raises:
        ValueError: If the token is neither truthy nor falsy
    """
    s = str(text).strip().lower()
    if s in TRUE_TOKENS:
        return True
    if s in FALSE_TOKENS:
        return False
    raise ValueError(f"'{text}' is not a yes/no value")


@dataclass
class RegisterDefinition:
    """
    Definition of a single polled data point.

    Attributes:
        name: Display identifier (non-empty, not required to be unique)
        description: Free text
        address: Protocol-space address (0-based)
        value_type: How the raw words are decoded
        read_class: Which read primitive fetches the data
        enabled: Whether the poll scheduler reads this register
    """

    name: str
    description: str
    address: int
    value_type: ValueType
    read_class: ReadClass
    enabled: bool = True

    def validate(self):
        """Validate register definition."""
        if not self.name or not self.name.strip():
            raise ValidationError("name", "must not be empty")

        if not isinstance(self.address, int) or isinstance(self.address, bool):
            raise ValidationError("address", f"must be an integer, got {self.address!r}")

        if not MIN_ADDRESS <= self.address <= MAX_ADDRESS:
            raise ValidationError(
                "address",
                f"{self.address} out of range [{MIN_ADDRESS}, {MAX_ADDRESS}]",
            )

        if not isinstance(self.value_type, ValueType):
            raise ValidationError("var_type", f"unknown value type {self.value_type!r}")

        if not isinstance(self.read_class, ReadClass):
            raise ValidationError("modbus_type", f"unknown read class {self.read_class!r}")

    @classmethod
    def from_fields(
        cls,
        name: str,
        description: str,
        address: str,
        value_type: str,
        read_class: str,
        enabled: str,
    ) -> "RegisterDefinition":
        """
        Build a definition from raw user input.

        Enumerated fields accept either their token or their 1-based menu
        number. The name is checked first so an empty name is rejected
        before anything else is looked at.

        Raises:
            ValidationError: Naming the first field that failed
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "must not be empty")

        try:
            parsed_address = parse_address(address)
        except ValueError as e:
            raise ValidationError("address", str(e)) from e

        try:
            parsed_type = ValueType.parse(value_type, allow_index=True)
        except ValueError as e:
            raise ValidationError("var_type", str(e)) from e

        try:
            parsed_class = ReadClass.parse(read_class, allow_index=True)
        except ValueError as e:
            raise ValidationError("modbus_type", str(e)) from e

        try:
            parsed_enabled = parse_enabled(enabled)
        except ValueError as e:
            raise ValidationError("enabled", str(e)) from e

        return cls(
            name=name,
            description=(description or "").strip(),
            address=parsed_address,
            value_type=parsed_type,
            read_class=parsed_class,
            enabled=parsed_enabled,
        )


class RegisterTable:
    """
    Ordered sequence of register definitions.

    Row order is the persisted order and is what the operator sees.
    Mutating methods work in memory only; the store rewrites the file.
    """

    def __init__(self, registers: Optional[Iterable[RegisterDefinition]] = None):
        self.registers: List[RegisterDefinition] = list(registers or [])

    def __len__(self) -> int:
        return len(self.registers)

    def __iter__(self) -> Iterator[RegisterDefinition]:
        return iter(self.registers)

    def __getitem__(self, index):
        return self.registers[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, RegisterTable):
            return NotImplemented
        return self.registers == other.registers

    def __repr__(self) -> str:
        return f"RegisterTable({len(self.registers)} registers)"

    def append(self, register: RegisterDefinition):
        """Append a validated definition at the end of the table."""
        register.validate()
        self.registers.append(register)

    def replace(self, position: int, register: RegisterDefinition):
        """Replace the definition at a 1-based position."""
        self._check_position(position)
        register.validate()
        self.registers[position - 1] = register

    def remove(self, position: int) -> RegisterDefinition:
        """Remove and return the definition at a 1-based position."""
        self._check_position(position)
        return self.registers.pop(position - 1)

    def _check_position(self, position: int):
        if not 1 <= position <= len(self.registers):
            raise ValidationError(
                "position",
                f"{position} out of range (1-{len(self.registers)})",
            )

    def enabled(self) -> List[RegisterDefinition]:
        """Enabled registers in table order."""
        return [reg for reg in self.registers if reg.enabled]

    def sorted_by_address(self) -> "RegisterTable":
        """New table in ascending address order (stable for equal addresses)."""
        return RegisterTable(sorted(self.registers, key=lambda reg: reg.address))

    def summary(self) -> Dict[str, int]:
        """Row counts for display."""
        enabled = len(self.enabled())
        return {
            "total": len(self.registers),
            "enabled": enabled,
            "disabled": len(self.registers) - enabled,
        }

    def format_table(self) -> str:
        """Render the table for the terminal."""
        lines = []
        rule = "-" * 110

        lines.append(rule)
        lines.append(
            f"{'#':<4} {'Name':<20} {'Description':<40} {'Address':<8} "
            f"{'Type':<6} {'Read class':<18} {'Status':<8}"
        )
        lines.append(rule)

        for index, reg in enumerate(self.registers, start=1):
            status = "enabled" if reg.enabled else "disabled"
            lines.append(
                f"{index:<4} {_truncate(reg.name, 20):<20} "
                f"{_truncate(reg.description, 40):<40} {reg.address:<8} "
                f"{reg.value_type.value:<6} {reg.read_class.value:<18} {status:<8}"
            )

        lines.append(rule)
        return "\n".join(lines)


def _truncate(text: str, width: int) -> str:
    if len(text) < width:
        return text
    return text[: width - 4] + "..."
