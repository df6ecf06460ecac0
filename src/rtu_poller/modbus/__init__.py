"""
Modbus Interface Package
=========================

Modbus RTU protocol layer for the register poller.

This package provides:
- Register table model
- Value decoding
- Serial client sessions and port discovery

It does NOT:
- Persist anything
- Schedule polling
- Retry failed reads

Components:
- register_map.py: Register definitions and table
- protocols.py: Word/bit decoding
- client.py: Serial session adapter

Dependencies:
- pymodbus: Python Modbus library
  Install: pip install pymodbus
- pyserial: serial port access
  Install: pip install pyserial

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

from .register_map import (
    ReadClass,
    RegisterDefinition,
    RegisterTable,
    ValueType,
)

from .protocols import ValueDecoder

from .client import (
    BaudRate,
    ConnectionDescriptor,
    ModbusAdapter,
    ModbusSession,
    Parity,
    PymodbusSession,
    StopBits,
    list_available_ports,
)

__all__ = [
    # Register table
    "ReadClass",
    "RegisterDefinition",
    "RegisterTable",
    "ValueType",
    # Decoding
    "ValueDecoder",
    # Sessions
    "BaudRate",
    "ConnectionDescriptor",
    "ModbusAdapter",
    "ModbusSession",
    "Parity",
    "PymodbusSession",
    "StopBits",
    "list_available_ports",
]
