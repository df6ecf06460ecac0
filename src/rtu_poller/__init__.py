"""
Modbus RTU Register Poller
==========================

Declarative polling of named Modbus registers over a shared RS-485 line.

An operator keeps a table of registers (address, read class, value type,
enabled flag) and the connection settings on disk. The poller reads every
enabled register once per tick, one request at a time, decodes the raw
words and reports a value, an error or a timeout per register.

Packages:
- modbus: Register table model, value decoding, serial sessions
- storage: CSV register table and JSON connection settings
- polling: Poll scheduler and statistics

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Guilherme F. G. Santos"

from .exceptions import (
    ConfigFormatError,
    InsufficientDataError,
    PollSetupError,
    ProtocolError,
    ValidationError,
)

__all__ = [
    "ConfigFormatError",
    "InsufficientDataError",
    "PollSetupError",
    "ProtocolError",
    "ValidationError",
]
