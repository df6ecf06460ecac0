"""
Modbus RTU Client Session
=========================

Protocol adapter between the poll scheduler and the serial line.

Framing, CRC and turnaround timing are handled by pymodbus. This module
exposes the four read primitives the scheduler needs and enforces the
rules of a shared half-duplex line:
- One session holder at a time (claim / release)
- One outstanding request at a time
- Every read bounded by a timeout

Dependencies:
- pymodbus: Python Modbus library (serial client)
- pyserial: serial line access and port enumeration

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional, Sequence

from pymodbus.client import AsyncModbusSerialClient
from pymodbus.exceptions import ModbusException, ModbusIOException
from serial.tools import list_ports

from ..exceptions import ProtocolError
from .register_map import ReadClass


logger = logging.getLogger(__name__)

MIN_DEVICE_ADDRESS = 1
MAX_DEVICE_ADDRESS = 240
DEFAULT_READ_TIMEOUT_SEC = 1.0

# pymodbus must give up before the per-read bound fires
TRANSPORT_TIMEOUT_FACTOR = 0.8


class BaudRate(IntEnum):
    """Supported RS-485 line speeds."""

    B2400 = 2400
    B4800 = 4800
    B9600 = 9600
    B19200 = 19200
    B38400 = 38400
    B57600 = 57600
    B115200 = 115200


class Parity(Enum):
    """Serial parity. Values are the persisted strings."""

    NONE = "None"
    EVEN = "Even"
    ODD = "Odd"

    @property
    def code(self) -> str:
        """Single-letter parity code used by pyserial."""
        return self.value[0]


class StopBits(IntEnum):
    """Serial stop bits."""

    ONE = 1
    TWO = 2


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    One physical link to one device.

    Attributes:
        port: Serial device name ('COM3', '/dev/ttyUSB0')
        device_address: Modbus unit id of the polled device (1-240)
        baud_rate: Line speed
        parity: Parity setting
        stop_bits: Number of stop bits
    """

    port: str
    device_address: int
    baud_rate: BaudRate = BaudRate.B9600
    parity: Parity = Parity.NONE
    stop_bits: StopBits = StopBits.ONE

    def __post_init__(self):
        """Coerce plain values to enums and validate ranges."""
        if not self.port or not str(self.port).strip():
            raise ValueError("Serial port must not be empty")

        address = self.device_address
        if isinstance(address, bool) or not isinstance(address, int):
            raise ValueError(f"Device address must be an integer, got {address!r}")
        if not MIN_DEVICE_ADDRESS <= address <= MAX_DEVICE_ADDRESS:
            raise ValueError(
                f"Device address {address} out of range "
                f"[{MIN_DEVICE_ADDRESS}, {MAX_DEVICE_ADDRESS}]"
            )

        # Frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "baud_rate", BaudRate(self.baud_rate))
        object.__setattr__(self, "parity", Parity(self.parity))
        object.__setattr__(self, "stop_bits", StopBits(self.stop_bits))

    def describe(self) -> str:
        """One-line summary for logs."""
        return (
            f"{self.port} unit={self.device_address} {int(self.baud_rate)} baud "
            f"8{self.parity.code}{int(self.stop_bits)}"
        )


class ModbusSession(ABC):
    """
    Exclusively-owned session on one half-duplex line.

    Subclasses implement the raw primitives (_read_*). The public read
    methods bound each call with a timeout and refuse to start a request
    while another one is outstanding.
    """

    def __init__(self, device_address: int = MIN_DEVICE_ADDRESS):
        self.device_address = device_address
        self._owner = None
        self._in_flight = False

    def claim(self, owner):
        """
        Take exclusive ownership of the session.

        Raises:
            RuntimeError: If another holder already owns it
        """
        if self._owner is not None and self._owner is not owner:
            raise RuntimeError("Modbus session is already owned by another holder")
        self._owner = owner

    def release(self, owner):
        """Give up ownership (no-op for a non-owner)."""
        if self._owner is owner:
            self._owner = None

    @property
    def owner(self):
        return self._owner

    def set_device_address(self, address: int):
        """Select the unit id addressed by subsequent reads."""
        if not MIN_DEVICE_ADDRESS <= address <= MAX_DEVICE_ADDRESS:
            raise ValueError(
                f"Device address {address} out of range "
                f"[{MIN_DEVICE_ADDRESS}, {MAX_DEVICE_ADDRESS}]"
            )
        self.device_address = address

    async def read_input_words(self, address: int, count: int, timeout: float) -> List[int]:
        """FC 04: read input registers."""
        return await self._bounded(self._read_input_words(address, count), timeout)

    async def read_holding_words(self, address: int, count: int, timeout: float) -> List[int]:
        """FC 03: read holding registers."""
        return await self._bounded(self._read_holding_words(address, count), timeout)

    async def read_coils(self, address: int, count: int, timeout: float) -> List[bool]:
        """FC 01: read coils."""
        return await self._bounded(self._read_coils(address, count), timeout)

    async def read_discrete_bits(self, address: int, count: int, timeout: float) -> List[bool]:
        """FC 02: read discrete inputs."""
        return await self._bounded(self._read_discrete_bits(address, count), timeout)

    async def read(self, read_class: ReadClass, address: int, count: int, timeout: float):
        """
        Dispatch a read by read class.

        Returns:
            List of words for register classes, list of bools for bit classes

        Raises:
            ProtocolError: Device or protocol stack reported a failure
            TimeoutError: No response within the timeout
        """
        if read_class == ReadClass.INPUT_REGISTER:
            return await self.read_input_words(address, count, timeout)
        elif read_class == ReadClass.HOLDING_REGISTER:
            return await self.read_holding_words(address, count, timeout)
        elif read_class == ReadClass.COIL:
            return await self.read_coils(address, count, timeout)
        elif read_class == ReadClass.DISCRETE_INPUT:
            return await self.read_discrete_bits(address, count, timeout)
        else:
            raise ValueError(f"Unknown read class: {read_class}")

    async def _bounded(self, request, timeout: float):
        if self._in_flight:
            request.close()
            raise RuntimeError("A request is already outstanding on this session")

        self._in_flight = True
        try:
            return await asyncio.wait_for(request, timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"No response within {timeout * 1000:.0f} ms") from e
        finally:
            self._in_flight = False

    @abstractmethod
    async def _read_input_words(self, address: int, count: int) -> List[int]:
        pass

    @abstractmethod
    async def _read_holding_words(self, address: int, count: int) -> List[int]:
        pass

    @abstractmethod
    async def _read_coils(self, address: int, count: int) -> List[bool]:
        pass

    @abstractmethod
    async def _read_discrete_bits(self, address: int, count: int) -> List[bool]:
        pass

    def close(self):
        """Release the underlying line."""


class PymodbusSession(ModbusSession):
    """Session backed by pymodbus' asyncio serial client."""

    def __init__(self, client: AsyncModbusSerialClient, device_address: int):
        super().__init__(device_address)
        self.client = client

    async def _read_input_words(self, address: int, count: int) -> List[int]:
        response = await self._call(
            self.client.read_input_registers, address, count
        )
        return list(response.registers or [])

    async def _read_holding_words(self, address: int, count: int) -> List[int]:
        response = await self._call(
            self.client.read_holding_registers, address, count
        )
        return list(response.registers or [])

    async def _read_coils(self, address: int, count: int) -> List[bool]:
        response = await self._call(self.client.read_coils, address, count)
        return list(response.bits or [])[:count]

    async def _read_discrete_bits(self, address: int, count: int) -> List[bool]:
        response = await self._call(self.client.read_discrete_inputs, address, count)
        return list(response.bits or [])[:count]

    async def _call(self, method, address: int, count: int):
        try:
            response = await method(
                address=address, count=count, device_id=self.device_address
            )
        except ModbusIOException as e:
            # pymodbus reports a missing reply as an I/O error
            raise TimeoutError(str(e)) from e
        except ModbusException as e:
            raise ProtocolError(str(e)) from e

        if response is None:
            raise ProtocolError("No response")
        if response.isError():
            raise ProtocolError(str(response))

        return response

    def close(self):
        self.client.close()


class ModbusAdapter:
    """
    Opens sessions on a serial line.

    read_timeout is the per-read bound the scheduler applies. The pymodbus
    transport timeout is set below it, so an unanswered request is dropped
    by pymodbus before the next one goes out on the line.
    """

    def __init__(self, read_timeout: float = DEFAULT_READ_TIMEOUT_SEC):
        self.read_timeout = read_timeout

    @property
    def transport_timeout(self) -> float:
        return self.read_timeout * TRANSPORT_TIMEOUT_FACTOR

    def create_client(self, descriptor: ConnectionDescriptor) -> AsyncModbusSerialClient:
        return AsyncModbusSerialClient(
            port=descriptor.port,
            baudrate=int(descriptor.baud_rate),
            bytesize=8,
            parity=descriptor.parity.code,
            stopbits=int(descriptor.stop_bits),
            timeout=self.transport_timeout,
            retries=0,
        )

    async def open_session(self, descriptor: ConnectionDescriptor) -> ModbusSession:
        """
        Open one session on the line described by the descriptor.

        Raises:
            ConnectionError: If the serial line cannot be opened
        """
        client = self.create_client(descriptor)

        try:
            connected = await client.connect()
        except (OSError, ModbusException) as e:
            client.close()
            raise ConnectionError(f"Cannot open {descriptor.port}: {e}") from e

        if not connected:
            client.close()
            raise ConnectionError(f"Cannot open {descriptor.port}")

        logger.info(f"Serial session opened: {descriptor.describe()}")
        return PymodbusSession(client, descriptor.device_address)


def list_available_ports() -> List[str]:
    """Device names of the serial ports present on this machine."""
    return sorted(port.device for port in list_ports.comports())


def format_port_entry(port) -> str:
    """
    Build a friendly label for a serial port.

    port is a serial.tools.list_ports_common.ListPortInfo.
    """
    label = port.device
    extras: List[str] = []
    if getattr(port, "description", None) and port.description != "n/a":
        extras.append(port.description)
    if getattr(port, "manufacturer", None):
        extras.append(port.manufacturer)
    vid = getattr(port, "vid", None)
    pid = getattr(port, "pid", None)
    if vid is not None and pid is not None:
        extras.append(f"VID:PID={vid:04X}:{pid:04X}")
    if extras:
        label += " - " + " ".join(extras)
    return label


def describe_ports(ports: Optional[Sequence] = None) -> List[str]:
    """Labels for every available serial port."""
    if ports is None:
        ports = list_ports.comports()
    return [format_port_entry(p) for p in sorted(ports, key=lambda p: p.device)]
