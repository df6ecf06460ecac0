"""Fake Modbus session for testing without a serial line.

This fake implements the ModbusSession primitives with scripted replies.
It records every request and the peak number of requests in flight.
"""

import asyncio
from typing import Dict, List, Tuple

from rtu_poller.exceptions import ProtocolError
from rtu_poller.modbus.client import ModbusSession
from rtu_poller.modbus.register_map import ReadClass

HANG = object()


class FakeSession(ModbusSession):
    """Scripted session.

    Replies are keyed by (read class, address). A reply is either a list
    of words/bits, an exception instance to raise, or HANG to never answer
    (the caller's timeout fires).

    Example:
        >>> session = FakeSession()
        >>> session.reply(ReadClass.HOLDING_REGISTER, 10, [1, 2])
        >>> session.reply(ReadClass.COIL, 0, ProtocolError("Illegal address"))
    """

    def __init__(self, device_address: int = 1, latency: float = 0.0):
        super().__init__(device_address)
        self.latency = latency
        self.replies: Dict[Tuple[ReadClass, int], object] = {}
        self.calls: List[Tuple[ReadClass, int, int]] = []
        self.active = 0
        self.peak_active = 0
        self.closed = False

    def reply(self, read_class: ReadClass, address: int, result):
        self.replies[(read_class, address)] = result

    async def _serve(self, read_class: ReadClass, address: int, count: int):
        self.calls.append((read_class, address, count))
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            result = self.replies.get((read_class, address))
            if result is None:
                raise ProtocolError(f"No reply scripted for {read_class.value}@{address}")
            if result is HANG:
                await asyncio.sleep(3600)
            if isinstance(result, BaseException):
                raise result
            if self.latency:
                await asyncio.sleep(self.latency)
            return list(result)
        finally:
            self.active -= 1

    async def _read_input_words(self, address: int, count: int):
        return await self._serve(ReadClass.INPUT_REGISTER, address, count)

    async def _read_holding_words(self, address: int, count: int):
        return await self._serve(ReadClass.HOLDING_REGISTER, address, count)

    async def _read_coils(self, address: int, count: int):
        return await self._serve(ReadClass.COIL, address, count)

    async def _read_discrete_bits(self, address: int, count: int):
        return await self._serve(ReadClass.DISCRETE_INPUT, address, count)

    def close(self):
        self.closed = True


class FakeAdapter:
    """Adapter handing out a prepared FakeSession (or failing to open)."""

    def __init__(self, session: FakeSession = None, fail: bool = False):
        self.session = session or FakeSession()
        self.fail = fail
        self.opened = []

    async def open_session(self, descriptor):
        self.opened.append(descriptor)
        if self.fail:
            raise ConnectionError(f"Cannot open {descriptor.port}")
        return self.session
