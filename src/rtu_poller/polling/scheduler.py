"""
Register Poll Scheduler
=======================

Cyclic, fault-isolated polling of the enabled registers.

Session lifecycle:
    IDLE -> CONNECTED -> POLLING -> STOPPED

Each tick:
1. Reads every enabled register in table order, one request at a time
2. Bounds each read with a fixed timeout
3. Records a decoded value, an error or a timeout per register
4. Updates the consecutive-failure counter
5. Sleeps until one interval after the tick started

A failing register never stops the rest of the tick. There are no
retries here: the next tick is the retry.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import asyncio
import datetime
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional

from ..exceptions import InsufficientDataError, PollSetupError, ProtocolError
from ..modbus.client import ConnectionDescriptor, ModbusAdapter, ModbusSession
from ..modbus.protocols import ValueDecoder
from ..modbus.register_map import RegisterDefinition
from .statistics import PollStatistics


logger = logging.getLogger(__name__)

READ_TIMEOUT_SEC = 1.0
TICK_INTERVAL_SEC = 1.0


class PollState(Enum):
    """Poll session state."""

    IDLE = "idle"
    CONNECTED = "connected"
    POLLING = "polling"
    STOPPED = "stopped"


class OutcomeStatus(Enum):
    """Result class of one register read."""

    OK = "ok"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass
class RegisterOutcome:
    """Result of reading one register in one tick."""

    register: RegisterDefinition
    status: OutcomeStatus
    value: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    def display(self) -> str:
        if self.status == OutcomeStatus.OK:
            return self.value
        if self.status == OutcomeStatus.TIMEOUT:
            return "Timeout"
        return f"Error: {self.error}"


@dataclass
class PollTick:
    """
    One pass over the enabled registers. Not persisted.

    Attributes:
        timestamp: Wall-clock time the tick started
        registers: Enabled registers at tick start, in table order
        outcomes: One outcome per register, same order
        duration: Seconds spent reading (excludes the inter-tick sleep)
    """

    timestamp: datetime.datetime
    registers: List[RegisterDefinition]
    outcomes: List[RegisterOutcome] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        """True only if every register in the tick succeeded."""
        return all(outcome.ok for outcome in self.outcomes)

    def format_line(self, consecutive_failures: int = 0) -> str:
        parts = [f"{o.register.name}: {o.display()}" for o in self.outcomes]
        line = f"{self.timestamp:%H:%M:%S} " + " | ".join(parts)
        if not self.success:
            line += f" (errors: {consecutive_failures})"
        return line


def log_tick(tick: PollTick, consecutive_failures: int):
    """Default reporter: one log line per tick."""
    level = logging.INFO if tick.success else logging.WARNING
    logger.log(level, tick.format_line(consecutive_failures))


class PollScheduler:
    """
    Polls one device over one exclusively-owned session.

    The scheduler claims the session on construction; no other holder may
    use it until close(). Reads are awaited strictly one after another.
    """

    def __init__(
        self,
        session: ModbusSession,
        registers: Iterable[RegisterDefinition],
        decoder: Optional[ValueDecoder] = None,
        read_timeout: float = READ_TIMEOUT_SEC,
        interval: float = TICK_INTERVAL_SEC,
        reporter: Optional[Callable[[PollTick, int], None]] = None,
        statistics: Optional[PollStatistics] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.state = PollState.IDLE
        self.registers = [reg for reg in registers if reg.enabled]
        if not self.registers:
            raise PollSetupError("No enabled registers to poll")

        if read_timeout <= 0 or interval <= 0:
            raise ValueError("Read timeout and tick interval must be positive")

        session.claim(self)
        self.session = session
        self.state = PollState.CONNECTED

        self.decoder = decoder or ValueDecoder()
        self.read_timeout = read_timeout
        self.interval = interval
        self.reporter = reporter or log_tick
        self.statistics = statistics or PollStatistics()
        self._clock = clock
        self._sleep = sleep

        self.consecutive_failures = 0
        self.tick_count = 0

    @classmethod
    async def start(
        cls,
        adapter: ModbusAdapter,
        descriptor: ConnectionDescriptor,
        registers: Iterable[RegisterDefinition],
        **kwargs,
    ) -> "PollScheduler":
        """
        Check preconditions, open the session and build a scheduler.

        Raises:
            PollSetupError: If no register is enabled (the line is not opened)
            ConnectionError: If the session cannot be opened
        """
        enabled = [reg for reg in registers if reg.enabled]
        if not enabled:
            raise PollSetupError("No enabled registers to poll")

        session = await adapter.open_session(descriptor)
        session.set_device_address(descriptor.device_address)

        try:
            return cls(session, enabled, **kwargs)
        except Exception:
            session.close()
            raise

    def read_quantity(self, register: RegisterDefinition) -> int:
        """Words (or bits) requested for a register."""
        if register.read_class.is_bit_access:
            return 1
        return self.decoder.words_needed(register.value_type)

    async def poll_register(self, register: RegisterDefinition) -> RegisterOutcome:
        """Read and decode one register, absorbing per-register failures."""
        try:
            data = await self.session.read(
                register.read_class,
                register.address,
                self.read_quantity(register),
                self.read_timeout,
            )
        except ProtocolError as e:
            logger.debug(f"{register.name}@{register.address}: protocol error {e}")
            return RegisterOutcome(register, OutcomeStatus.ERROR, error=str(e))
        except TimeoutError as e:
            logger.debug(f"{register.name}@{register.address}: {e}")
            return RegisterOutcome(register, OutcomeStatus.TIMEOUT, error=str(e))

        try:
            if register.read_class.is_bit_access:
                value = self.decoder.decode_bits(data)
            else:
                value = self.decoder.decode(register.value_type, data)
        except InsufficientDataError as e:
            return RegisterOutcome(register, OutcomeStatus.ERROR, error=str(e))

        return RegisterOutcome(register, OutcomeStatus.OK, value=value)

    async def run_tick(self) -> PollTick:
        """Poll every enabled register once and update the failure counter."""
        if self.state == PollState.STOPPED:
            raise RuntimeError("Poll session is stopped")

        self.state = PollState.POLLING
        started = self._clock()
        tick = PollTick(timestamp=datetime.datetime.now(), registers=list(self.registers))

        for register in tick.registers:
            tick.outcomes.append(await self.poll_register(register))

        tick.duration = self._clock() - started

        if tick.success:
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1

        self.tick_count += 1
        self.statistics.record(tick, self.consecutive_failures)
        return tick

    async def run(self, max_ticks: Optional[int] = None):
        """
        Poll until interrupted.

        Args:
            max_ticks: Stop after this many ticks (None = never)
        """
        logger.info(
            f"Polling {len(self.registers)} registers every {self.interval:g}s "
            f"(read timeout {self.read_timeout * 1000:.0f} ms)"
        )

        try:
            while max_ticks is None or self.tick_count < max_ticks:
                tick_start = self._clock()

                tick = await self.run_tick()
                self.reporter(tick, self.consecutive_failures)

                if max_ticks is not None and self.tick_count >= max_ticks:
                    break

                # Interval is measured from tick start
                elapsed = self._clock() - tick_start
                remaining = self.interval - elapsed
                if remaining > 0:
                    await self._sleep(remaining)
        finally:
            self.state = PollState.STOPPED
            if self.statistics.tick_count:
                logger.info(f"Poll statistics: {self.statistics.format_summary()}")

    def close(self):
        """Release and close the session."""
        self.state = PollState.STOPPED
        self.session.release(self)
        self.session.close()
