"""Tests for the poll scheduler."""

import asyncio
import datetime

import pytest

from conftest import make_register
from doubles import HANG, FakeAdapter, FakeSession
from rtu_poller.exceptions import PollSetupError, ProtocolError
from rtu_poller.modbus.register_map import ReadClass, RegisterTable, ValueType
from rtu_poller.polling import OutcomeStatus, PollScheduler, PollState

FAST_TIMEOUT = 0.05


def make_scheduler(session, registers, **kwargs):
    kwargs.setdefault("read_timeout", FAST_TIMEOUT)
    kwargs.setdefault("interval", 0.01)
    kwargs.setdefault("reporter", lambda tick, errors: None)
    return PollScheduler(session, registers, **kwargs)


@pytest.fixture
def mixed_registers():
    return [
        make_register("u32", 100, ValueType.UINT32, ReadClass.INPUT_REGISTER),
        make_register("flag", 3, ValueType.UINT32, ReadClass.COIL),
        make_register("temp", 200, ValueType.FLOAT32, ReadClass.HOLDING_REGISTER),
        make_register("door", 7, ValueType.BOOL, ReadClass.DISCRETE_INPUT),
        make_register("off", 1, ValueType.UINT16, ReadClass.HOLDING_REGISTER, enabled=False),
    ]


@pytest.fixture
def healthy_session():
    session = FakeSession()
    session.reply(ReadClass.INPUT_REGISTER, 100, [1, 2])
    session.reply(ReadClass.COIL, 3, [True, False, False])
    session.reply(ReadClass.HOLDING_REGISTER, 200, [0x0000, 0x3F80])
    session.reply(ReadClass.DISCRETE_INPUT, 7, [])
    return session


class TestSetup:
    """Test session preconditions."""

    def test_no_enabled_registers(self):
        session = FakeSession()

        with pytest.raises(PollSetupError):
            make_scheduler(session, [make_register(enabled=False)])

        assert session.owner is None

    def test_claims_session(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers)

        assert healthy_session.owner is scheduler
        assert scheduler.state == PollState.CONNECTED

        with pytest.raises(RuntimeError):
            make_scheduler(healthy_session, mixed_registers)

    def test_close_releases(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers)

        scheduler.close()

        assert healthy_session.owner is None
        assert healthy_session.closed
        assert scheduler.state == PollState.STOPPED

    @pytest.mark.asyncio
    async def test_start_checks_registers_before_opening(self, descriptor):
        adapter = FakeAdapter()

        with pytest.raises(PollSetupError):
            await PollScheduler.start(
                adapter, descriptor, RegisterTable([make_register(enabled=False)])
            )

        assert adapter.opened == []

    @pytest.mark.asyncio
    async def test_start_connection_failure_is_fatal(self, descriptor, mixed_registers):
        adapter = FakeAdapter(fail=True)

        with pytest.raises(ConnectionError):
            await PollScheduler.start(adapter, descriptor, mixed_registers)

    @pytest.mark.asyncio
    async def test_start_sets_device_address(self, descriptor, healthy_session, mixed_registers):
        adapter = FakeAdapter(healthy_session)

        scheduler = await PollScheduler.start(
            adapter, descriptor, RegisterTable(mixed_registers), read_timeout=FAST_TIMEOUT
        )

        assert healthy_session.device_address == 17
        assert len(scheduler.registers) == 4


class TestTick:
    """Test a single poll pass."""

    @pytest.mark.asyncio
    async def test_all_succeed(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers)

        tick = await scheduler.run_tick()

        assert tick.success
        assert [o.value for o in tick.outcomes] == ["131073", "true", "1.000", "false"]
        assert scheduler.consecutive_failures == 0
        assert scheduler.state == PollState.POLLING

    @pytest.mark.asyncio
    async def test_read_dispatch_and_quantity(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers)

        await scheduler.run_tick()

        # Table order, disabled row skipped, coils read one bit regardless of type
        assert healthy_session.calls == [
            (ReadClass.INPUT_REGISTER, 100, 2),
            (ReadClass.COIL, 3, 1),
            (ReadClass.HOLDING_REGISTER, 200, 2),
            (ReadClass.DISCRETE_INPUT, 7, 1),
        ]

    @pytest.mark.asyncio
    async def test_timeout_isolated(self, healthy_session, mixed_registers):
        healthy_session.reply(ReadClass.HOLDING_REGISTER, 200, HANG)
        scheduler = make_scheduler(healthy_session, mixed_registers)

        tick = await scheduler.run_tick()

        assert len(tick.outcomes) == 4
        statuses = [o.status for o in tick.outcomes]
        assert statuses.count(OutcomeStatus.OK) == 3
        assert tick.outcomes[2].status == OutcomeStatus.TIMEOUT
        assert tick.outcomes[2].display() == "Timeout"
        assert not tick.success
        assert scheduler.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_protocol_error_isolated(self, healthy_session, mixed_registers):
        healthy_session.reply(ReadClass.INPUT_REGISTER, 100, ProtocolError("Illegal data address"))
        scheduler = make_scheduler(healthy_session, mixed_registers)

        tick = await scheduler.run_tick()

        assert tick.outcomes[0].status == OutcomeStatus.ERROR
        assert tick.outcomes[0].display() == "Error: Illegal data address"
        assert [o.ok for o in tick.outcomes[1:]] == [True, True, True]
        assert scheduler.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_short_reply_is_error(self, healthy_session, mixed_registers):
        healthy_session.reply(ReadClass.INPUT_REGISTER, 100, [1])
        scheduler = make_scheduler(healthy_session, mixed_registers)

        tick = await scheduler.run_tick()

        assert tick.outcomes[0].status == OutcomeStatus.ERROR
        assert "needs 2" in tick.outcomes[0].error

    @pytest.mark.asyncio
    async def test_duplicate_addresses_polled_independently(self):
        session = FakeSession()
        session.reply(ReadClass.HOLDING_REGISTER, 10, [0xFFFF])
        registers = [
            make_register("raw", 10, ValueType.UINT16),
            make_register("signed", 10, ValueType.INT16),
        ]
        scheduler = make_scheduler(session, registers)

        tick = await scheduler.run_tick()

        assert [o.value for o in tick.outcomes] == ["65535", "-1"]
        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_reads_never_overlap(self, mixed_registers):
        session = FakeSession(latency=0.005)
        session.reply(ReadClass.INPUT_REGISTER, 100, [1, 2])
        session.reply(ReadClass.COIL, 3, [True])
        session.reply(ReadClass.HOLDING_REGISTER, 200, [0, 0x3F80])
        session.reply(ReadClass.DISCRETE_INPUT, 7, [False])
        scheduler = make_scheduler(session, mixed_registers)

        await scheduler.run_tick()

        assert session.peak_active == 1


class TestFailureCounter:
    """Test the consecutive-failure counter."""

    @pytest.mark.asyncio
    async def test_increments_and_resets(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers)

        healthy_session.reply(ReadClass.COIL, 3, ProtocolError("busy"))
        await scheduler.run_tick()
        await scheduler.run_tick()
        assert scheduler.consecutive_failures == 2

        healthy_session.reply(ReadClass.COIL, 3, [False])
        await scheduler.run_tick()
        assert scheduler.consecutive_failures == 0


class TestRun:
    """Test the polling loop."""

    @pytest.mark.asyncio
    async def test_runs_requested_ticks_and_reports(self, healthy_session, mixed_registers):
        reports = []
        scheduler = make_scheduler(
            healthy_session,
            mixed_registers,
            reporter=lambda tick, errors: reports.append((tick.success, errors)),
        )

        await scheduler.run(max_ticks=3)

        assert reports == [(True, 0), (True, 0), (True, 0)]
        assert scheduler.state == PollState.STOPPED
        assert scheduler.statistics.tick_count == 3

    @pytest.mark.asyncio
    async def test_sleep_measured_from_tick_start(self, healthy_session, mixed_registers):
        times = iter([0.0, 0.0, 0.25, 0.25, 1.0, 1.0, 1.25, 1.25])
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        scheduler = make_scheduler(
            healthy_session,
            mixed_registers,
            interval=1.0,
            clock=lambda: next(times),
            sleep=fake_sleep,
        )

        await scheduler.run(max_ticks=2)

        # One sleep between two ticks; none after the last
        assert sleeps == [pytest.approx(0.75)]

    @pytest.mark.asyncio
    async def test_no_sleep_when_tick_overruns(self, healthy_session, mixed_registers):
        times = iter([0.0, 0.0, 1.5, 1.5, 1.5, 1.5, 2.0, 2.0])
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        scheduler = make_scheduler(
            healthy_session,
            mixed_registers,
            interval=1.0,
            clock=lambda: next(times),
            sleep=fake_sleep,
        )

        await scheduler.run(max_ticks=2)

        assert sleeps == []

    @pytest.mark.asyncio
    async def test_cancellation_stops_loop(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers, interval=10.0)

        task = asyncio.ensure_future(scheduler.run())
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert scheduler.state == PollState.STOPPED
        assert scheduler.tick_count == 1

    @pytest.mark.asyncio
    async def test_stopped_scheduler_refuses_ticks(self, healthy_session, mixed_registers):
        scheduler = make_scheduler(healthy_session, mixed_registers)
        scheduler.close()

        with pytest.raises(RuntimeError):
            await scheduler.run_tick()


def test_tick_line_format(healthy_session, mixed_registers):
    scheduler = make_scheduler(healthy_session, mixed_registers)
    healthy_session.reply(ReadClass.COIL, 3, ProtocolError("busy"))

    tick = asyncio.run(scheduler.run_tick())
    tick.timestamp = datetime.datetime(2026, 10, 19, 14, 5, 9)

    assert tick.format_line(1) == (
        "14:05:09 u32: 131073 | flag: Error: busy | temp: 1.000 | door: false (errors: 1)"
    )


def test_clean_tick_line_has_no_error_count(healthy_session, mixed_registers):
    scheduler = make_scheduler(healthy_session, mixed_registers)

    tick = asyncio.run(scheduler.run_tick())
    tick.timestamp = datetime.datetime(2026, 10, 19, 9, 0, 0)

    assert tick.format_line(0) == "09:00:00 u32: 131073 | flag: true | temp: 1.000 | door: false"
