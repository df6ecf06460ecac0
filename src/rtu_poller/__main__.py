"""
Register Poller Command Line
============================

Entry point for polling a Modbus RTU device and editing the register
table and connection settings.

Usage:
    python -m rtu_poller poll [--count N]
    python -m rtu_poller registers show|add|edit|delete|sort|init
    python -m rtu_poller settings show|set
    python -m rtu_poller ports [--names]

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import argparse
import asyncio
import datetime
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import PollerConfig
from .exceptions import ConfigFormatError, PollSetupError, ValidationError
from .modbus.client import (
    BaudRate,
    ConnectionDescriptor,
    ModbusAdapter,
    Parity,
    StopBits,
    describe_ports,
    list_available_ports,
)
from .modbus.protocols import ValueDecoder
from .modbus.register_map import ReadClass, ValueType
from .polling import PollScheduler, PollStatistics
from .storage import RegisterStore, SettingsStore
from .storage.register_store import TABLE_VERSION

logger = logging.getLogger("rtu_poller")


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def signal_handler(sig, frame):
    """Treat SIGTERM like Ctrl+C: stop polling immediately."""
    raise KeyboardInterrupt


# ============================================================================
# Polling
# ============================================================================


async def poll(config: PollerConfig, count: Optional[int] = None, adapter=None):
    """Load both configuration files, open the line and poll."""
    descriptor = SettingsStore(config.settings_path).load()
    logger.info("Connection settings loaded")

    table = RegisterStore(config.registers_path).load()
    logger.info(f"Register table loaded ({len(table)} registers)")

    logger.info(f"Connection: {descriptor.describe()}")

    decoder = ValueDecoder()
    for reg in table.enabled():
        qty = 1 if reg.read_class.is_bit_access else decoder.words_needed(reg.value_type)
        logger.info(
            f"  {reg.name} (address {reg.address}, {reg.value_type.value}, "
            f"{reg.read_class.value}, count {qty})"
        )

    adapter = adapter or ModbusAdapter(read_timeout=config.read_timeout_sec)
    scheduler = await PollScheduler.start(
        adapter,
        descriptor,
        table,
        decoder=decoder,
        read_timeout=config.read_timeout_sec,
        interval=config.tick_interval_sec,
        statistics=PollStatistics(window=config.statistics_window),
    )

    logger.info("Press Ctrl+C to stop polling")
    try:
        await scheduler.run(max_ticks=count)
    finally:
        scheduler.close()


def cmd_poll(args, config: PollerConfig) -> int:
    if args.timeout is not None:
        config.read_timeout_sec = args.timeout
    if args.interval is not None:
        config.tick_interval_sec = args.interval
    config.validate()

    signal.signal(signal.SIGTERM, signal_handler)

    try:
        asyncio.run(poll(config, count=args.count))
    except KeyboardInterrupt:
        logger.info("Polling stopped")

    return 0


# ============================================================================
# Register table
# ============================================================================


def cmd_registers_show(args, config: PollerConfig) -> int:
    store = RegisterStore(config.registers_path)
    table = store.load()

    modified = datetime.datetime.fromtimestamp(store.path.stat().st_mtime)
    summary = table.summary()

    print(f"File:        {store.path}")
    print(f"Version:     {TABLE_VERSION}")
    print(f"Modified:    {modified.isoformat(timespec='seconds')}")
    print(
        f"Registers:   {summary['total']} total, {summary['enabled']} enabled, "
        f"{summary['disabled']} disabled"
    )

    if not len(table):
        print("\nNo registers defined")
        return 0

    print()
    print(table.format_table())
    return 0


def _row_fields(args) -> dict:
    return dict(
        name=args.name,
        description=args.description,
        address=args.address,
        value_type=args.type,
        read_class=args.read_class,
        enabled=args.enabled,
    )


def cmd_registers_add(args, config: PollerConfig) -> int:
    table = RegisterStore(config.registers_path).add(**_row_fields(args))
    print(f"Register '{table[-1].name}' added as #{len(table)}")
    return 0


def cmd_registers_edit(args, config: PollerConfig) -> int:
    table = RegisterStore(config.registers_path).update(args.position, **_row_fields(args))
    print(f"Register #{args.position} is now '{table[args.position - 1].name}'")
    return 0


def cmd_registers_delete(args, config: PollerConfig) -> int:
    removed = RegisterStore(config.registers_path).delete(args.position)
    if removed is None:
        print("Delete cancelled")
    else:
        print(f"Register '{removed.name}' (address {removed.address}) deleted")
    return 0


def cmd_registers_sort(args, config: PollerConfig) -> int:
    table = RegisterStore(config.registers_path).sort_by_address()
    print(f"{len(table)} registers sorted by address")
    return 0


def cmd_registers_init(args, config: PollerConfig) -> int:
    store = RegisterStore(config.registers_path)
    if store.create_empty():
        print(f"Created {store.path}")
    else:
        print(f"{store.path} already exists")
    return 0


# ============================================================================
# Connection settings
# ============================================================================


def cmd_settings_show(args, config: PollerConfig) -> int:
    descriptor, metadata = SettingsStore(config.settings_path).load_document()

    stop_bits = "1 stop bit" if descriptor.stop_bits == StopBits.ONE else "2 stop bits"

    print(f"Port:           {descriptor.port}")
    print(f"Device address: {descriptor.device_address}")
    print(f"Baud rate:      {int(descriptor.baud_rate)}")
    print(f"Parity:         {descriptor.parity.value}")
    print(f"Stop bits:      {stop_bits}")
    print()
    print(f"Version:        {metadata.version}")
    print(f"Description:    {metadata.description}")
    print(f"Last updated:   {metadata.last_updated}")
    return 0


def cmd_settings_set(args, config: PollerConfig) -> int:
    descriptor = ConnectionDescriptor(
        port=args.port,
        device_address=args.address,
        baud_rate=BaudRate(args.baud),
        parity=args.parity,
        stop_bits=StopBits(args.stop_bits),
    )
    SettingsStore(config.settings_path).save(descriptor)
    print(f"Saved: {descriptor.describe()}")
    return 0


def cmd_ports(args, config: PollerConfig) -> int:
    labels = list_available_ports() if args.names else describe_ports()
    if not labels:
        print("No serial ports found")
        return 0

    for label in labels:
        print(label)
    print(f"{len(labels)} port(s) found")
    return 0


# ============================================================================
# Argument parsing
# ============================================================================


def parse_parity(text: str) -> Parity:
    s = text.strip().lower()
    for parity in Parity:
        if s in (parity.value.lower(), parity.code.lower()):
            return parity
    raise argparse.ArgumentTypeError(f"invalid parity '{text}' (None, Even or Odd)")


def _add_row_arguments(parser: argparse.ArgumentParser):
    types = ", ".join(t.value for t in ValueType)
    classes = ", ".join(c.value for c in ReadClass)

    parser.add_argument("--name", required=True, help="Register name")
    parser.add_argument("--description", default="", help="Free text description")
    parser.add_argument("--address", required=True, help="Decimal address (0-65535)")
    parser.add_argument("--type", required=True, help=f"Value type ({types}) or 1-6")
    parser.add_argument(
        "--read-class", required=True, help=f"Read class ({classes}) or 1-4"
    )
    parser.add_argument("--enabled", default="true", help="Poll this register (yes/no)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rtu_poller", description="Modbus RTU register poller"
    )
    parser.add_argument("--registers", type=Path, help="Register table CSV file")
    parser.add_argument("--settings", type=Path, help="Connection settings JSON file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    # poll
    p = commands.add_parser("poll", help="Poll the enabled registers")
    p.add_argument("--count", type=int, default=None, help="Stop after N ticks")
    p.add_argument("--timeout", type=float, default=None, help="Read timeout [seconds]")
    p.add_argument("--interval", type=float, default=None, help="Tick interval [seconds]")
    p.set_defaults(func=cmd_poll)

    # registers
    reg = commands.add_parser("registers", help="Manage the register table")
    reg_cmds = reg.add_subparsers(dest="action", required=True)

    p = reg_cmds.add_parser("show", help="List registers")
    p.set_defaults(func=cmd_registers_show)

    p = reg_cmds.add_parser("add", help="Append a register")
    _add_row_arguments(p)
    p.set_defaults(func=cmd_registers_add)

    p = reg_cmds.add_parser("edit", help="Replace a register by position")
    p.add_argument("position", type=int, help="1-based position")
    _add_row_arguments(p)
    p.set_defaults(func=cmd_registers_edit)

    p = reg_cmds.add_parser("delete", help="Delete a register by position")
    p.add_argument("position", type=int, help="1-based position, 0 to cancel")
    p.set_defaults(func=cmd_registers_delete)

    p = reg_cmds.add_parser("sort", help="Sort registers by address")
    p.set_defaults(func=cmd_registers_sort)

    p = reg_cmds.add_parser("init", help="Create an empty register table")
    p.set_defaults(func=cmd_registers_init)

    # settings
    st = commands.add_parser("settings", help="Manage connection settings")
    st_cmds = st.add_subparsers(dest="action", required=True)

    p = st_cmds.add_parser("show", help="Show connection settings")
    p.set_defaults(func=cmd_settings_show)

    p = st_cmds.add_parser("set", help="Overwrite connection settings")
    p.add_argument("--port", required=True, help="Serial device (COM3, /dev/ttyUSB0)")
    p.add_argument("--address", type=int, required=True, help="Device address (1-240)")
    p.add_argument(
        "--baud",
        type=int,
        default=9600,
        choices=[int(b) for b in BaudRate],
        help="Baud rate",
    )
    p.add_argument("--parity", type=parse_parity, default=Parity.NONE, help="None, Even or Odd")
    p.add_argument("--stop-bits", type=int, default=1, choices=[1, 2], help="Stop bits")
    p.set_defaults(func=cmd_settings_set)

    # ports
    p = commands.add_parser("ports", help="List serial ports")
    p.add_argument("--names", action="store_true", help="Print device names only")
    p.set_defaults(func=cmd_ports)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    config = PollerConfig.from_env()
    if args.registers is not None:
        config.registers_path = args.registers
    if args.settings is not None:
        config.settings_path = args.settings

    try:
        return args.func(args, config)

    except ValidationError as e:
        logger.error(f"Rejected, invalid {e.field}: {e}")
    except ConfigFormatError as e:
        logger.error(f"Malformed configuration file: {e}")
    except PollSetupError as e:
        logger.error(f"{e}. Enable at least one register in {config.registers_path}")
    except ConnectionError as e:
        logger.error(f"Connection failed: {e}")
    except FileNotFoundError as e:
        logger.error(f"File not found: {e.filename}")
    except OSError as e:
        logger.error(f"I/O error: {e}")
    except ValueError as e:
        logger.error(f"Invalid value: {e}")

    return 1


if __name__ == "__main__":
    sys.exit(main())
