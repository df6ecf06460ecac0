"""Pytest configuration and fixtures for register poller tests."""

import sys
from pathlib import Path

# Add src/ and tests/ to the path so the package and doubles import uninstalled
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tests"))

import pytest

from rtu_poller.modbus.client import BaudRate, ConnectionDescriptor, Parity, StopBits
from rtu_poller.modbus.register_map import ReadClass, RegisterDefinition, ValueType
from rtu_poller.storage import RegisterStore, SettingsStore


def make_register(
    name="reg",
    address=0,
    value_type=ValueType.UINT16,
    read_class=ReadClass.HOLDING_REGISTER,
    enabled=True,
    description="",
):
    return RegisterDefinition(
        name=name,
        description=description,
        address=address,
        value_type=value_type,
        read_class=read_class,
        enabled=enabled,
    )


@pytest.fixture
def sample_registers():
    """A small mixed table, including a duplicate address."""
    return [
        make_register("voltage", 50, ValueType.FLOAT32, ReadClass.INPUT_REGISTER,
                      description="Line voltage; phase A"),
        make_register("status", 10, ValueType.UINT16, ReadClass.HOLDING_REGISTER),
        make_register("pump_on", 30, ValueType.BOOL, ReadClass.COIL, enabled=False),
        make_register("status_copy", 10, ValueType.INT16, ReadClass.HOLDING_REGISTER),
    ]


@pytest.fixture
def register_store(tmp_path):
    """Store backed by an empty table file."""
    store = RegisterStore(tmp_path / "tags.csv")
    store.create_empty()
    return store


@pytest.fixture
def settings_store(tmp_path):
    return SettingsStore(tmp_path / "connect_settings.json")


@pytest.fixture
def descriptor():
    return ConnectionDescriptor(
        port="/dev/ttyUSB0",
        device_address=17,
        baud_rate=BaudRate.B19200,
        parity=Parity.EVEN,
        stop_bits=StopBits.ONE,
    )
