"""
Poller Runtime Configuration
============================

File locations and timing for one run of the poller.

Precedence (highest first):
1. Command line flags
2. Environment variables (RTU_POLLER_REGISTERS, RTU_POLLER_SETTINGS)
3. Defaults below (files in the working directory)

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_REGISTERS_FILE = "tags.csv"
DEFAULT_SETTINGS_FILE = "connect_settings.json"

ENV_REGISTERS = "RTU_POLLER_REGISTERS"
ENV_SETTINGS = "RTU_POLLER_SETTINGS"


@dataclass
class PollerConfig:
    """Configuration for the poller."""

    registers_path: Path = field(default_factory=lambda: Path(DEFAULT_REGISTERS_FILE))
    settings_path: Path = field(default_factory=lambda: Path(DEFAULT_SETTINGS_FILE))

    # Timing
    read_timeout_sec: float = 1.0
    tick_interval_sec: float = 1.0

    # Reporting
    statistics_window: int = 100

    def validate(self):
        """Validate configuration values."""
        if self.read_timeout_sec <= 0:
            raise ValueError(f"Read timeout must be positive, got {self.read_timeout_sec}")
        if self.tick_interval_sec <= 0:
            raise ValueError(
                f"Tick interval must be positive, got {self.tick_interval_sec}"
            )
        if self.statistics_window <= 0:
            raise ValueError(
                f"Statistics window must be positive, got {self.statistics_window}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PollerConfig":
        """Defaults with file locations taken from the environment when set."""
        environ = os.environ if environ is None else environ
        config = cls()

        if environ.get(ENV_REGISTERS):
            config.registers_path = Path(environ[ENV_REGISTERS])
        if environ.get(ENV_SETTINGS):
            config.settings_path = Path(environ[ENV_SETTINGS])

        return config
