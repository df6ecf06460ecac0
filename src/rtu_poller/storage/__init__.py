"""
Configuration Storage Package
=============================

File-backed persistence for the poller.

Components:
- register_store.py: Register table (CSV)
- settings_store.py: Connection settings (JSON)
- files.py: Whole-file replace shared by both stores

Each load or save is a short, self-contained file operation. Nothing is
held open while polling.
"""

from .register_store import RegisterStore
from .settings_store import SettingsMetadata, SettingsStore

__all__ = [
    "RegisterStore",
    "SettingsMetadata",
    "SettingsStore",
]
