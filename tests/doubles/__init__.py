"""Test doubles for the register poller."""

from .fake_session import HANG, FakeAdapter, FakeSession

__all__ = ["HANG", "FakeAdapter", "FakeSession"]
