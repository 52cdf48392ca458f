"""Test doubles for vncslots collaborators."""

from tests.fakes.fake_launcher import FakeLauncher

__all__ = ["FakeLauncher"]
