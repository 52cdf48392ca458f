"""Unit tests for signal-driven teardown."""

import signal
from unittest.mock import MagicMock, patch

import pytest

from vncslots.core.signals import (
    CleanupInstanceManager,
    get_cleanup_instance,
    set_cleanup_instance,
    setup_signal_handlers,
)


@pytest.fixture(autouse=True)
def reset_cleanup_instance():
    """Ensure no cleanup instance leaks between tests."""
    yield
    set_cleanup_instance(None)


class TestCleanupInstanceManager:
    """Test cleanup instance bookkeeping."""

    def test_set_and_get(self) -> None:
        manager = CleanupInstanceManager()
        instance = MagicMock()

        manager.set(instance)

        assert manager.get() is instance

    def test_cleanup_with_lock_calls_instance(self) -> None:
        manager = CleanupInstanceManager()
        instance = MagicMock()
        manager.set(instance)

        assert manager.cleanup_with_lock(signal.SIGTERM, None) is True

        instance._cleanup_resources.assert_called_once_with(signum=signal.SIGTERM, frame=None)

    def test_cleanup_with_lock_without_instance(self) -> None:
        assert CleanupInstanceManager().cleanup_with_lock(signal.SIGINT, None) is False


class TestSetupSignalHandlers:
    """Test SIGINT and SIGTERM routing."""

    def install(self) -> dict:
        handlers = {}
        with patch("signal.signal", side_effect=lambda sig, fn: handlers.__setitem__(sig, fn)):
            setup_signal_handlers()
        return handlers

    def test_registers_sigint_and_sigterm(self) -> None:
        handlers = self.install()

        assert set(handlers) == {signal.SIGINT, signal.SIGTERM}

    def test_handler_delegates_to_registered_instance(self) -> None:
        handlers = self.install()
        instance = MagicMock()
        set_cleanup_instance(instance)

        handlers[signal.SIGINT](signal.SIGINT, None)

        instance._cleanup_resources.assert_called_once_with(signum=signal.SIGINT, frame=None)

    @pytest.mark.parametrize(
        ("signum", "expected_code"),
        [(signal.SIGINT, 130), (signal.SIGTERM, 143)],
    )
    def test_handler_exits_when_nothing_is_running(
        self, signum: int, expected_code: int
    ) -> None:
        handlers = self.install()
        assert get_cleanup_instance() is None

        with pytest.raises(SystemExit) as exc_info:
            handlers[signum](signum, None)

        assert exc_info.value.code == expected_code
