"""Tests for the reelindex command line."""

from unittest.mock import AsyncMock

import pytest
from typer.testing import CliRunner

from reelindex.cli import app
from reelindex.cli import maintenance
from reelindex.events.bus import InMemoryEventBus

runner = CliRunner()


class TestCliHelp:
    @pytest.mark.parametrize(
        "command", ["serve", "listener", "worker", "scheduler", "reindex", "cleanup"]
    )
    def test_subcommand_help(self, command: str) -> None:
        result = runner.invoke(app, [command, "--help"])

        assert result.exit_code == 0
        assert "Usage" in result.output

    def test_top_level_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("serve", "worker", "reindex", "cleanup"):
            assert command in result.output


class TestReindexCommand:
    @pytest.fixture(autouse=True)
    def no_shutdown(self, monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
        shutdown = AsyncMock()
        monkeypatch.setattr(maintenance, "shutdown", shutdown)
        monkeypatch.setattr(maintenance, "configure_logging", lambda **kwargs: None)
        return shutdown

    def test_publishes_request(self, monkeypatch: pytest.MonkeyPatch, no_shutdown: AsyncMock) -> None:
        """Without --inline the command only publishes a reindex event."""
        bus = InMemoryEventBus()
        monkeypatch.setattr(maintenance, "get_event_bus", lambda: bus)

        result = runner.invoke(app, ["reindex"])

        assert result.exit_code == 0
        assert "Reindex requested" in result.output
        assert bus.pending_count == 1
        no_shutdown.assert_awaited_once()

    def test_publish_failure_exits_nonzero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        broken = AsyncMock()
        broken.publish.side_effect = ConnectionError("down")
        monkeypatch.setattr(maintenance, "get_event_bus", lambda: broken)

        result = runner.invoke(app, ["reindex"])

        assert result.exit_code == 1
