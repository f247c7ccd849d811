"""
Unit tests for the sync background task.

Tests task logic in isolation without requiring Redis. The engine factory
is patched so no replica or remote service is touched; broker registration
is tested against a mocked broker.
"""

from contextlib import asynccontextmanager
from unittest.mock import MagicMock, patch

import pytest

from notesync.core.exceptions import PullFailedError
from notesync.schemas.result import CycleReport
from notesync.tasks.sync import SCHEDULED_TASKS, register_tasks, sync_notes


def _patched_engine(engine):
    @asynccontextmanager
    async def factory():
        yield engine

    return patch("notesync.tasks.sync.engine_from_config", factory)


class TestSyncNotes:
    """Tests for the sync_notes task function."""

    @pytest.mark.asyncio
    async def test_returns_cycle_summary(self, mock_engine):
        mock_engine.run_cycle.return_value = CycleReport(had_pending_changes=True, pushed=3, pull_skipped=True)

        with _patched_engine(mock_engine):
            result = await sync_notes()

        assert result["status"] == "completed"
        assert result["pushed"] == 3
        assert result["pull_skipped"] is True
        assert "completed_at" in result

    @pytest.mark.asyncio
    async def test_failure_is_reported_as_retry(self, mock_engine):
        mock_engine.run_cycle.side_effect = PullFailedError("Pull phase failed: offline")

        with _patched_engine(mock_engine):
            result = await sync_notes()

        assert result["status"] == "retry"
        assert result["error_type"] == "PullFailedError"
        assert "offline" in result["error"]


class TestScheduleConfiguration:
    """Tests for the cron schedule metadata."""

    def test_sync_notes_runs_every_minute(self):
        config = SCHEDULED_TASKS["sync_notes"]
        assert config["function"] is sync_notes
        assert config["schedule"] == [{"cron": "* * * * *"}]

    def test_register_tasks_wraps_with_broker(self):
        broker = MagicMock()
        decorator = MagicMock(side_effect=lambda fn: f"task:{fn.__name__}")
        broker.task.return_value = decorator

        with patch("notesync.tasks.broker.get_broker", return_value=broker):
            registered = register_tasks()

        assert registered == {"sync_notes": "task:sync_notes"}
        broker.task.assert_called_once_with(
            task_name="sync_notes",
            schedule=[{"cron": "* * * * *"}],
            retry_on_error=False,
        )


class TestBrokerConfiguration:
    """Tests for broker construction and Redis URL resolution."""

    def test_worker_broker_has_sync_task(self, monkeypatch):
        from taskiq import InMemoryBroker

        from notesync.tasks import broker as broker_module

        monkeypatch.setattr(broker_module, "_broker", None)
        monkeypatch.setattr(broker_module, "create_broker", InMemoryBroker)

        broker = broker_module.broker

        assert "sync_notes" in broker.get_all_tasks()

    def test_broker_is_built_once(self, monkeypatch):
        from taskiq import InMemoryBroker

        from notesync.tasks import broker as broker_module

        create = MagicMock(side_effect=InMemoryBroker)
        monkeypatch.setattr(broker_module, "_broker", None)
        monkeypatch.setattr(broker_module, "create_broker", create)

        assert broker_module.get_broker() is broker_module.get_broker()
        create.assert_called_once_with()

    def test_redis_url_from_environment(self, monkeypatch):
        from notesync.tasks.broker import get_redis_url

        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
        assert get_redis_url() == "redis://localhost:6379/0"

    def test_missing_redis_url_raises(self, monkeypatch):
        from notesync.tasks.broker import get_redis_url

        monkeypatch.delenv("REDIS_URL", raising=False)
        settings = MagicMock(redis_url=None)
        with patch("notesync.core.config.get_settings", return_value=settings):
            with pytest.raises(RuntimeError, match="REDIS_URL not configured"):
                get_redis_url()
