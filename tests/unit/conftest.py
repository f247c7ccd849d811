"""
Unit Test Fixtures.

Fixtures for unit tests - the replica and the remote service are mocked.
Unit tests should be fast and isolated, never touching real databases.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from notesync.schemas.result import CycleReport


@pytest.fixture
def mock_engine() -> MagicMock:
    """
    Mock reconciliation engine whose cycles succeed with an empty report.

    Usage:
        def test_cycle(mock_engine):
            mock_engine.run_cycle.side_effect = PullFailedError("down")
    """
    engine = MagicMock()
    engine.run_cycle = AsyncMock(return_value=CycleReport())
    return engine


@pytest.fixture
def mock_port() -> MagicMock:
    """Mock scheduling port that records run_now / run_periodic calls."""
    port = MagicMock()
    port.run_periodic.return_value = True
    port.shutdown = AsyncMock()
    return port
