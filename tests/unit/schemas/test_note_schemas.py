"""Unit tests for remote note schemas and result types."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from notesync.schemas.note import NotePage, RemoteNote
from notesync.schemas.result import CycleReport, PushFailure


class TestRemoteNote:
    def test_bare_hour_offset_is_accepted(self):
        note = RemoteNote(
            id=1,
            title="t",
            description="d",
            created_at="2025-07-07 21:31:44.003364+00",
            updated_at="2025-07-07 21:31:44+03",
        )

        assert note.created_at == datetime(2025, 7, 7, 21, 31, 44, 3364)
        assert note.updated_at == datetime(2025, 7, 7, 18, 31, 44)

    def test_naive_timestamps_are_kept(self):
        note = RemoteNote(
            id=1, title="t", description="d",
            created_at="2025-07-07T10:00:00", updated_at="2025-07-07T10:00:00",
        )
        assert note.created_at == datetime(2025, 7, 7, 10, 0)

    def test_non_positive_id_is_rejected(self):
        with pytest.raises(ValidationError):
            RemoteNote(
                id=-5, title="t", description="d",
                created_at="2025-07-07T10:00:00", updated_at="2025-07-07T10:00:00",
            )

    def test_to_fields_matches_replica_columns(self):
        note = RemoteNote(
            id=1, title="t", description="d",
            created_at="2025-07-07T10:00:00", updated_at="2025-07-07T10:00:00",
            creator_name="Ada", creator_username="ada",
        )
        assert set(note.to_fields()) == {
            "id", "title", "description", "created_at", "updated_at",
            "creator_name", "creator_username",
        }


class TestNotePage:
    def test_defaults_for_empty_body(self):
        page = NotePage.model_validate({})
        assert page.results == []
        assert page.next is None


class TestCycleReport:
    def test_as_dict_counts_failures(self):
        report = CycleReport(pushed=1, push_failures=[PushFailure(2, "UPDATED", "500")])
        summary = report.as_dict()

        assert summary["pushed"] == 1
        assert summary["push_failures"] == 1
        assert summary["pull_skipped"] is False
