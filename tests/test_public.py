"""
Tests for the public letter lookup and its timeline.
"""

from __future__ import annotations

from datetime import date

import pytest

from sitrack.tracking.public import (
    current_location, estimated_completion, find_report, timeline, tracking_result,
)
from sitrack.tracking.types import AssignmentStatus

from conftest import assignment

TODAY = date(2025, 1, 20)


class TestFindReport:
    def test_matches_number_case_insensitive(self, make_report) -> None:
        reports = [make_report("RPT001", no_surat="001/SDM/2025"), make_report("RPT002", no_surat="002/KEU/2025")]
        assert find_report(reports, "keu").id == "RPT002"

    def test_matches_subject_and_id(self, make_report) -> None:
        reports = [make_report("RPT001", hal="Perpanjangan Kontrak PPPK")]
        assert find_report(reports, "kontrak").id == "RPT001"
        assert find_report(reports, "RPT001").id == "RPT001"

    def test_blank_query_finds_nothing(self, make_report) -> None:
        assert find_report([make_report()], "   ") is None


class TestTimeline:
    @pytest.mark.parametrize("progress,location", [
        (0, "Tata Usaha"), (25, "Koordinator"), (50, "Staff Pelaksana"),
        (75, "Unit Pelayanan"), (100, "Selesai - Siap Diambil"),
    ])
    def test_current_location(self, progress: int, location: str) -> None:
        assert current_location(progress) == location

    def test_estimated_completion(self) -> None:
        assert estimated_completion(100, TODAY) == "Sudah Selesai"
        assert estimated_completion(50, TODAY) == "23/1/2025"

    def test_half_done_report(self, make_report) -> None:
        r = make_report(assignments=[
            assignment("a", AssignmentStatus.COMPLETED, notes="Cek SK"),
            assignment("b", staff="Andi"),
        ])
        steps = timeline(r.evolve(progress=50), TODAY)
        assert [s["status"] for s in steps] == ["completed", "completed", "completed", "in-progress", "pending"]
        assert steps[0]["date"] == "13/1/2025"
        assert steps[3]["date"] is None
        assert steps[2]["notes"] == "Cek SK"

    def test_result_uses_derived_progress(self, make_report) -> None:
        r = make_report(progress=90, assignments=[assignment("a", AssignmentStatus.COMPLETED)])
        out = tracking_result(r, TODAY)
        assert out["progress"] == 100
        assert out["status"] == "Selesai"
        assert out["currentLocation"] == "Selesai - Siap Diambil"
        assert all(s["status"] == "completed" for s in out["timeline"])
