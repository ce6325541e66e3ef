from types import SimpleNamespace

import pytest

from academics.stats import attended_percentage, recompute_aggregates, round_half_up


def test_counts_partition_the_roster():
    counts = recompute_aggregates(["present", "late", "absent", "absent"])
    assert counts.total_students == 4
    assert counts.present_count + counts.absent_count + counts.late_count == counts.total_students
    # late counts as attended: (1 + 1) / 4
    assert counts.attendance_percentage == 50


def test_empty_session_has_zero_percentage():
    counts = recompute_aggregates([])
    assert counts.total_students == 0
    assert counts.attendance_percentage == 0


def test_accepts_record_like_objects():
    recs = [SimpleNamespace(status="present"), SimpleNamespace(status="present"), SimpleNamespace(status="absent")]
    counts = recompute_aggregates(recs)
    assert counts.present_count == 2
    assert counts.attendance_percentage == 67


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError):
        recompute_aggregates(["present", "excused"])


def test_half_values_round_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(62.5) == 63
    assert attended_percentage(1, 8) == 13
    assert attended_percentage(3, 4, places=2) == 75.0
    assert attended_percentage(0, 0, places=2) == 0.0
