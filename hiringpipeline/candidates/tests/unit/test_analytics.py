import itertools
from datetime import timedelta

import pytest

from candidates.services import analytics
from candidates.services.analytics import (
    average_time_between,
    compute_system_wide,
    median,
    round1,
    stuck_candidates_in_stage,
)
from candidates.services.lifecycle import CandidateRecord, StatusHistoryEntry
from candidates.tests.fakes import T0, candidate, days

NOW = T0 + days(60)


def with_reference_check(candidate_id, check_days, current="offer"):
    """Applied at T0, reference check for `check_days`, then moved to `current`."""
    return candidate(candidate_id, [
        ("applied", T0),
        ("reference_check", T0 + days(1)),
        (current, T0 + days(1 + check_days)),
    ])


def test_median_even_and_odd_pools():
    assert median([2, 4, 6, 8]) == 5
    assert median([3, 5, 9]) == 5
    assert median([9, 3, 5]) == 5


def test_round1_rounds_half_up():
    assert round1(2.25) == 2.3
    assert round1(7.04) == 7.0
    assert round1(0) == 0


class TestSystemWideAnalytics:
    """
    Tests population-wide aggregation over a fixed set of candidate ledgers.
    """

    def setup_method(self, method):
        self.candidates = [
            with_reference_check("a", 2),
            with_reference_check("b", 4),
            with_reference_check("c", 6),
            with_reference_check("d", 8, current="hired"),
        ]

    def test_per_stage_average_and_median(self):
        report = compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW)

        assert report.average_time_per_stage["reference_check"] == 5.0
        assert report.median_time_per_stage["reference_check"] == 5
        assert report.average_time_per_stage["applied"] == 1.0

    def test_bottlenecks_exceed_half_the_threshold(self):
        report = compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW)

        # offer/hired are open stages lasting weeks; reference_check averages 5 days.
        statuses = [b.status for b in report.bottleneck_stages]
        assert "reference_check" not in statuses
        assert "applied" not in statuses
        averages = [b.average_days for b in report.bottleneck_stages]
        assert averages == sorted(averages, reverse=True)

        report = compute_system_wide(self.candidates, stuck_threshold_days=8, now=NOW)
        check = next(b for b in report.bottleneck_stages if b.status == "reference_check")
        assert check.average_days == 5.0
        assert check.median_days == 5
        assert check.candidates_affected == 4

    def test_stuck_candidates_sorted_by_days(self):
        report = compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW)

        assert [s.candidate_id for s in report.stuck_candidates] == ["a", "b", "c", "d"]
        assert [s.days_in_stage for s in report.stuck_candidates] == [57, 55, 53, 51]
        assert report.stuck_candidates[0].status == "offer"

        report = compute_system_wide(self.candidates, stuck_threshold_days=56, now=NOW)
        assert [s.candidate_id for s in report.stuck_candidates] == ["a"]

    def test_conversion_funnel_is_population_share(self):
        report = compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW)

        funnel = {stage.status: stage for stage in report.conversion_funnel}
        assert [stage.status for stage in report.conversion_funnel] == [
            "applied", "reference_check", "offer", "hired", "rejected", "withdrawn",
        ]
        assert funnel["offer"].candidate_count == 3
        assert funnel["offer"].conversion_rate == 75.0
        assert funnel["offer"].drop_off_rate == 25.0
        assert funnel["hired"].conversion_rate == 25.0
        assert funnel["rejected"].candidate_count == 0
        assert funnel["rejected"].average_days_in_stage == 0
        assert funnel["reference_check"].average_days_in_stage == 5.0

    def test_conversion_rates_sum_to_one_hundred(self):
        population = self.candidates + [
            candidate("e", [("applied", T0)]),
            candidate("f", [("applied", T0), ("withdrawn", T0 + days(2))]),
            candidate("g", [("applied", T0), ("rejected", T0 + days(3))]),
        ]

        report = compute_system_wide(population, stuck_threshold_days=14, now=NOW)

        assert sum(s.conversion_rate for s in report.conversion_funnel) == pytest.approx(100, abs=0.5)

    def test_time_to_hire_and_totals(self):
        report = compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW)

        # The only hired candidate entered the process at T0.
        assert report.average_time_to_hire == 60.0
        assert report.total_candidates == 4
        assert report.total_status_changes == 12
        assert report.stuck_threshold_days == 14

    def test_time_to_hire_is_zero_without_hires(self):
        report = compute_system_wide(self.candidates[:3], stuck_threshold_days=14, now=NOW)

        assert report.average_time_to_hire == 0

    def test_empty_population(self):
        report = compute_system_wide([], stuck_threshold_days=14, now=NOW)

        assert report.total_candidates == 0
        assert report.average_time_per_stage == {}
        assert report.bottleneck_stages == []
        assert all(stage.conversion_rate == 0 for stage in report.conversion_funnel)

    def test_candidate_without_history_counts_from_creation(self):
        fresh = candidate("new", date_created=NOW - days(20))

        report = compute_system_wide([fresh], stuck_threshold_days=14, now=NOW)

        assert report.total_candidates == 1
        assert report.total_status_changes == 0
        assert report.average_time_per_stage == {}
        assert [s.days_in_stage for s in report.stuck_candidates] == [20]

    def test_malformed_ledger_degrades_instead_of_aborting(self):
        broken = CandidateRecord(
            candidate_id="broken",
            name="Broken Ledger",
            date_created=NOW - days(1),
            current_status="offer",
            status_history=(
                StatusHistoryEntry(new_status="offer", old_status=None, changed_at=None, changed_by="x"),
            ),
        )

        report = compute_system_wide(self.candidates + [broken], stuck_threshold_days=14, now=NOW)

        assert report.total_candidates == 5
        assert report.average_time_per_stage["reference_check"] == 5.0

    def test_timeout_returns_nothing(self, monkeypatch):
        ticks = itertools.count(start=0, step=10)
        monkeypatch.setattr(analytics.time, "monotonic", lambda: next(ticks))

        assert compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW, timeout=5) is None

    def test_generous_timeout_produces_report(self):
        report = compute_system_wide(self.candidates, stuck_threshold_days=14, now=NOW, timeout=60)

        assert report is not None
        assert report.total_candidates == 4


def test_stuck_candidates_in_stage_filters_by_current_status():
    population = [
        candidate("a", [("applied", T0), ("offer", T0 + days(1))]),
        candidate("b", [("applied", T0), ("offer", T0 + days(30))]),
        candidate("c", [("applied", T0)]),
    ]

    stuck = stuck_candidates_in_stage("offer", population, stuck_threshold_days=14, now=NOW)

    assert [(s.candidate_id, s.days_in_stage) for s in stuck] == [("a", 59), ("b", 30)]
    assert stuck_candidates_in_stage("offer", population, stuck_threshold_days=40, now=NOW)[0].candidate_id == "a"
    assert stuck_candidates_in_stage("hired", population, now=NOW) == []


class TestAverageTimeBetween:
    """
    Tests pairing of from/to status occurrences across ledgers.
    """

    def test_each_from_status_pairs_with_the_next_to_status(self):
        t1, t2, t3 = T0 + days(2), T0 + days(5), T0 + days(9)
        record = candidate("c1", [("applied", T0), ("offer", t1), ("applied", t2), ("offer", t3)])

        # applied@T0 -> offer@t1 pairs first, then applied@t2 -> offer@t3.
        assert average_time_between("applied", "offer", [record]) == 3.0

    def test_superseded_from_status_is_not_paired(self):
        t1, t2, t3 = T0 + days(2), T0 + days(5), T0 + days(9)
        record = candidate("c1", [("applied", T0), ("reference_check", t1), ("applied", t2), ("offer", t3)])

        assert average_time_between("applied", "offer", [record]) == 4.0

    def test_to_status_without_preceding_from_is_ignored(self):
        record = candidate("c1", [("offer", T0), ("applied", T0 + days(1)), ("offer", T0 + days(4))])

        assert average_time_between("applied", "offer", [record]) == 3.0

    def test_one_from_occurrence_closes_one_interval(self):
        record = candidate("c1", [("applied", T0), ("offer", T0 + days(2)), ("offer", T0 + days(6))])

        assert average_time_between("applied", "offer", [record]) == 2.0

    def test_average_across_candidates_is_rounded(self):
        population = [
            candidate("a", [("applied", T0), ("hired", T0 + days(10))]),
            candidate("b", [("applied", T0), ("hired", T0 + timedelta(days=11, hours=6))]),
            candidate("c", [("applied", T0), ("rejected", T0 + days(1))]),
        ]

        assert average_time_between("applied", "hired", population) == 10.6

    def test_no_pairs_gives_zero(self):
        record = candidate("c1", [("applied", T0), ("rejected", T0 + days(1))])

        assert average_time_between("applied", "hired", [record]) == 0
        assert average_time_between("applied", "hired", []) == 0
