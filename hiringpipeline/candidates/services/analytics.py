"""
Population-wide time-in-stage analytics.

Everything here reads candidate records and never writes. Reports are a best
effort as of the read time: candidates may be transitioned while a report is
being computed.
"""
import dataclasses
import logging
import math
import statistics
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from django.utils import timezone

from ..models import STATUS_HIRED
from .lifecycle import VALID_STATUSES, CandidateRecord
from .time_in_stage import (
    MS_PER_DAY,
    CandidateTimeAnalytics,
    compute_for_candidate,
    default_stuck_threshold_days,
)

logger = logging.getLogger('candidates')


def round1(value: float) -> float:
    """Rounds half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def median(values: Sequence[float]) -> float:
    return statistics.median(values)


@dataclass(frozen=True)
class BottleneckStage:
    status: str
    average_days: float
    median_days: float
    candidates_affected: int


@dataclass(frozen=True)
class StuckCandidate:
    candidate_id: str
    candidate_name: str
    status: str
    days_in_stage: int


@dataclass(frozen=True)
class FunnelStage:
    status: str
    candidate_count: int
    conversion_rate: float
    drop_off_rate: float
    average_days_in_stage: float


@dataclass(frozen=True)
class SystemWideTimeAnalytics:
    average_time_per_stage: Dict[str, float]
    median_time_per_stage: Dict[str, float]
    bottleneck_stages: List[BottleneckStage]
    stuck_candidates: List[StuckCandidate]
    conversion_funnel: List[FunnelStage]
    total_candidates: int
    average_time_to_hire: float
    total_status_changes: int
    stuck_threshold_days: float


def _analyze(candidate: CandidateRecord, now: datetime, threshold: float) -> Optional[CandidateTimeAnalytics]:
    """
    Per-candidate analytics that never raises: a ledger that cannot be read is
    treated as empty, and a candidate that still cannot be measured is skipped.
    """
    try:
        return compute_for_candidate(candidate, now=now, stuck_threshold_days=threshold)
    except (TypeError, ValueError, AttributeError):
        logger.warning(
            f"Unreadable status history for candidate {candidate.candidate_id}; counting it as empty",
            exc_info=True,
        )
    try:
        return compute_for_candidate(
            dataclasses.replace(candidate, status_history=()), now=now, stuck_threshold_days=threshold
        )
    except (TypeError, ValueError, AttributeError):
        logger.error(f"Skipping candidate {candidate.candidate_id} in analytics", exc_info=True)
        return None


def _stuck_entry(report: CandidateTimeAnalytics) -> StuckCandidate:
    return StuckCandidate(
        candidate_id=report.candidate_id,
        candidate_name=report.candidate_name,
        status=report.current_status,
        days_in_stage=report.days_in_current_stage,
    )


def compute_system_wide(
    candidates: Iterable[CandidateRecord],
    stuck_threshold_days: Optional[float] = None,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
) -> Optional[SystemWideTimeAnalytics]:
    """
    Aggregates stage durations across all given candidates.

    Returns None when `timeout` seconds pass before the report is complete;
    a partially computed report is never returned.
    """
    if now is None:
        now = timezone.now()
    if stuck_threshold_days is None:
        stuck_threshold_days = default_stuck_threshold_days()
    deadline = time.monotonic() + timeout if timeout is not None else None

    reports: List[CandidateTimeAnalytics] = []
    for candidate in candidates:
        if deadline is not None and time.monotonic() > deadline:
            logger.warning(f"System-wide analytics aborted after {timeout}s; no report produced")
            return None
        report = _analyze(candidate, now, stuck_threshold_days)
        if report is not None:
            reports.append(report)

    pools: Dict[str, List[float]] = defaultdict(list)
    for report in reports:
        for stage in report.stage_breakdown:
            pools[stage.status].append(stage.duration_days)

    average_time_per_stage: Dict[str, float] = {}
    median_time_per_stage: Dict[str, float] = {}
    for status, durations in pools.items():
        average_time_per_stage[status] = round1(statistics.mean(durations))
        median_time_per_stage[status] = median(durations)

    bottleneck_stages = sorted(
        (
            BottleneckStage(
                status=status,
                average_days=average,
                median_days=median_time_per_stage[status],
                candidates_affected=len(pools[status]),
            )
            for status, average in average_time_per_stage.items()
            if average > stuck_threshold_days / 2
        ),
        key=lambda stage: stage.average_days,
        reverse=True,
    )

    stuck_candidates = sorted(
        (_stuck_entry(report) for report in reports if report.is_stuck(stuck_threshold_days)),
        key=lambda stuck: stuck.days_in_stage,
        reverse=True,
    )

    total = len(reports)
    status_counts: Dict[str, int] = defaultdict(int)
    for report in reports:
        status_counts[report.current_status] += 1

    conversion_funnel: List[FunnelStage] = []
    for status in VALID_STATUSES:
        count = status_counts.get(status, 0)
        # Share of the current population sitting in this status, not a
        # stage-to-stage progression rate.
        conversion_rate = (count / total) * 100 if total > 0 else 0
        conversion_funnel.append(
            FunnelStage(
                status=status,
                candidate_count=count,
                conversion_rate=round1(conversion_rate),
                drop_off_rate=round1(100 - conversion_rate),
                average_days_in_stage=average_time_per_stage.get(status, 0),
            )
        )

    hired = [report for report in reports if report.current_status == STATUS_HIRED]
    average_time_to_hire = (
        round1(statistics.mean(report.total_time_in_process_days for report in hired)) if hired else 0
    )

    if deadline is not None and time.monotonic() > deadline:
        logger.warning(f"System-wide analytics aborted after {timeout}s; no report produced")
        return None

    return SystemWideTimeAnalytics(
        average_time_per_stage=average_time_per_stage,
        median_time_per_stage=median_time_per_stage,
        bottleneck_stages=bottleneck_stages,
        stuck_candidates=stuck_candidates,
        conversion_funnel=conversion_funnel,
        total_candidates=total,
        average_time_to_hire=average_time_to_hire,
        total_status_changes=sum(report.status_change_count for report in reports),
        stuck_threshold_days=stuck_threshold_days,
    )


def stuck_candidates_in_stage(
    status: str,
    candidates: Iterable[CandidateRecord],
    stuck_threshold_days: Optional[float] = None,
    now: Optional[datetime] = None,
) -> List[StuckCandidate]:
    """Candidates currently in `status` for longer than the threshold, longest first."""
    if now is None:
        now = timezone.now()
    if stuck_threshold_days is None:
        stuck_threshold_days = default_stuck_threshold_days()

    stuck: List[StuckCandidate] = []
    for candidate in candidates:
        if candidate.current_status != status:
            continue
        report = _analyze(candidate, now, stuck_threshold_days)
        if report is not None and report.is_stuck(stuck_threshold_days):
            stuck.append(_stuck_entry(report))
    return sorted(stuck, key=lambda entry: entry.days_in_stage, reverse=True)


def average_time_between(from_status: str, to_status: str, candidates: Iterable[CandidateRecord]) -> float:
    """
    Mean days from entering `from_status` to the next entry into `to_status`.

    Only the latest `from_status` before a `to_status` counts, and each
    `from_status` occurrence closes at most one interval.
    """
    durations: List[float] = []
    for candidate in candidates:
        from_time: Optional[datetime] = None
        for entry in candidate.status_history:
            if entry.new_status == from_status:
                from_time = entry.changed_at
            elif entry.new_status == to_status and from_time is not None:
                durations.append((entry.changed_at - from_time).total_seconds() * 1000 / MS_PER_DAY)
                from_time = None

    if not durations:
        return 0
    return round1(statistics.mean(durations))
