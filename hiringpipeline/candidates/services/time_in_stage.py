"""
Reconstructs how long a candidate spent in each stage from its status history.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from .lifecycle import CandidateRecord

MS_PER_DAY = 24 * 60 * 60 * 1000
MS_PER_HOUR = 60 * 60 * 1000

DEFAULT_STUCK_THRESHOLD_DAYS = 14


def default_stuck_threshold_days() -> float:
    return getattr(settings, "CANDIDATES_STUCK_THRESHOLD_DAYS", DEFAULT_STUCK_THRESHOLD_DAYS)


def to_ms(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


@dataclass(frozen=True)
class StageInterval:
    """Time spent in one stage; end_date is None for the stage the candidate is in now."""
    status: str
    start_date: datetime
    end_date: Optional[datetime]
    duration_ms: int

    @property
    def duration_days(self) -> float:
        return self.duration_ms / MS_PER_DAY


@dataclass(frozen=True)
class CandidateTimeAnalytics:
    candidate_id: str
    candidate_name: str
    current_status: str
    current_stage_start: datetime
    time_in_current_stage_ms: int
    process_start: datetime
    total_time_in_process_ms: int
    stage_breakdown: List[StageInterval]
    status_change_count: int
    stuck_threshold_days: float

    @property
    def time_in_current_stage_days(self) -> float:
        return self.time_in_current_stage_ms / MS_PER_DAY

    @property
    def days_in_current_stage(self) -> int:
        return math.floor(self.time_in_current_stage_days)

    @property
    def hours_in_current_stage(self) -> int:
        return math.floor(self.time_in_current_stage_ms / MS_PER_HOUR)

    @property
    def total_time_in_process_days(self) -> float:
        return self.total_time_in_process_ms / MS_PER_DAY

    @property
    def days_in_process(self) -> int:
        return math.floor(self.total_time_in_process_days)

    def is_stuck(self, threshold_days: Optional[float] = None) -> bool:
        if threshold_days is None:
            threshold_days = self.stuck_threshold_days
        return self.time_in_current_stage_days > threshold_days

    @property
    def stuck(self) -> bool:
        return self.is_stuck()


def compute_for_candidate(
    candidate: CandidateRecord,
    now: Optional[datetime] = None,
    stuck_threshold_days: Optional[float] = None,
) -> CandidateTimeAnalytics:
    """
    Splits the candidate's history into consecutive stage intervals.

    Entry i opens the stage entry[i].new_status at entry[i].changed_at, and the
    next entry closes it. The last stage stays open until `now`. Without any
    history the candidate counts as sitting in its current status since it
    was created.
    """
    if now is None:
        now = timezone.now()
    if stuck_threshold_days is None:
        stuck_threshold_days = default_stuck_threshold_days()

    history = candidate.status_history
    breakdown: List[StageInterval] = []

    if not history:
        elapsed = to_ms(now - candidate.date_created)
        return CandidateTimeAnalytics(
            candidate_id=candidate.candidate_id,
            candidate_name=candidate.name,
            current_status=candidate.current_status,
            current_stage_start=candidate.date_created,
            time_in_current_stage_ms=elapsed,
            process_start=candidate.date_created,
            total_time_in_process_ms=elapsed,
            stage_breakdown=breakdown,
            status_change_count=0,
            stuck_threshold_days=stuck_threshold_days,
        )

    for index, entry in enumerate(history):
        following = history[index + 1] if index + 1 < len(history) else None
        end_date = following.changed_at if following else None
        breakdown.append(
            StageInterval(
                status=entry.new_status,
                start_date=entry.changed_at,
                end_date=end_date,
                duration_ms=to_ms((end_date or now) - entry.changed_at),
            )
        )

    first, last = history[0], history[-1]
    return CandidateTimeAnalytics(
        candidate_id=candidate.candidate_id,
        candidate_name=candidate.name,
        current_status=candidate.current_status,
        current_stage_start=last.changed_at,
        time_in_current_stage_ms=to_ms(now - last.changed_at),
        process_start=first.changed_at,
        total_time_in_process_ms=to_ms(now - first.changed_at),
        stage_breakdown=breakdown,
        status_change_count=len(history),
        stuck_threshold_days=stuck_threshold_days,
    )
