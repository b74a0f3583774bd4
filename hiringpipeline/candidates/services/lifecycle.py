"""
Plain data model of the candidate status lifecycle: the status history entry,
the candidate record the analytics read, and the ledger rules
(ordering, 50-entry cap) shared by every candidate store.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Tuple

from django.core.exceptions import ValidationError

from ..models import STATUS_APPLIED, STATUS_CHOICES, SOURCE_CHOICES

MAX_STATUS_HISTORY = 50

VALID_STATUSES: Tuple[str, ...] = tuple(value for value, _ in STATUS_CHOICES)
VALID_SOURCES: Tuple[str, ...] = tuple(value for value, _ in SOURCE_CHOICES)

DEFAULT_STATUS = STATUS_APPLIED


@dataclass(frozen=True)
class Actor:
    """Who requested a status change: a recruiter or an automated process."""
    user_id: str
    email: str = ""
    name: str = ""


@dataclass(frozen=True)
class StatusHistoryEntry:
    new_status: str
    old_status: Optional[str]
    changed_at: datetime
    changed_by: str
    changed_by_email: str = ""
    changed_by_name: str = ""
    reason: str = ""
    notes: str = ""
    source: str = "manual"
    history_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_automated(self) -> bool:
        return self.source != "manual"


@dataclass(frozen=True)
class CandidateRecord:
    """
    Read-only view of a candidate: identity, creation date, current status and
    the ledger ordered oldest first.
    """
    candidate_id: str
    name: str
    date_created: datetime
    current_status: str = DEFAULT_STATUS
    status_history: Tuple[StatusHistoryEntry, ...] = ()
    is_deleted: bool = False


def validate_status(status: Optional[str]) -> str:
    if status not in VALID_STATUSES:
        raise ValidationError(f"Invalid status '{status}'.")
    return status


def validate_source(source: Optional[str]) -> str:
    if source not in VALID_SOURCES:
        raise ValidationError(f"Invalid status change source '{source}'.")
    return source


def trim_history(entries: Iterable[StatusHistoryEntry]) -> Tuple[StatusHistoryEntry, ...]:
    """Keeps only the newest MAX_STATUS_HISTORY entries, oldest first."""
    return tuple(entries)[-MAX_STATUS_HISTORY:]


def append_to_history(
    entries: Iterable[StatusHistoryEntry], entry: StatusHistoryEntry
) -> Tuple[StatusHistoryEntry, ...]:
    return trim_history((*entries, entry))
