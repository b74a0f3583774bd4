"""
Candidate store used by the status lifecycle.

The store owns the only write path into a candidate's status history:
compare_and_swap_status() updates the status and appends the ledger entry as
one indivisible step, or changes nothing at all.
"""
import logging
import uuid
from typing import Iterator, List, Optional, Protocol

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from ..models import Candidate, StatusHistory
from .errors import StorageFailure
from .lifecycle import MAX_STATUS_HISTORY, CandidateRecord, StatusHistoryEntry

logger = logging.getLogger('candidates')


class CandidateStore(Protocol):
    def find_by_id(self, candidate_id: str) -> Optional[CandidateRecord]:
        ...

    def find_all(self, active_only: bool = True) -> List[CandidateRecord]:
        ...

    def compare_and_swap_status(
        self,
        candidate_id: str,
        expected_status: str,
        new_entry: StatusHistoryEntry,
        new_status: str,
    ) -> bool:
        ...


def entry_from_model(row: StatusHistory) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        history_id=str(row.history_id),
        old_status=row.old_status,
        new_status=row.new_status,
        changed_at=row.changed_at,
        changed_by=row.changed_by,
        changed_by_email=row.changed_by_email,
        changed_by_name=row.changed_by_name,
        reason=row.reason,
        notes=row.notes,
        source=row.source,
    )


def record_from_model(candidate: Candidate) -> CandidateRecord:
    # status_history is prefetched by the store queries; sort in Python to keep
    # the prefetch cache usable.
    rows = sorted(candidate.status_history.all(), key=lambda row: (row.changed_at, row.id))
    return CandidateRecord(
        candidate_id=str(candidate.candidate_id),
        name=candidate.name,
        date_created=candidate.date_created,
        current_status=candidate.current_status,
        status_history=tuple(entry_from_model(row) for row in rows),
        is_deleted=candidate.is_deleted,
    )


class DjangoCandidateStore:
    """
    CandidateStore backed by the Candidate and StatusHistory tables.
    Soft-deleted candidates are invisible to find_by_id and cannot be transitioned.
    """

    def find_by_id(self, candidate_id: str) -> Optional[CandidateRecord]:
        try:
            candidate = (
                Candidate.objects.filter(pk=candidate_id, is_deleted=False)
                .prefetch_related('status_history')
                .first()
            )
        except (ValidationError, ValueError):
            return None
        except DatabaseError as e:
            raise StorageFailure(f"Could not load candidate {candidate_id}") from e

        if candidate is None:
            return None
        return record_from_model(candidate)

    def find_all(self, active_only: bool = True) -> List[CandidateRecord]:
        return list(self.iter_all(active_only=active_only))

    def iter_all(self, active_only: bool = True, chunk_size: int = 200) -> Iterator[CandidateRecord]:
        """
        Yields candidates lazily, one chunk of rows (with their history) per query.
        """
        queryset = Candidate.objects.prefetch_related('status_history').order_by('date_created')
        if active_only:
            queryset = queryset.filter(is_deleted=False)
        try:
            for candidate in queryset.iterator(chunk_size=chunk_size):
                yield record_from_model(candidate)
        except DatabaseError as e:
            raise StorageFailure("Could not load candidates") from e

    def compare_and_swap_status(
        self,
        candidate_id: str,
        expected_status: str,
        new_entry: StatusHistoryEntry,
        new_status: str,
    ) -> bool:
        try:
            candidate_id = str(uuid.UUID(str(candidate_id)))
        except ValueError:
            return False

        try:
            with transaction.atomic():
                # The conditional UPDATE is the compare-and-swap: it locks the
                # candidate row until commit, so a concurrent writer expecting
                # the same status re-evaluates the filter and matches nothing.
                matched = Candidate.objects.filter(
                    pk=candidate_id,
                    current_status=expected_status,
                    is_deleted=False,
                ).update(current_status=new_status)

                if not matched:
                    return False

                latest = (
                    StatusHistory.objects.filter(candidate_id=candidate_id)
                    .order_by('-changed_at', '-id')
                    .values_list('changed_at', flat=True)
                    .first()
                )
                changed_at = new_entry.changed_at
                if latest is not None and changed_at < latest:
                    changed_at = latest

                StatusHistory.objects.create(
                    candidate_id=candidate_id,
                    history_id=new_entry.history_id,
                    old_status=new_entry.old_status,
                    new_status=new_entry.new_status,
                    changed_at=changed_at,
                    changed_by=new_entry.changed_by,
                    changed_by_email=new_entry.changed_by_email,
                    changed_by_name=new_entry.changed_by_name,
                    reason=new_entry.reason,
                    notes=new_entry.notes,
                    source=new_entry.source,
                )

                stale_ids = list(
                    StatusHistory.objects.filter(candidate_id=candidate_id)
                    .order_by('-changed_at', '-id')
                    .values_list('id', flat=True)[MAX_STATUS_HISTORY:]
                )
                if stale_ids:
                    StatusHistory.objects.filter(id__in=stale_ids).delete()
                    logger.debug(
                        f"Pruned {len(stale_ids)} status history entries for candidate {candidate_id}"
                    )
                return True
        except DatabaseError as e:
            raise StorageFailure(f"Could not update status of candidate {candidate_id}") from e
