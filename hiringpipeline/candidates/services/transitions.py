"""
Business logic for committing candidate status transitions.

A transition is a compare-and-swap against the status the caller last saw:
when another writer got there first the transition reports a conflict and
changes nothing. Conflicts are never retried here, the caller has to re-read
the candidate and decide again.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from .errors import CandidateNotFound, ConcurrencyConflict
from .events import AsyncEventDispatcher, AuditLogEventSink, StatusChangedEvent
from .lifecycle import Actor, StatusHistoryEntry, validate_source, validate_status
from .stores import CandidateStore, DjangoCandidateStore

logger = logging.getLogger('candidates')

COMMITTED = "committed"
CONFLICT = "conflict"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TransitionResult:
    outcome: str
    candidate_id: str
    expected_status: str
    new_status: str
    entry: Optional[StatusHistoryEntry] = None
    current_status: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.outcome == COMMITTED

    def raise_for_outcome(self) -> "TransitionResult":
        if self.outcome == NOT_FOUND:
            raise CandidateNotFound(self.candidate_id)
        if self.outcome == CONFLICT:
            raise ConcurrencyConflict(self.candidate_id, self.expected_status, self.current_status)
        return self


class TransitionCoordinator:
    """
    Validates and atomically commits single status changes, then signals a
    StatusChangedEvent for audit/notification consumers.
    """

    def __init__(
        self,
        store: CandidateStore,
        dispatcher: Optional[AsyncEventDispatcher] = None,
        clock: Callable = timezone.now,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    def transition(
        self,
        candidate_id: str,
        expected_current_status: str,
        new_status: str,
        actor: Actor,
        reason: str = "",
        notes: str = "",
        source: str = "manual",
    ) -> TransitionResult:
        validate_status(expected_current_status)
        validate_status(new_status)
        validate_source(source)
        if actor is None or not str(actor.user_id or "").strip():
            raise ValidationError("An actor identity is required to change a candidate status.")

        logger.debug(
            f"Transition attempt: {actor.user_id} from {expected_current_status} to {new_status} "
            f"for candidate {candidate_id}"
        )

        candidate = self.store.find_by_id(candidate_id)
        if candidate is None:
            logger.warning(f"Transition rejected: candidate {candidate_id} not found")
            return TransitionResult(NOT_FOUND, candidate_id, expected_current_status, new_status)

        entry = StatusHistoryEntry(
            old_status=expected_current_status,
            new_status=new_status,
            changed_at=self.clock(),
            changed_by=str(actor.user_id),
            changed_by_email=actor.email or "",
            changed_by_name=actor.name or "",
            reason=reason or "",
            notes=notes or "",
            source=source,
        )

        if not self.store.compare_and_swap_status(candidate_id, expected_current_status, entry, new_status):
            current = self.store.find_by_id(candidate_id)
            if current is None:
                logger.warning(f"Transition rejected: candidate {candidate_id} disappeared before commit")
                return TransitionResult(NOT_FOUND, candidate_id, expected_current_status, new_status)

            logger.warning(
                f"Concurrency conflict on candidate {candidate_id}: expected {expected_current_status}, "
                f"stored {current.current_status}. Requested by {actor.user_id}"
            )
            return TransitionResult(
                CONFLICT, candidate_id, expected_current_status, new_status,
                current_status=current.current_status,
            )

        logger.info(
            f"Transition Success: candidate {candidate_id} moved {expected_current_status} -> {new_status} "
            f"by {actor.user_id}"
        )

        if self.dispatcher is not None:
            self.dispatcher.dispatch(
                StatusChangedEvent(
                    candidate_id=candidate_id,
                    candidate_name=candidate.name,
                    old_status=expected_current_status,
                    new_status=new_status,
                    actor=actor,
                    changed_at=entry.changed_at,
                )
            )

        return TransitionResult(
            COMMITTED, candidate_id, expected_current_status, new_status,
            entry=entry, current_status=new_status,
        )


def build_default_coordinator() -> TransitionCoordinator:
    """Coordinator wired to the database store and the audit log sink."""
    dispatcher = AsyncEventDispatcher(
        AuditLogEventSink(),
        max_workers=getattr(settings, "CANDIDATES_EVENT_WORKERS", 2),
    )
    return TransitionCoordinator(DjangoCandidateStore(), dispatcher)
