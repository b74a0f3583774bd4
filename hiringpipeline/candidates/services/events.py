"""
"Status changed" events emitted after a committed transition.

Delivery is fire-and-forget: the dispatcher hands each event to a worker
thread, and a slow or failing sink is logged without ever reaching the caller
of the transition.
"""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Set

from django.contrib.auth import get_user_model
from django.db import connections

from ..models import AuditLog
from .lifecycle import Actor

logger = logging.getLogger('candidates')


@dataclass(frozen=True)
class StatusChangedEvent:
    candidate_id: str
    candidate_name: str
    old_status: Optional[str]
    new_status: str
    actor: Actor
    changed_at: datetime


def release_thread_connections() -> None:
    """
    Closes the database connections opened by the current thread.

    Worker threads never see the request_finished signal, so nothing else
    would close their connections. Connections inside an atomic block belong
    to a caller still using them and are left open.
    """
    for conn in connections.all(initialized_only=True):
        if not conn.in_atomic_block:
            conn.close()


class EventSink(Protocol):
    def handle(self, event: StatusChangedEvent) -> None:
        ...


class AuditLogEventSink:
    """
    Records every status change in the system-wide AuditLog.
    """
    verb = "candidate_status_changed"

    def handle(self, event: StatusChangedEvent) -> None:
        User = get_user_model()
        actor_user = None
        if event.actor.user_id and str(event.actor.user_id).isdigit():
            actor_user = User.objects.filter(pk=int(event.actor.user_id)).first()

        AuditLog.objects.create(
            actor=actor_user,
            verb=self.verb,
            target_type="Candidate",
            target_id=str(event.candidate_id),
            data={
                "candidate_name": event.candidate_name,
                "old_status": event.old_status,
                "new_status": event.new_status,
                "changed_by": event.actor.user_id,
                "changed_by_email": event.actor.email,
                "changed_at": event.changed_at.isoformat(),
            },
        )


class AsyncEventDispatcher:
    """
    Non-blocking hand-off of events to a sink.
    """

    def __init__(self, sink: EventSink, executor: Optional[Executor] = None, max_workers: int = 2) -> None:
        self.sink = sink
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="status-events"
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def dispatch(self, event: StatusChangedEvent) -> None:
        try:
            future = self._executor.submit(self._deliver, event)
        except RuntimeError:
            logger.error(
                f"Event dispatcher is shut down; dropped status change event for candidate {event.candidate_id}",
                exc_info=True,
            )
            return

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _deliver(self, event: StatusChangedEvent) -> None:
        try:
            self.sink.handle(event)
        except Exception:
            logger.exception(
                f"Status change event delivery failed for candidate {event.candidate_id} "
                f"({event.old_status} -> {event.new_status})"
            )
        finally:
            release_thread_connections()

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Waits for in-flight deliveries. Returns False if some are still running after timeout.
        """
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
