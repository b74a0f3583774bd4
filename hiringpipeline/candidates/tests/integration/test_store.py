import uuid
from datetime import timedelta

import pytest
from django.db import DatabaseError
from django.utils import timezone

from candidates.models import Candidate, StatusHistory
from candidates.services.errors import StorageFailure
from candidates.services.lifecycle import MAX_STATUS_HISTORY, Actor, StatusHistoryEntry
from candidates.services.stores import DjangoCandidateStore
from candidates.services.transitions import COMMITTED, CONFLICT, NOT_FOUND, TransitionCoordinator


def new_entry(old_status, new_status, changed_at=None, notes=""):
    return StatusHistoryEntry(
        old_status=old_status,
        new_status=new_status,
        changed_at=changed_at or timezone.now(),
        changed_by="1",
        notes=notes,
    )


@pytest.mark.django_db
class TestDjangoCandidateStore:
    """
    Tests the database compare-and-swap that backs every status transition.
    """

    def setup_method(self, method):
        self.store = DjangoCandidateStore()
        self.candidate = Candidate.objects.create(name="Store Tester", email="store@test.com")
        self.pk = str(self.candidate.candidate_id)

    def test_matching_status_commits_status_and_entry(self):
        entry = new_entry("applied", "offer")

        assert self.store.compare_and_swap_status(self.pk, "applied", entry, "offer") is True

        self.candidate.refresh_from_db()
        assert self.candidate.current_status == "offer"
        row = StatusHistory.objects.get(candidate=self.candidate)
        assert str(row.history_id) == entry.history_id
        assert (row.old_status, row.new_status) == ("applied", "offer")

    def test_stale_status_changes_nothing(self):
        Candidate.objects.filter(pk=self.pk).update(current_status="rejected")

        assert self.store.compare_and_swap_status(self.pk, "applied", new_entry("applied", "offer"), "offer") is False

        self.candidate.refresh_from_db()
        assert self.candidate.current_status == "rejected"
        assert StatusHistory.objects.count() == 0

    def test_unknown_or_malformed_ids(self):
        assert self.store.find_by_id(str(uuid.uuid4())) is None
        assert self.store.find_by_id("not-a-uuid") is None
        assert self.store.compare_and_swap_status("not-a-uuid", "applied", new_entry("applied", "offer"), "offer") is False

    def test_soft_deleted_candidates_are_hidden(self):
        Candidate.objects.filter(pk=self.pk).update(is_deleted=True)

        assert self.store.find_by_id(self.pk) is None
        assert self.store.find_all() == []
        assert len(self.store.find_all(active_only=False)) == 1
        assert self.store.compare_and_swap_status(self.pk, "applied", new_entry("applied", "offer"), "offer") is False

    def test_ledger_is_pruned_to_newest_entries(self):
        start = timezone.now() - timedelta(days=100)
        current = "applied"
        for i in range(MAX_STATUS_HISTORY + 5):
            nxt = "offer" if current == "applied" else "applied"
            entry = new_entry(current, nxt, changed_at=start + timedelta(hours=i), notes=str(i))
            assert self.store.compare_and_swap_status(self.pk, current, entry, nxt)
            current = nxt

        record = self.store.find_by_id(self.pk)
        assert len(record.status_history) == MAX_STATUS_HISTORY
        assert [e.notes for e in record.status_history] == [str(i) for i in range(5, MAX_STATUS_HISTORY + 5)]
        assert record.status_history[-1].new_status == record.current_status

    def test_entry_never_predates_the_newest_entry(self):
        now = timezone.now()
        self.store.compare_and_swap_status(self.pk, "applied", new_entry("applied", "offer", changed_at=now), "offer")

        late_clock = new_entry("offer", "hired", changed_at=now - timedelta(seconds=5))
        self.store.compare_and_swap_status(self.pk, "offer", late_clock, "hired")

        history = self.store.find_by_id(self.pk).status_history
        assert [e.new_status for e in history] == ["offer", "hired"]
        assert history[0].changed_at <= history[1].changed_at

    def test_failed_history_insert_rolls_back_status(self, monkeypatch):
        def broken_create(**kwargs):
            raise DatabaseError("disk full")

        monkeypatch.setattr(StatusHistory.objects, "create", broken_create)

        with pytest.raises(StorageFailure):
            self.store.compare_and_swap_status(self.pk, "applied", new_entry("applied", "offer"), "offer")

        self.candidate.refresh_from_db()
        assert self.candidate.current_status == "applied"

    def test_insert_error_is_not_reported_as_a_lost_race(self, monkeypatch):
        def bad_create(**kwargs):
            raise ValueError("history_id is not a valid UUID")

        monkeypatch.setattr(StatusHistory.objects, "create", bad_create)

        with pytest.raises(ValueError):
            self.store.compare_and_swap_status(self.pk, "applied", new_entry("applied", "offer"), "offer")

        self.candidate.refresh_from_db()
        assert self.candidate.current_status == "applied"
        assert StatusHistory.objects.count() == 0

    def test_iter_all_streams_active_candidates_with_history(self):
        self.store.compare_and_swap_status(self.pk, "applied", new_entry("applied", "offer"), "offer")
        Candidate.objects.create(name="Second")
        Candidate.objects.create(name="Gone", is_deleted=True)

        records = self.store.iter_all(chunk_size=1)
        first = next(records)

        assert first.name == "Store Tester"
        assert [e.new_status for e in first.status_history] == ["offer"]
        assert [r.name for r in records] == ["Second"]


@pytest.mark.django_db
def test_coordinator_against_database_store():
    candidate = Candidate.objects.create(name="Flow Tester")
    pk = str(candidate.candidate_id)
    coordinator = TransitionCoordinator(DjangoCandidateStore())
    actor = Actor(user_id="1", email="recruiter@test.com")

    first = coordinator.transition(pk, "applied", "reference_check", actor)
    stale = coordinator.transition(pk, "applied", "rejected", actor)
    missing = coordinator.transition(str(uuid.uuid4()), "applied", "offer", actor)

    assert first.outcome == COMMITTED
    assert stale.outcome == CONFLICT
    assert stale.current_status == "reference_check"
    assert missing.outcome == NOT_FOUND

    candidate.refresh_from_db()
    assert candidate.current_status == "reference_check"
    assert candidate.status_history.count() == 1
