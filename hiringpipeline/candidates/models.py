"""
Database models for the candidate status lifecycle.
These models define the candidate (only the fields the lifecycle depends on),
its bounded status history ledger, and the system-wide AuditLog.
"""
import uuid
from typing import List, Tuple

from django.db import models
from django.contrib.auth import get_user_model
from django.utils import timezone


User = get_user_model()


STATUS_APPLIED = "applied"
STATUS_REFERENCE_CHECK = "reference_check"
STATUS_OFFER = "offer"
STATUS_HIRED = "hired"
STATUS_REJECTED = "rejected"
STATUS_WITHDRAWN = "withdrawn"

STATUS_CHOICES: List[Tuple[str, str]] = [
    (STATUS_APPLIED, "Applied"),
    (STATUS_REFERENCE_CHECK, "Reference Check"),
    (STATUS_OFFER, "Offer"),
    (STATUS_HIRED, "Hired"),
    (STATUS_REJECTED, "Rejected"),
    (STATUS_WITHDRAWN, "Withdrawn"),
]

SOURCE_CHOICES: List[Tuple[str, str]] = [
    ("manual", "Manual"),
    ("automation", "Automation"),
    ("bulk_action", "Bulk action"),
    ("api", "API"),
    ("migration", "Migration"),
]


class Candidate(models.Model):
    """
    An individual moving through the hiring pipeline.
    current_status always mirrors the newest StatusHistory row; both are only
    changed together by the candidate store's compare-and-swap.
    """
    candidate_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    current_status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=STATUS_APPLIED)
    date_created = models.DateTimeField(default=timezone.now)
    is_deleted = models.BooleanField(default=False)

    class Meta:
        indexes: List[models.Index] = [models.Index(fields=["current_status", "is_deleted"], name="candidates__current_2f1d0e_idx")]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_current_status_display()})"


class StatusHistory(models.Model):
    """
    Immutable record of one status transition. Rows are only ever inserted,
    and the oldest are pruned once a candidate has more than 50.
    """
    history_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name="status_history")
    old_status = models.CharField(max_length=30, choices=STATUS_CHOICES, null=True, blank=True)
    new_status = models.CharField(max_length=30, choices=STATUS_CHOICES)
    changed_at = models.DateTimeField(default=timezone.now)
    changed_by = models.CharField(max_length=150)
    changed_by_name = models.CharField(max_length=200, blank=True)
    changed_by_email = models.EmailField(blank=True)
    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default="manual")

    class Meta:
        ordering = ("changed_at", "id")
        verbose_name_plural = "status history"
        indexes: List[models.Index] = [models.Index(fields=["candidate", "changed_at"], name="candidates__candida_8b3c41_idx")]

    def __str__(self) -> str:
        return f"{self.candidate_id} moved to {self.new_status} at {self.changed_at.isoformat()}"


class AuditLog(models.Model):
    """
    System-wide, immutable log of user actions (who, did what, to which entity, when).
    Status changes land here through the lifecycle's event sink.
    """
    actor = models.ForeignKey(User, null=True, on_delete=models.SET_NULL)
    verb = models.CharField(max_length=100)
    target_type = models.CharField(max_length=100)
    target_id = models.CharField(max_length=100)
    timestamp = models.DateTimeField(auto_now_add=True)
    data = models.JSONField(default=dict)

    class Meta:
        indexes: List[models.Index] = [models.Index(fields=["target_type", "target_id"], name="candidates__target__5a7e92_idx")]

    def __str__(self) -> str:
        return f"{self.timestamp} {self.verb} {self.target_type}:{self.target_id}"
