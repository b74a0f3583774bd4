"""
API Views for the candidate status lifecycle.
This module exposes candidates and their status history, commits status
transitions through the TransitionCoordinator, and serves the time-in-stage
analytics reports.
"""
from typing import Optional, Type

import logging
import threading
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models.query import QuerySet
from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from .models import Candidate, AuditLog
from .serializers import (
    AuditLogSerializer,
    CandidateSerializer,
    CandidateTimeAnalyticsSerializer,
    StatusHistorySerializer,
    StatusTransitionSerializer,
    StuckCandidateSerializer,
    SystemWideTimeAnalyticsSerializer,
)
from .services.analytics import average_time_between, compute_system_wide, stuck_candidates_in_stage
from .services.errors import StorageFailure
from .services.lifecycle import Actor, validate_status
from .services.stores import DjangoCandidateStore, record_from_model
from .services.time_in_stage import compute_for_candidate, default_stuck_threshold_days
from .services.transitions import CONFLICT, NOT_FOUND, TransitionCoordinator, build_default_coordinator

logger = logging.getLogger('candidates')
_coordinator_lock = threading.Lock()


def parse_threshold(request: Request) -> float:
    raw: Optional[str] = request.query_params.get("stuck_threshold_days")
    if raw in (None, ""):
        return default_stuck_threshold_days()
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError("stuck_threshold_days must be a number.")
    if value < 0:
        raise ValidationError("stuck_threshold_days must not be negative.")
    return value


def actor_for(user) -> Actor:
    return Actor(
        user_id=str(user.pk),
        email=getattr(user, "email", "") or "",
        name=user.get_full_name() or user.get_username(),
    )


class CandidateViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read access to candidates plus the status lifecycle actions.
    Profile data is managed elsewhere; the only write here is the status transition.
    """
    queryset: QuerySet[Candidate] = Candidate.objects.filter(is_deleted=False).prefetch_related('status_history').order_by('-date_created')
    serializer_class: Type[CandidateSerializer] = CandidateSerializer

    coordinator: Optional[TransitionCoordinator] = None

    def get_coordinator(self) -> TransitionCoordinator:
        if CandidateViewSet.coordinator is None:
            with _coordinator_lock:
                if CandidateViewSet.coordinator is None:
                    CandidateViewSet.coordinator = build_default_coordinator()
        return CandidateViewSet.coordinator

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: Optional[str]=None) -> Response:
        """
        Moves the candidate to a new status if it is still in the status the caller expects.

        Endpoint: PATCH /candidates/{id}/status/

        Request Body fields:
        - expected_status (required): The status the caller last read for this candidate.
        - status (required): The new status.
        - reason, notes (optional): Free text stored with the history entry.
        - source (optional): manual, automation, bulk_action, api or migration.

        Raises:
            400 Bad Request: Unknown status/source values.
            404 Not Found: The candidate does not exist.
            409 Conflict: The candidate's status changed since the caller read it.
            503 Service Unavailable: The candidate store failed.
        """
        payload = StatusTransitionSerializer(data=request.data)
        if not payload.is_valid():
            return Response({"detail": payload.errors}, status=status.HTTP_400_BAD_REQUEST)
        data = payload.validated_data

        try:
            result = self.get_coordinator().transition(
                str(pk),
                data["expected_status"],
                data["status"],
                actor_for(request.user),
                reason=data["reason"],
                notes=data["notes"],
                source=data["source"],
            )
        except ValidationError as e:
            logger.warning(f"API Failure (400): Invalid status change request from user {request.user.username} on candidate: {pk}. Error: {e}")
            return Response({"detail": " ".join(e.messages)}, status=status.HTTP_400_BAD_REQUEST)
        except StorageFailure:
            logger.error(f"API Failure (503): storage error on candidate {pk}.", exc_info=True)
            return Response({"detail": "Candidate store unavailable"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        except Exception:
            logger.error(f"API CRITICAL FAILURE: Unhandled exception on candidate: {pk}.", exc_info=True)
            return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        if result.outcome == NOT_FOUND:
            return Response({"detail": "Candidate not found"}, status=status.HTTP_404_NOT_FOUND)
        if result.outcome == CONFLICT:
            return Response(
                {
                    "detail": "Candidate status changed since it was read; reload and retry.",
                    "expected_status": result.expected_status,
                    "current_status": result.current_status,
                },
                status=status.HTTP_409_CONFLICT,
            )

        logger.info(f"API Success: Candidate {pk} status updated to {result.new_status} by user {request.user.username}")
        candidate: Candidate = self.get_object()
        return Response(self.get_serializer(candidate).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="status-history")
    def status_history(self, request: Request, pk: Optional[str]=None) -> Response:
        candidate: Candidate = self.get_object()
        history = StatusHistorySerializer(candidate.status_history.all(), many=True).data
        return Response({
            "candidate_id": str(candidate.candidate_id),
            "candidate_name": candidate.name,
            "current_status": candidate.current_status,
            "status_history": history,
            "total_changes": len(history),
        })

    @action(detail=True, methods=["get"], url_path="time-analytics")
    def time_analytics(self, request: Request, pk: Optional[str]=None) -> Response:
        try:
            threshold = parse_threshold(request)
        except ValidationError as e:
            return Response({"detail": " ".join(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

        candidate: Candidate = self.get_object()
        report = compute_for_candidate(record_from_model(candidate), stuck_threshold_days=threshold)
        return Response(CandidateTimeAnalyticsSerializer(report).data)


class AnalyticsViewSet(viewsets.ViewSet):
    """
    System-wide time-in-stage analytics over all active candidates.
    """
    store_class = DjangoCandidateStore

    def _candidates(self):
        return self.store_class().find_all(active_only=True)

    @action(detail=False, methods=["get"], url_path="system-wide")
    def system_wide(self, request: Request) -> Response:
        """
        Endpoint: GET /analytics/system-wide/?stuck_threshold_days=14
        """
        try:
            threshold = parse_threshold(request)
        except ValidationError as e:
            return Response({"detail": " ".join(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

        # Records are loaded lazily so the timeout also bounds the database reads.
        candidates = self.store_class().iter_all(active_only=True)
        try:
            report = compute_system_wide(
                candidates,
                stuck_threshold_days=threshold,
                timeout=getattr(settings, "CANDIDATES_ANALYTICS_TIMEOUT_SECONDS", None),
            )
        except StorageFailure:
            logger.error("API Failure (503): storage error while computing system-wide analytics.", exc_info=True)
            return Response({"detail": "Candidate store unavailable"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        finally:
            candidates.close()

        if report is None:
            return Response({"detail": "Analytics computation timed out"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(SystemWideTimeAnalyticsSerializer(report).data)

    @action(detail=False, methods=["get"], url_path="stuck")
    def stuck(self, request: Request) -> Response:
        """
        Endpoint: GET /analytics/stuck/?status=offer&stuck_threshold_days=14
        """
        try:
            threshold = parse_threshold(request)
            stage = validate_status(request.query_params.get("status"))
        except ValidationError as e:
            return Response({"detail": " ".join(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

        stuck = stuck_candidates_in_stage(stage, self._candidates(), stuck_threshold_days=threshold)
        return Response(StuckCandidateSerializer(stuck, many=True).data)

    @action(detail=False, methods=["get"], url_path="time-between")
    def time_between(self, request: Request) -> Response:
        """
        Endpoint: GET /analytics/time-between/?from_status=applied&to_status=offer
        """
        try:
            from_status = validate_status(request.query_params.get("from_status"))
            to_status = validate_status(request.query_params.get("to_status"))
        except ValidationError as e:
            return Response({"detail": " ".join(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "from_status": from_status,
            "to_status": to_status,
            "average_days": average_time_between(from_status, to_status, self._candidates()),
        })


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for viewing system-wide immutable Audit Logs.
    Only read operations are allowed. Logs are ordered by timestamp descending.
    """
    queryset: QuerySet[AuditLog] = AuditLog.objects.all().order_by("-timestamp")
    serializer_class: Type[AuditLogSerializer] = AuditLogSerializer


@api_view(['GET'])
@permission_classes([AllowAny])
def health_check(request: Request)-> Response:
    """
    Provides a simple readiness/liveness check for container deployment.
    Endpoint: GET /healthz/
    """
    return Response({"status": "ok", "service": "Hiring Pipeline API"}, status=status.HTTP_200_OK)
