"""
Serializers for the candidate lifecycle API.
These validate status change requests and render candidates, their status
history, and the time-in-stage analytics reports as JSON.
"""
from typing import Tuple, Dict, Any
from django.db.models import Model

from rest_framework import serializers
from .models import Candidate, StatusHistory, AuditLog, STATUS_CHOICES, SOURCE_CHOICES


class StatusHistorySerializer(serializers.ModelSerializer):
    """
    Serializer for the StatusHistory model.
    Used read-only, both embedded in candidates and on the status-history endpoint.
    """
    is_automated = serializers.SerializerMethodField()

    class Meta:
        model: Model = StatusHistory
        fields: Tuple[Any] = (
            'history_id', 'old_status', 'new_status', 'changed_at', 'changed_by',
            'changed_by_name', 'changed_by_email', 'reason', 'notes', 'source', 'is_automated',
        )

    def get_is_automated(self, obj: StatusHistory) -> bool:
        return obj.source != "manual"


class CandidateSerializer(serializers.ModelSerializer):
    """
    Serializer for the Candidate model.
    Profile fields are read-only here; the status only changes through the status endpoint.
    """
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model: Model = Candidate
        fields: Tuple[Any] = ('candidate_id', 'name', 'email', 'current_status', 'date_created', 'status_history')
        read_only_fields: Tuple[Any] = fields


class StatusTransitionSerializer(serializers.Serializer):
    """
    Validates a status change request.
    expected_status is the status the caller last read; it guards against lost updates.
    """
    expected_status = serializers.ChoiceField(choices=STATUS_CHOICES)
    status = serializers.ChoiceField(choices=STATUS_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    source = serializers.ChoiceField(choices=SOURCE_CHOICES, required=False, default="manual")


class StageIntervalSerializer(serializers.Serializer):
    status = serializers.CharField()
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField(allow_null=True)
    duration_ms = serializers.IntegerField()
    duration_days = serializers.FloatField()


class CandidateTimeAnalyticsSerializer(serializers.Serializer):
    candidate_id = serializers.CharField()
    candidate_name = serializers.CharField()
    current_status = serializers.CharField()
    time_in_current_stage = serializers.SerializerMethodField()
    stage_breakdown = StageIntervalSerializer(many=True)
    total_time_in_process = serializers.SerializerMethodField()
    total_status_changes = serializers.IntegerField(source='status_change_count')
    is_stuck = serializers.BooleanField(source='stuck')
    stuck_threshold_days = serializers.FloatField()

    def get_time_in_current_stage(self, obj) -> Dict[str, Any]:
        return {
            'duration_ms': obj.time_in_current_stage_ms,
            'duration_days': obj.days_in_current_stage,
            'duration_hours': obj.hours_in_current_stage,
            'start_date': serializers.DateTimeField().to_representation(obj.current_stage_start),
        }

    def get_total_time_in_process(self, obj) -> Dict[str, Any]:
        return {
            'duration_ms': obj.total_time_in_process_ms,
            'duration_days': obj.days_in_process,
            'start_date': serializers.DateTimeField().to_representation(obj.process_start),
        }


class BottleneckStageSerializer(serializers.Serializer):
    status = serializers.CharField()
    average_days = serializers.FloatField()
    median_days = serializers.FloatField()
    candidates_affected = serializers.IntegerField()


class StuckCandidateSerializer(serializers.Serializer):
    candidate_id = serializers.CharField()
    candidate_name = serializers.CharField()
    status = serializers.CharField()
    days_in_stage = serializers.IntegerField()


class FunnelStageSerializer(serializers.Serializer):
    status = serializers.CharField()
    candidate_count = serializers.IntegerField()
    conversion_rate = serializers.FloatField()
    drop_off_rate = serializers.FloatField()
    average_days_in_stage = serializers.FloatField()


class SystemWideTimeAnalyticsSerializer(serializers.Serializer):
    average_time_per_stage = serializers.DictField(child=serializers.FloatField())
    median_time_per_stage = serializers.DictField(child=serializers.FloatField())
    bottleneck_stages = BottleneckStageSerializer(many=True)
    stuck_candidates = StuckCandidateSerializer(many=True)
    conversion_funnel = FunnelStageSerializer(many=True)
    total_candidates = serializers.IntegerField()
    average_time_to_hire = serializers.FloatField()
    total_status_changes = serializers.IntegerField()
    stuck_threshold_days = serializers.FloatField()


class AuditLogSerializer(serializers.ModelSerializer):
    """
    Serializer for the AuditLog model.
    Used for reading the system's immutable log of actions.
    """
    class Meta:
        model: Model = AuditLog
        fields: Tuple[Any] = '__all__'
