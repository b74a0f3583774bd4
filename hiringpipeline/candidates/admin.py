from django.contrib import admin
from .models import Candidate, StatusHistory, AuditLog


class StatusHistoryInline(admin.TabularInline):
    model = StatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ("old_status", "new_status", "changed_at", "changed_by", "source", "reason")
    fields = readonly_fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ("candidate_id", "name", "email", "current_status", "date_created", "is_deleted")
    list_filter = ("current_status", "is_deleted")
    search_fields = ("name", "email")
    # current_status is only changed through the status transition endpoint.
    readonly_fields = ("current_status", "date_created")
    inlines = [StatusHistoryInline]
    ordering = ("-date_created",)


@admin.register(StatusHistory)
class StatusHistoryAdmin(admin.ModelAdmin):
    list_display = ("history_id", "candidate", "old_status", "new_status", "changed_at", "changed_by", "source")
    list_filter = ("new_status", "source")
    search_fields = ("candidate__name", "changed_by", "changed_by_email")
    ordering = ("-changed_at",)

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "verb", "target_type", "target_id", "actor")
    list_filter = ("verb", "target_type")
    search_fields = ("target_id", "verb")
    readonly_fields = ("actor", "verb", "target_type", "target_id", "timestamp", "data")
    ordering = ("-timestamp",)
