from django.contrib import admin

from .models import Issue


@admin.register(Issue)
class IssueAdmin(admin.ModelAdmin):
    list_display = ("id", "schedule", "issue_type", "severity", "reported_at", "resolved_at")
    list_filter = ("severity", "issue_type")
    search_fields = ("description", "location")
    readonly_fields = ("reported_by", "reported_at", "resolved_by", "resolved_at")
