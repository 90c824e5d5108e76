from django.contrib import admin

from .models import Schedule, VehicleAssignment


class VehicleAssignmentInline(admin.TabularInline):
    model = VehicleAssignment
    extra = 0
    fields = ("vehicle", "driver", "distribution_date", "wave", "is_active", "start_time", "end_time")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ("id", "organization", "production_batch", "distribution_date", "wave", "status", "total_portions", "version")
    list_filter = ("status", "wave", "organization")
    search_fields = ("production_batch", "organization__name")
    date_hierarchy = "distribution_date"
    # status and its timestamps only move through distribution.services
    readonly_fields = ("status", "started_at", "completed_at", "cancelled_at", "cancellation_reason", "version", "created_at", "updated_at")
    inlines = [VehicleAssignmentInline]


@admin.register(VehicleAssignment)
class VehicleAssignmentAdmin(admin.ModelAdmin):
    list_display = ("schedule", "vehicle", "driver", "distribution_date", "wave", "is_active")
    list_filter = ("is_active", "wave")
    search_fields = ("vehicle__license_plate", "driver__email")
    readonly_fields = ("distribution_date", "wave", "is_active", "assigned_by", "created_at")
