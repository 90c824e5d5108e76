from django.contrib import admin

from .models import Delivery, TrackingPoint


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ("id", "schedule", "target_name", "status", "portions_planned", "portions_delivered", "estimated_arrival", "actual_arrival")
    list_filter = ("status", "food_type", "target_type")
    search_fields = ("target_name", "driver_name", "recipient_name")
    readonly_fields = ("status", "departure_time", "actual_arrival", "delivery_completed_at",
                       "current_location", "route_trail", "version", "created_at", "updated_at")


@admin.register(TrackingPoint)
class TrackingPointAdmin(admin.ModelAdmin):
    list_display = ("delivery", "latitude", "longitude", "accuracy", "status", "recorded_at")
    list_filter = ("status",)
    date_hierarchy = "recorded_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
