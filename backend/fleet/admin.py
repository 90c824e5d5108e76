from django.contrib import admin

from .models import Vehicle


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("license_plate", "organization", "vehicle_type", "capacity_portions", "has_insulated_box", "is_active")
    list_filter = ("vehicle_type", "is_active", "has_insulated_box")
    search_fields = ("license_plate", "organization__name")
