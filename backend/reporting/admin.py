from django.contrib import admin

from .models import DistributionStatDaily


@admin.register(DistributionStatDaily)
class DistributionStatDailyAdmin(admin.ModelAdmin):
    list_display = ("organization", "day", "schedules_total", "schedules_completed", "deliveries_delivered",
                    "deliveries_failed", "deliveries_late", "portions_delivered", "distance_km", "issues_critical")
    list_filter = ("organization",)
    date_hierarchy = "day"
