from django.urls import path

from . import views

app_name = "distribution"

urlpatterns = [
    path("schedules", views.schedules, name="schedules"),
    path("vehicles", views.vehicles, name="vehicles"),
    path("schedules/statistics", views.schedule_statistics, name="schedule_statistics"),
    path("schedules/<int:schedule_id>", views.schedule_detail, name="schedule_detail"),
    path("schedules/<int:schedule_id>/status", views.transition, name="schedule_transition"),
    path("schedules/<int:schedule_id>/history", views.schedule_history, name="schedule_history"),
    path("schedules/<int:schedule_id>/vehicles", views.assign_vehicle, name="assign_vehicle"),
    path("schedules/<int:schedule_id>/vehicles/<int:vehicle_id>", views.unassign_vehicle, name="unassign_vehicle"),
]
