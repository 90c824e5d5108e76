from django.urls import path

from . import views

app_name = "incidents"

urlpatterns = [
    path("schedules/<int:schedule_id>/issues", views.schedule_issues, name="schedule_issues"),
    path("issues/<int:issue_id>/resolve", views.resolve, name="resolve"),
]
