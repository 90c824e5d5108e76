from django.urls import path
from . import views

app_name = "reporting"

urlpatterns = [
    path("reports/daily", views.daily_summary, name="daily_summary"),
    path("reports/daily.csv", views.export_summary_csv, name="export_summary_csv"),
]
