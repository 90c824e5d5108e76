from django.urls import path

from . import views

app_name = "tracking"

urlpatterns = [
    path("schedules/<int:schedule_id>/deliveries", views.schedule_deliveries, name="schedule_deliveries"),
    path("deliveries/<int:delivery_id>", views.delivery_detail, name="delivery_detail"),
    path("deliveries/<int:delivery_id>/depart", views.depart, name="depart"),
    path("deliveries/<int:delivery_id>/arrive", views.arrive, name="arrive"),
    path("deliveries/<int:delivery_id>/complete", views.complete, name="complete"),
    path("deliveries/<int:delivery_id>/fail", views.fail, name="fail"),
    path("deliveries/<int:delivery_id>/tracking", views.tracking, name="tracking"),
    path("deliveries/<int:delivery_id>/temperature", views.temperature, name="temperature"),
]
