import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


DELIVERY_STATUSES = [
    ("ASSIGNED", "Assigned"),
    ("DEPARTED", "Departed"),
    ("DELIVERED", "Delivered"),
    ("FAILED", "Failed"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("distribution", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Delivery",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "target_type",
                    models.CharField(
                        choices=[("SCHOOL", "School"), ("OTHER", "Other address")], default="SCHOOL", max_length=16
                    ),
                ),
                ("target_name", models.CharField(max_length=255)),
                ("target_address", models.TextField(blank=True)),
                ("estimated_arrival", models.DateTimeField(blank=True, null=True)),
                ("departure_time", models.DateTimeField(blank=True, null=True)),
                ("actual_arrival", models.DateTimeField(blank=True, null=True)),
                ("delivery_completed_at", models.DateTimeField(blank=True, null=True)),
                ("portions_planned", models.PositiveIntegerField()),
                ("portions_delivered", models.PositiveIntegerField(blank=True, null=True)),
                ("driver_name", models.CharField(blank=True, max_length=128)),
                ("helper_names", models.JSONField(blank=True, default=list)),
                (
                    "status",
                    models.CharField(choices=DELIVERY_STATUSES, db_index=True, default="ASSIGNED", max_length=16),
                ),
                (
                    "food_type",
                    models.CharField(choices=[("HOT", "Hot food"), ("COLD", "Cold food")], default="HOT", max_length=8),
                ),
                ("departure_temp", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("arrival_temp", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("serving_temp", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("current_location", models.CharField(blank=True, max_length=64)),
                ("route_trail", models.JSONField(blank=True, default=list)),
                ("recipient_name", models.CharField(blank=True, max_length=128)),
                ("failure_reason", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="deliveries", to="distribution.schedule"
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "deliveries",
                "ordering": ("estimated_arrival", "id"),
                "indexes": [models.Index(fields=["schedule", "status"], name="delivery_sched_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="TrackingPoint",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("latitude", models.DecimalField(decimal_places=6, max_digits=9)),
                ("longitude", models.DecimalField(decimal_places=6, max_digits=9)),
                (
                    "accuracy",
                    models.DecimalField(blank=True, decimal_places=2, help_text="Metres", max_digits=8, null=True),
                ),
                ("status", models.CharField(choices=DELIVERY_STATUSES, max_length=16)),
                ("notes", models.CharField(blank=True, max_length=255)),
                ("recorded_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("received_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "delivery",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tracking_points",
                        to="tracking.delivery",
                    ),
                ),
            ],
            options={
                "ordering": ("recorded_at", "id"),
                "indexes": [models.Index(fields=["delivery", "recorded_at"], name="trackpoint_delivery_rec_idx")],
            },
        ),
    ]
