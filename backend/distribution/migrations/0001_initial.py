import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


WAVES = [("MORNING", "Morning"), ("MIDDAY", "Midday"), ("AFTERNOON", "Afternoon")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("fleet", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Schedule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("production_batch", models.CharField(help_text="Batch number of the prepared food", max_length=64)),
                ("distribution_date", models.DateField(db_index=True)),
                ("wave", models.CharField(choices=WAVES, default="MORNING", max_length=16)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PLANNED", "Planned"),
                            ("PREPARED", "Prepared"),
                            ("IN_PROGRESS", "In progress"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="PLANNED",
                        max_length=16,
                    ),
                ),
                ("estimated_beneficiaries", models.PositiveIntegerField(default=0)),
                ("total_portions", models.PositiveIntegerField(default=0)),
                ("packaging_type", models.CharField(blank=True, max_length=32)),
                ("packaging_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("fuel_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("notes", models.TextField(blank=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, max_length=255)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_schedules",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="schedules", to="accounts.organization"
                    ),
                ),
            ],
            options={
                "ordering": ("-distribution_date", "wave", "id"),
                "indexes": [
                    models.Index(fields=["organization", "distribution_date"], name="sched_org_date_idx"),
                    models.Index(fields=["organization", "status"], name="sched_org_status_idx"),
                    models.Index(fields=["distribution_date", "wave"], name="sched_date_wave_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="VehicleAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("helpers", models.JSONField(blank=True, default=list)),
                ("start_time", models.DateTimeField(blank=True, null=True)),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                ("start_location", models.CharField(blank=True, max_length=255)),
                ("end_location", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True)),
                ("distribution_date", models.DateField()),
                ("wave", models.CharField(choices=WAVES, max_length=16)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "assigned_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "driver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="driving_assignments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="vehicle_assignments",
                        to="accounts.organization",
                    ),
                ),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="vehicle_assignments",
                        to="distribution.schedule",
                    ),
                ),
                (
                    "vehicle",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="assignments", to="fleet.vehicle"
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["vehicle", "distribution_date", "wave"], name="assign_vehicle_slot_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("schedule", "vehicle"), name="uniq_vehicle_per_schedule"),
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("vehicle", "distribution_date", "wave"),
                        name="uniq_active_vehicle_slot",
                    ),
                ],
            },
        ),
    ]
