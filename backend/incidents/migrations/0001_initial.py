import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("distribution", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Issue",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "issue_type",
                    models.CharField(
                        choices=[
                            ("VEHICLE_BREAKDOWN", "Vehicle breakdown"),
                            ("WEATHER_DELAY", "Weather delay"),
                            ("TRAFFIC_JAM", "Traffic jam"),
                            ("ACCESS_DENIED", "Access denied"),
                            ("RECIPIENT_UNAVAILABLE", "Recipient unavailable"),
                            ("FOOD_QUALITY", "Food quality"),
                            ("SHORTAGE", "Portion shortage"),
                            ("OTHER", "Other"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=[("CRITICAL", "Critical"), ("HIGH", "High"), ("MEDIUM", "Medium"), ("LOW", "Low")],
                        db_index=True,
                        default="MEDIUM",
                        max_length=16,
                    ),
                ),
                ("description", models.TextField()),
                ("location", models.CharField(blank=True, max_length=255)),
                ("affected_deliveries", models.JSONField(blank=True, default=list)),
                ("reported_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("resolution_notes", models.TextField(blank=True)),
                (
                    "reported_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reported_issues",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="resolved_issues",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="issues", to="distribution.schedule"
                    ),
                ),
            ],
            options={
                "ordering": ("-reported_at", "-id"),
                "indexes": [
                    models.Index(fields=["schedule", "severity"], name="issue_sched_severity_idx"),
                    models.Index(fields=["schedule", "resolved_at"], name="issue_sched_resolved_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("resolved_at__isnull", True), ("resolved_by__isnull", False), _connector="OR"),
                        name="issue_resolved_has_resolver",
                    ),
                ],
            },
        ),
    ]
