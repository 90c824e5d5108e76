from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DistributionStatDaily",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.DateField(db_index=True)),
                ("schedules_total", models.PositiveIntegerField(default=0)),
                ("schedules_completed", models.PositiveIntegerField(default=0)),
                ("schedules_cancelled", models.PositiveIntegerField(default=0)),
                ("deliveries_total", models.PositiveIntegerField(default=0)),
                ("deliveries_delivered", models.PositiveIntegerField(default=0)),
                ("deliveries_failed", models.PositiveIntegerField(default=0)),
                ("deliveries_on_time", models.PositiveIntegerField(default=0)),
                ("deliveries_late", models.PositiveIntegerField(default=0)),
                ("portions_planned", models.PositiveIntegerField(default=0)),
                ("portions_delivered", models.PositiveIntegerField(default=0)),
                ("portions_uncounted", models.PositiveIntegerField(default=0)),
                ("distance_km", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=10)),
                ("issues_reported", models.PositiveIntegerField(default=0)),
                ("issues_critical", models.PositiveIntegerField(default=0)),
                ("issues_resolved", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="daily_stats", to="accounts.organization"
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["organization", "day"], name="dailystat_org_day_idx")],
                "unique_together": {("organization", "day")},
            },
        ),
    ]
