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
            name="Vehicle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("license_plate", models.CharField(max_length=32)),
                (
                    "vehicle_type",
                    models.CharField(
                        choices=[
                            ("MOTORCYCLE", "Motorcycle"),
                            ("CAR", "Car"),
                            ("PICKUP", "Pickup"),
                            ("VAN", "Van"),
                            ("TRUCK", "Truck"),
                        ],
                        default="PICKUP",
                        max_length=16,
                    ),
                ),
                ("brand", models.CharField(blank=True, max_length=64)),
                ("capacity_portions", models.PositiveIntegerField(default=0, help_text="Meal boxes per trip")),
                ("has_insulated_box", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="vehicles", to="accounts.organization"
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["organization", "is_active"], name="fleet_vehicle_org_active_idx")],
                "unique_together": {("organization", "license_plate")},
            },
        ),
    ]
