from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.crypto import get_random_string
from django.utils.text import slugify

from accounts.models import User, Organization, OrgMembership, Role
from fleet.models import Vehicle


class Command(BaseCommand):
    help = "Create a superuser and a demo kitchen with its admin membership and a few vehicles."

    def add_arguments(self, parser):
        parser.add_argument("--superuser-email", default="admin@kitchenops.local")
        parser.add_argument("--superuser-password", default=None)
        parser.add_argument("--kitchen-name", default="Demo Kitchen")
        parser.add_argument("--city", default="")
        parser.add_argument("--vehicles", type=int, default=2, help="Demo pickups to register")

    @transaction.atomic
    def handle(self, *args, **opts):
        email = opts["superuser_email"]
        password = opts["superuser_password"] or get_random_string(16)
        name = opts["kitchen_name"]

        su, created = User.objects.get_or_create(email=email, defaults={"is_staff": True, "is_superuser": True})
        if created:
            su.set_password(password)
            su.save()
            self.stdout.write(self.style.SUCCESS(f"Created superuser {email} / {password}"))
        else:
            self.stdout.write(self.style.WARNING(f"Superuser {email} already exists"))

        kitchen, _ = Organization.objects.get_or_create(name=name, defaults={
            "org_type": Organization.OrgType.KITCHEN,
            "code": slugify(name) + "-" + get_random_string(6).lower(),
            "city": opts["city"],
        })
        OrgMembership.objects.get_or_create(user=su, organization=kitchen, role=Role.ORG_ADMIN)
        self.stdout.write(self.style.SUCCESS(f"Kitchen ready: {kitchen.name} (code={kitchen.code}), ORG_ADMIN {email}"))

        added = 0
        for n in range(1, opts["vehicles"] + 1):
            _, made = Vehicle.objects.get_or_create(
                organization=kitchen, license_plate=f"DEMO {n:03d}",
                defaults={"vehicle_type": Vehicle.VehicleType.PICKUP, "capacity_portions": 300},
            )
            added += int(made)
        self.stdout.write(self.style.SUCCESS(f"{added} demo vehicle(s) registered."))
