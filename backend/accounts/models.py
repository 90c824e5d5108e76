from django.db import models
from django.contrib.auth.models import AbstractUser
from .managers import UserManager


class Role(models.TextChoices):
    ORG_ADMIN = "ORG_ADMIN", "Kitchen Admin"
    DISTRIBUTION_MANAGER = "DISTRIBUTION_MANAGER", "Distribution Manager"
    DRIVER = "DRIVER", "Driver"
    QUALITY_CONTROL = "QUALITY_CONTROL", "Quality Control"
    VIEWER = "VIEWER", "Viewer"


# who may plan schedules, assign vehicles and move the lifecycle
PLANNER_ROLES = (Role.ORG_ADMIN, Role.DISTRIBUTION_MANAGER)
# who may work a delivery leg in the field
FIELD_ROLES = (Role.ORG_ADMIN, Role.DISTRIBUTION_MANAGER, Role.DRIVER)
ALL_ROLES = tuple(Role.values)


class User(AbstractUser):
    """
    Email-first auth; username removed. Users can belong to multiple kitchens via OrgMembership.
    """
    username = None
    email = models.EmailField(unique=True)
    phone_e164 = models.CharField(max_length=20, blank=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    def __str__(self):
        return self.email

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.email


class Organization(models.Model):
    """A tenant. Every schedule, vehicle and audit row hangs off one of these."""

    class OrgType(models.TextChoices):
        KITCHEN = "KITCHEN", "Central Kitchen"
        SCHOOL = "SCHOOL", "School"
        PLATFORM = "PLATFORM", "Platform Operator"

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)
    org_type = models.CharField(max_length=16, choices=OrgType.choices, default=OrgType.KITCHEN)
    city = models.CharField(max_length=128, blank=True)
    province = models.CharField(max_length=128, blank=True)
    timezone = models.CharField(max_length=64, default="Asia/Jakarta")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


class OrgMembership(models.Model):
    """
    Many-to-many link: a user can have different roles in different kitchens.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="memberships")
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="memberships")
    role = models.CharField(max_length=24, choices=Role.choices)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = (("user", "organization", "role"),)
        indexes = [
            models.Index(fields=["organization", "role"], name="accounts_mem_org_role_idx"),
            models.Index(fields=["user", "organization"], name="accounts_mem_user_org_idx"),
        ]

    def __str__(self):
        return f"{self.user.email} @ {self.organization.name} ({self.role})"
