"""
Schedule lifecycle and vehicle assignment.

Every write runs in one transaction together with its audit row. Status
writes are compare-and-swap updates on (status, version) so two operators
moving the same schedule cannot both win.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Sum
from django.utils import timezone

from accounts.models import Organization, User
from audit.utils import audit_log
from fleet.models import Vehicle
from fleet.services import get_vehicle
from incidents.services import unresolved_critical_count
from tracking.models import Delivery

from .errors import (
    ConcurrentModification,
    DuplicateAssignment,
    GateViolation,
    ImmutableRecord,
    InvalidTransition,
    NotFound,
    ValidationFailed,
    VehicleConflict,
)
from .models import Schedule, VehicleAssignment

log = logging.getLogger(__name__)

S = Schedule.Status

EDITABLE_FIELDS = (
    "production_batch",
    "distribution_date",
    "wave",
    "estimated_beneficiaries",
    "total_portions",
    "packaging_type",
    "packaging_cost",
    "fuel_cost",
    "notes",
)


@dataclass
class TransitionResult:
    schedule: Schedule
    previous_status: str
    warnings: list = field(default_factory=list)


def _bump_version(schedule_id) -> None:
    Schedule.objects.filter(pk=schedule_id).update(version=F("version") + 1, updated_at=timezone.now())


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------

def get_schedule(org: Organization, schedule_id) -> Schedule:
    sched = Schedule.objects.filter(pk=schedule_id, organization=org).first()
    if sched is None:
        raise NotFound("Schedule not found.", schedule_id=schedule_id)
    return sched


def list_schedules(org: Organization, status=None, start: Optional[date] = None,
                   end: Optional[date] = None, wave=None):
    qs = (
        Schedule.objects.filter(organization=org)
        .annotate(
            delivery_count=Count("deliveries", distinct=True),
            vehicle_count=Count("vehicle_assignments", distinct=True),
        )
    )
    if status:
        qs = qs.filter(status=status)
    if wave:
        qs = qs.filter(wave=wave)
    if start:
        qs = qs.filter(distribution_date__gte=start)
    if end:
        qs = qs.filter(distribution_date__lte=end)
    return qs.order_by("-distribution_date", "wave", "id")


def create_schedule(org: Organization, actor, production_batch: str, distribution_date: date,
                    wave: str = Schedule.Wave.MORNING, estimated_beneficiaries: int = 0,
                    total_portions: int = 0, packaging_type: str = "", packaging_cost=None,
                    fuel_cost=None, notes: str = "", request=None) -> Schedule:
    errors = {}
    if not (production_batch or "").strip():
        errors["production_batch"] = ["Required."]
    if wave not in Schedule.Wave.values:
        errors["wave"] = [f"Unknown wave {wave!r}."]
    if errors:
        raise ValidationFailed(fields=errors)

    with transaction.atomic():
        sched = Schedule.objects.create(
            organization=org,
            production_batch=production_batch.strip(),
            distribution_date=distribution_date,
            wave=wave,
            estimated_beneficiaries=estimated_beneficiaries or 0,
            total_portions=total_portions or 0,
            packaging_type=packaging_type or "",
            packaging_cost=packaging_cost,
            fuel_cost=fuel_cost,
            notes=notes or "",
            created_by=actor if getattr(actor, "is_authenticated", False) else None,
        )
        audit_log(actor, org, "SCHEDULE_CREATED", target=sched, payload={
            "production_batch": sched.production_batch,
            "distribution_date": sched.distribution_date,
            "wave": sched.wave,
        }, request=request)
    log.info("schedule %s created for %s %s (org=%s)", sched.pk, distribution_date, wave, org.pk)
    return sched


def update_schedule(schedule: Schedule, actor, request=None, **fields) -> Schedule:
    """
    Edit the planning fields of a schedule that has not started.

    A date or wave change moves the booking keys of every assignment along
    with it, after checking the vehicles are free in the new slot.
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(fields={k: ["Field cannot be changed."] for k in sorted(unknown)})
    if schedule.status in Schedule.LOCKED:
        raise ImmutableRecord(f"Schedule is {schedule.status} and can no longer be edited.", status=schedule.status)
    if "wave" in fields and fields["wave"] not in Schedule.Wave.values:
        raise ValidationFailed(fields={"wave": [f"Unknown wave {fields['wave']!r}."]})
    if "production_batch" in fields and not (fields["production_batch"] or "").strip():
        raise ValidationFailed(fields={"production_batch": ["Required."]})

    changes = {k: v for k, v in fields.items() if getattr(schedule, k) != v}
    if not changes:
        return schedule

    old = {k: getattr(schedule, k) for k in changes}
    new_date = changes.get("distribution_date", schedule.distribution_date)
    new_wave = changes.get("wave", schedule.wave)
    slot_moved = "distribution_date" in changes or "wave" in changes

    with transaction.atomic():
        if slot_moved:
            _move_bookings(schedule, new_date, new_wave)

        updated = Schedule.objects.filter(
            pk=schedule.pk, version=schedule.version, status__in=list(Schedule.ASSIGNABLE),
        ).update(version=F("version") + 1, updated_at=timezone.now(), **changes)
        if updated == 0:
            raise ConcurrentModification(schedule_id=schedule.pk)

        schedule.refresh_from_db()
        audit_log(actor, schedule.organization, "SCHEDULE_UPDATED", target=schedule,
                  payload={"old": old, "new": changes}, request=request)
    log.info("schedule %s updated: %s", schedule.pk, ", ".join(sorted(changes)))
    return schedule


def _move_bookings(schedule: Schedule, new_date: date, new_wave: str) -> None:
    assignments = list(
        VehicleAssignment.objects.filter(schedule=schedule, is_active=True).select_related("vehicle")
    )
    if not assignments:
        return
    # same lock order as assign_vehicle: vehicles first
    vehicle_ids = sorted(a.vehicle_id for a in assignments)
    list(Vehicle.objects.select_for_update().filter(pk__in=vehicle_ids).order_by("pk"))

    for a in assignments:
        other = _find_conflict(a.vehicle_id, new_date, new_wave, exclude_schedule_id=schedule.pk)
        if other is not None:
            raise VehicleConflict(a.vehicle, other)
    try:
        with transaction.atomic():
            VehicleAssignment.objects.filter(pk__in=[a.pk for a in assignments]).update(
                distribution_date=new_date, wave=new_wave,
            )
    except IntegrityError:
        for a in assignments:
            other = _find_conflict(a.vehicle_id, new_date, new_wave, exclude_schedule_id=schedule.pk)
            if other is not None:
                raise VehicleConflict(a.vehicle, other)
        raise


def delete_schedule(schedule: Schedule, actor, request=None) -> None:
    with transaction.atomic():
        if schedule.status in (S.IN_PROGRESS, S.COMPLETED):
            raise ImmutableRecord(f"A {schedule.status} schedule cannot be deleted.", status=schedule.status)
        if Delivery.objects.filter(schedule=schedule).exists():
            raise ImmutableRecord("Schedule has deliveries and cannot be deleted.")
        audit_log(actor, schedule.organization, "SCHEDULE_DELETED", target=schedule, payload={
            "production_batch": schedule.production_batch,
            "distribution_date": schedule.distribution_date,
            "wave": schedule.wave,
            "status": schedule.status,
        }, request=request)
        deleted, _ = Schedule.objects.filter(pk=schedule.pk, version=schedule.version).delete()
        if not deleted:
            raise ConcurrentModification(schedule_id=schedule.pk)
    log.info("schedule %s deleted", schedule.pk)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def evaluate_gates(schedule: Schedule, target: str, reason: str = "", today: Optional[date] = None) -> list[dict]:
    """Every unmet precondition for moving `schedule` to `target`. Empty means clear."""
    today = today or timezone.localdate()
    violations = []

    if target in (S.PREPARED, S.IN_PROGRESS):
        if not VehicleAssignment.objects.filter(schedule=schedule).exists():
            violations.append({
                "code": "NO_VEHICLE_ASSIGNED",
                "message": "Assign at least one vehicle first.",
            })
    if target == S.IN_PROGRESS and schedule.distribution_date > today:
        violations.append({
            "code": "DISTRIBUTION_DATE_IN_FUTURE",
            "message": f"Distribution date {schedule.distribution_date} has not arrived yet.",
        })
    if target == S.COMPLETED:
        deliveries = Delivery.objects.filter(schedule=schedule)
        if not deliveries.exists():
            violations.append({
                "code": "NO_DELIVERIES",
                "message": "Schedule has no deliveries.",
            })
        else:
            pending = deliveries.exclude(status__in=list(Delivery.TERMINAL)).count()
            if pending:
                violations.append({
                    "code": "DELIVERIES_PENDING",
                    "message": f"{pending} deliveries are not delivered or failed yet.",
                    "pending": pending,
                })
    if target == S.CANCELLED and not (reason or "").strip():
        violations.append({
            "code": "CANCELLATION_REASON_REQUIRED",
            "message": "A cancellation reason is required.",
        })
    return violations


def transition_schedule(schedule: Schedule, actor, target: str, reason: str = "",
                        today: Optional[date] = None, request=None) -> TransitionResult:
    current = schedule.status
    allowed = Schedule.allowed_targets(current)
    if target not in allowed:
        raise InvalidTransition(current, target, allowed)

    reason = (reason or "").strip()
    with transaction.atomic():
        # holds off create_delivery while the gates are read
        list(Schedule.objects.select_for_update().filter(pk=schedule.pk).values_list("pk", flat=True))
        violations = evaluate_gates(schedule, target, reason=reason, today=today)
        if violations:
            raise GateViolation(target, violations)

        now = timezone.now()
        stamps = {}
        if target == S.IN_PROGRESS and schedule.started_at is None:
            stamps["started_at"] = now
        elif target == S.COMPLETED and schedule.completed_at is None:
            stamps["completed_at"] = now
        elif target == S.CANCELLED:
            stamps["cancelled_at"] = now
            stamps["cancellation_reason"] = reason[:255]

        updated = Schedule.objects.filter(
            pk=schedule.pk, status=current, version=schedule.version,
        ).update(status=target, version=F("version") + 1, updated_at=now, **stamps)
        if updated == 0:
            raise ConcurrentModification(schedule_id=schedule.pk)

        if target in Schedule.TERMINAL:
            # frees the vehicles for other schedules in the same slot
            VehicleAssignment.objects.filter(schedule=schedule).update(is_active=False)

        schedule.refresh_from_db()
        audit_log(actor, schedule.organization, "SCHEDULE_STATUS_CHANGED", target=schedule, payload={
            "old": {"status": current},
            "new": {"status": target},
            "reason": reason,
        }, request=request)

    warnings = []
    if target == S.COMPLETED:
        critical = unresolved_critical_count(schedule)
        if critical:
            warnings.append({
                "code": "UNRESOLVED_CRITICAL_ISSUES",
                "message": f"{critical} critical issues are still open.",
                "count": critical,
            })
    log.info("schedule %s %s -> %s", schedule.pk, current, target)
    return TransitionResult(schedule=schedule, previous_status=current, warnings=warnings)


# ---------------------------------------------------------------------------
# Vehicle assignment
# ---------------------------------------------------------------------------

def _find_conflict(vehicle_id, distribution_date: date, wave: str, exclude_schedule_id=None) -> Optional[Schedule]:
    """A live schedule already holding this vehicle in the slot, if any."""
    qs = (
        VehicleAssignment.objects.filter(
            vehicle_id=vehicle_id, distribution_date=distribution_date, wave=wave, is_active=True,
        )
        .exclude(schedule__status__in=[S.CANCELLED, S.COMPLETED])
        .select_related("schedule")
    )
    if exclude_schedule_id is not None:
        qs = qs.exclude(schedule_id=exclude_schedule_id)
    hit = qs.order_by("id").first()
    return hit.schedule if hit else None


def _active_member(org: Organization, user_id) -> Optional[User]:
    return (
        User.objects.filter(
            pk=user_id, is_active=True,
            memberships__organization=org, memberships__is_active=True,
        )
        .distinct()
        .first()
    )


def assign_vehicle(schedule: Schedule, actor, vehicle_id, driver_id, helpers=None,
                   start_time=None, end_time=None, start_location: str = "",
                   end_location: str = "", notes: str = "", request=None) -> VehicleAssignment:
    """
    Book a vehicle and driver for the schedule's date and wave.

    The vehicle row is locked first so two planners booking the same vehicle
    serialize; the partial unique index on active slots is the backstop.
    """
    org = schedule.organization
    if start_time and end_time and end_time < start_time:
        raise ValidationFailed(fields={"end_time": ["End time is before start time."]})

    with transaction.atomic():
        vehicle = get_vehicle(vehicle_id, org, for_update=True)
        locked = Schedule.objects.select_for_update().get(pk=schedule.pk)

        if locked.status not in Schedule.ASSIGNABLE:
            raise ImmutableRecord(
                f"Vehicles can only be assigned while the schedule is PLANNED or PREPARED (is {locked.status}).",
                status=locked.status,
            )
        if vehicle is None:
            raise NotFound("Vehicle not found.", vehicle_id=vehicle_id)
        driver = _active_member(org, driver_id)
        if driver is None:
            raise NotFound("Driver not found.", driver_id=driver_id)

        if VehicleAssignment.objects.filter(schedule=locked, vehicle=vehicle).exists():
            raise DuplicateAssignment(vehicle_id=vehicle.pk, schedule_id=locked.pk)
        other = _find_conflict(vehicle.pk, locked.distribution_date, locked.wave, exclude_schedule_id=locked.pk)
        if other is not None:
            raise VehicleConflict(vehicle, other)

        try:
            with transaction.atomic():
                assignment = VehicleAssignment.objects.create(
                    organization=org,
                    schedule=locked,
                    vehicle=vehicle,
                    driver=driver,
                    helpers=list(helpers or []),
                    start_time=start_time,
                    end_time=end_time,
                    start_location=start_location or "",
                    end_location=end_location or "",
                    notes=notes or "",
                    distribution_date=locked.distribution_date,
                    wave=locked.wave,
                    assigned_by=actor if getattr(actor, "is_authenticated", False) else None,
                )
        except IntegrityError:
            if VehicleAssignment.objects.filter(schedule=locked, vehicle=vehicle).exists():
                raise DuplicateAssignment(vehicle_id=vehicle.pk, schedule_id=locked.pk)
            other = _find_conflict(vehicle.pk, locked.distribution_date, locked.wave, exclude_schedule_id=locked.pk)
            if other is not None:
                raise VehicleConflict(vehicle, other)
            raise

        _bump_version(locked.pk)
        audit_log(actor, org, "VEHICLE_ASSIGNED", target=locked, payload={
            "vehicle_id": vehicle.pk,
            "license_plate": vehicle.license_plate,
            "driver_id": driver.pk,
            "distribution_date": locked.distribution_date,
            "wave": locked.wave,
        }, request=request)

    schedule.refresh_from_db()
    log.info("vehicle %s assigned to schedule %s (%s %s)", vehicle.pk, schedule.pk,
             schedule.distribution_date, schedule.wave)
    return assignment


def unassign_vehicle(schedule: Schedule, actor, vehicle_id, request=None) -> None:
    with transaction.atomic():
        locked = Schedule.objects.select_for_update().get(pk=schedule.pk)
        if locked.status not in Schedule.ASSIGNABLE:
            raise ImmutableRecord(
                f"Vehicles can only be removed while the schedule is PLANNED or PREPARED (is {locked.status}).",
                status=locked.status,
            )
        assignment = VehicleAssignment.objects.filter(schedule=locked, vehicle_id=vehicle_id).first()
        if assignment is None:
            raise NotFound("Vehicle is not assigned to this schedule.", vehicle_id=vehicle_id)
        payload = {"vehicle_id": assignment.vehicle_id, "driver_id": assignment.driver_id}
        assignment.delete()
        _bump_version(locked.pk)
        audit_log(actor, locked.organization, "VEHICLE_UNASSIGNED", target=locked, payload=payload, request=request)

    schedule.refresh_from_db()
    log.info("vehicle %s removed from schedule %s", vehicle_id, schedule.pk)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def get_schedule_statistics(org: Organization, start: Optional[date] = None, end: Optional[date] = None,
                            today: Optional[date] = None) -> dict:
    """
    Dashboard numbers for one kitchen. `start`/`end` bound the overall,
    by_status and performance blocks; `today` and `upcoming` always look at
    the calendar around today.
    """
    today = today or timezone.localdate()
    qs = Schedule.objects.filter(organization=org)
    if start:
        qs = qs.filter(distribution_date__gte=start)
    if end:
        qs = qs.filter(distribution_date__lte=end)

    totals = qs.aggregate(
        total_schedules=Count("id"),
        total_portions=Sum("total_portions"),
        estimated_beneficiaries=Sum("estimated_beneficiaries"),
        packaging_cost=Sum("packaging_cost"),
        fuel_cost=Sum("fuel_cost"),
    )
    deliveries = Delivery.objects.filter(schedule__in=qs)
    overall = {
        "total_schedules": totals["total_schedules"] or 0,
        "total_portions": totals["total_portions"] or 0,
        "estimated_beneficiaries": totals["estimated_beneficiaries"] or 0,
        "total_deliveries": deliveries.count(),
        "delivered": deliveries.filter(status=Delivery.Status.DELIVERED).count(),
        "failed": deliveries.filter(status=Delivery.Status.FAILED).count(),
        "total_vehicle_assignments": VehicleAssignment.objects.filter(schedule__in=qs).count(),
        "estimated_cost": (totals["packaging_cost"] or Decimal("0")) + (totals["fuel_cost"] or Decimal("0")),
    }

    by_status = {s: 0 for s in S.values}
    for row in qs.values("status").annotate(n=Count("id")):
        by_status[row["status"]] = row["n"]

    todays = Schedule.objects.filter(organization=org, distribution_date=today)
    today_block = {
        "date": today,
        "total": todays.count(),
        "in_progress": todays.filter(status=S.IN_PROGRESS).count(),
        "completed": todays.filter(status=S.COMPLETED).count(),
        "total_portions": todays.aggregate(n=Sum("total_portions"))["n"] or 0,
        "total_deliveries": Delivery.objects.filter(schedule__in=todays).count(),
    }

    days = int(getattr(settings, "DISTRIBUTION_UPCOMING_DAYS", 7))
    upcoming = Schedule.objects.filter(
        organization=org,
        distribution_date__gt=today,
        distribution_date__lte=today + timedelta(days=days),
    ).exclude(status__in=list(Schedule.TERMINAL))
    upcoming_block = {
        "days": days,
        "total": upcoming.count(),
        "planned": upcoming.filter(status=S.PLANNED).count(),
        "prepared": upcoming.filter(status=S.PREPARED).count(),
        "total_portions": upcoming.aggregate(n=Sum("total_portions"))["n"] or 0,
        "total_deliveries": Delivery.objects.filter(schedule__in=upcoming).count(),
    }

    timed = Delivery.objects.filter(
        schedule__in=qs.filter(status=S.COMPLETED),
        actual_arrival__isnull=False,
        estimated_arrival__isnull=False,
    )
    on_time = timed.filter(actual_arrival__lte=F("estimated_arrival")).count()
    late = timed.filter(actual_arrival__gt=F("estimated_arrival")).count()
    performance = {
        "on_time_deliveries": on_time,
        "late_deliveries": late,
        "on_time_percentage": round(on_time * 100 / (on_time + late)) if (on_time + late) else 0,
        "completed_schedules": by_status[S.COMPLETED],
    }

    return {
        "overall": overall,
        "by_status": by_status,
        "today": today_block,
        "upcoming": upcoming_block,
        "performance": performance,
        "filters": {"start": start, "end": end},
    }


def schedule_detail(schedule: Schedule) -> dict:
    """Counters shown next to a single schedule."""
    deliveries = Delivery.objects.filter(schedule=schedule)
    counts = {row["status"]: row["n"] for row in deliveries.values("status").annotate(n=Count("id"))}
    return {
        "deliveries": {s: counts.get(s, 0) for s in Delivery.Status.values},
        "vehicles": VehicleAssignment.objects.filter(schedule=schedule).count(),
        "open_issues": schedule.issues.filter(resolved_at__isnull=True).count(),
        "allowed_transitions": sorted(Schedule.allowed_targets(schedule.status)),
    }
