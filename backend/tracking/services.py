"""
Delivery legs: departure, arrival, handoff, failure and GPS ingestion.

Status writes are compare-and-swap updates on (status, version). Location
pushes do not bump the version, so a driver app streaming GPS never makes
a dispatcher's complete/fail request stale.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from audit.utils import audit_log
from distribution.errors import (
    ConcurrentModification,
    ImmutableRecord,
    InvalidTransition,
    NotFound,
    TrackingNotAllowed,
    ValidationFailed,
)
from distribution.models import Schedule

from . import geo, temperature
from .models import Delivery, FoodType, TrackingPoint
from .ratelimit import check_tracking_rate

log = logging.getLogger(__name__)

D = Delivery.Status
S = Schedule.Status

# deliveries may be added until the schedule is over
OPEN_FOR_DELIVERIES = (S.PLANNED, S.PREPARED, S.IN_PROGRESS)

_COORD_PLACES = Decimal("0.000001")


def get_delivery(org, delivery_id) -> Delivery:
    d = Delivery.objects.select_related("schedule").filter(pk=delivery_id, schedule__organization=org).first()
    if d is None:
        raise NotFound("Delivery not found.", delivery_id=delivery_id)
    return d


def list_deliveries(schedule: Schedule):
    return Delivery.objects.filter(schedule=schedule).order_by("estimated_arrival", "id")


def _coordinates(latitude, longitude) -> tuple[Decimal, Decimal]:
    errors = {}
    values = {}
    for name, raw, bound in (("latitude", latitude, 90), ("longitude", longitude, 180)):
        try:
            v = Decimal(str(raw))
        except (InvalidOperation, ValueError, TypeError):
            errors[name] = ["Not a number."]
            continue
        if not v.is_finite() or v < -bound or v > bound:
            errors[name] = [f"Must be between -{bound} and {bound}."]
            continue
        values[name] = v.quantize(_COORD_PLACES)
    if errors:
        raise ValidationFailed("Invalid coordinates.", fields=errors)
    return values["latitude"], values["longitude"]


def _optional_coordinates(latitude, longitude) -> Optional[tuple[Decimal, Decimal]]:
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise ValidationFailed("Latitude and longitude go together.",
                               fields={"latitude" if latitude is None else "longitude": ["Required."]})
    return _coordinates(latitude, longitude)


def _check_transition(current: str, target: str) -> None:
    allowed = Delivery.TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransition(current, target, allowed)


def _require_running_schedule(schedule: Schedule) -> None:
    if schedule.status != S.IN_PROGRESS:
        raise TrackingNotAllowed(
            f"Schedule is {schedule.status}; deliveries can only move while it is IN_PROGRESS.",
            schedule_status=schedule.status,
        )


def _lock(delivery: Delivery, *, match_caller: bool = True) -> Delivery:
    """
    Re-read the delivery under a row lock. With match_caller the caller's copy
    must still be current, otherwise someone else changed its status first.
    """
    locked = Delivery.objects.select_for_update().get(pk=delivery.pk)
    if match_caller and (locked.status, locked.version) != (delivery.status, delivery.version):
        raise ConcurrentModification(delivery_id=delivery.pk, status=locked.status)
    locked.schedule = Schedule.objects.select_for_update().get(pk=locked.schedule_id)
    return locked


def _write(locked: Delivery, *, bump: bool, **changes) -> None:
    if bump:
        changes["version"] = F("version") + 1
    updated = Delivery.objects.filter(
        pk=locked.pk, status=locked.status, version=locked.version,
    ).update(updated_at=timezone.now(), **changes)
    if updated == 0:
        raise ConcurrentModification(delivery_id=locked.pk)


def _trail(locked: Delivery, lat: Decimal, lon: Decimal) -> dict:
    loc = f"{float(lat)},{float(lon)}"
    return {"current_location": loc, "route_trail": [*(locked.route_trail or []), loc]}


def _point(delivery: Delivery, lat, lon, status, *, accuracy=None, notes="", recorded_at=None) -> TrackingPoint:
    return TrackingPoint.objects.create(
        delivery=delivery,
        latitude=lat,
        longitude=lon,
        accuracy=None if accuracy is None else Decimal(str(accuracy)).quantize(Decimal("0.01")),
        status=status,
        notes=notes or "",
        recorded_at=recorded_at or timezone.now(),
    )


# ---------------------------------------------------------------------------
# Legs
# ---------------------------------------------------------------------------

def create_delivery(schedule: Schedule, actor, target_name: str, portions_planned: int,
                    target_type: str = Delivery.TargetType.SCHOOL, target_address: str = "",
                    estimated_arrival: Optional[datetime] = None, food_type: str = FoodType.HOT,
                    driver_name: str = "", helper_names=None, notes: str = "", request=None) -> Delivery:
    errors = {}
    if not (target_name or "").strip():
        errors["target_name"] = ["Required."]
    if portions_planned is None or int(portions_planned) <= 0:
        errors["portions_planned"] = ["Must be a positive number."]
    if target_type not in Delivery.TargetType.values:
        errors["target_type"] = [f"Unknown target type {target_type!r}."]
    if food_type not in FoodType.values:
        errors["food_type"] = [f"Unknown food type {food_type!r}."]
    if errors:
        raise ValidationFailed(fields=errors)

    with transaction.atomic():
        locked = Schedule.objects.select_for_update().get(pk=schedule.pk)
        if locked.status not in OPEN_FOR_DELIVERIES:
            raise ImmutableRecord(f"Schedule is {locked.status}; no more deliveries can be added.",
                                  status=locked.status)
        delivery = Delivery.objects.create(
            schedule=locked,
            target_type=target_type,
            target_name=target_name.strip(),
            target_address=target_address or "",
            estimated_arrival=estimated_arrival,
            portions_planned=int(portions_planned),
            food_type=food_type,
            driver_name=driver_name or "",
            helper_names=list(helper_names or []),
            notes=notes or "",
        )
        audit_log(actor, locked.organization, "DELIVERY_CREATED", target=delivery, payload={
            "schedule_id": locked.pk,
            "target_name": delivery.target_name,
            "portions_planned": delivery.portions_planned,
        }, request=request)
    log.info("delivery %s created on schedule %s for %s", delivery.pk, schedule.pk, delivery.target_name)
    return delivery


def depart_delivery(delivery: Delivery, actor, departure_time: Optional[datetime] = None,
                    latitude=None, longitude=None, departure_temp=None, request=None) -> Delivery:
    coords = _optional_coordinates(latitude, longitude)
    with transaction.atomic():
        locked = _lock(delivery)
        _require_running_schedule(locked.schedule)
        _check_transition(locked.status, D.DEPARTED)

        departed_at = departure_time or timezone.now()
        changes = {"status": D.DEPARTED, "departure_time": departed_at}
        if departure_temp is not None:
            changes["departure_temp"] = departure_temp
        if coords:
            changes.update(_trail(locked, *coords))
        _write(locked, bump=True, **changes)
        if coords:
            _point(locked, *coords, D.DEPARTED, notes="Departed", recorded_at=departed_at)

        audit_log(actor, locked.schedule.organization, "DELIVERY_DEPARTED", target=locked, payload={
            "old": {"status": locked.status}, "new": {"status": D.DEPARTED},
        }, request=request)
    delivery.refresh_from_db()
    log.info("delivery %s departed", delivery.pk)
    return delivery


def arrive_delivery(delivery: Delivery, actor, arrival_time: Optional[datetime] = None,
                    latitude=None, longitude=None, arrival_temp=None, request=None) -> Delivery:
    """Record the arrival of a departed leg. The handoff itself is complete_delivery."""
    coords = _optional_coordinates(latitude, longitude)
    with transaction.atomic():
        locked = _lock(delivery)
        _require_running_schedule(locked.schedule)
        if locked.actual_arrival is not None:
            raise ImmutableRecord("Arrival time is already recorded.",
                                  actual_arrival=locked.actual_arrival.isoformat())
        if locked.status != D.DEPARTED:
            raise TrackingNotAllowed(f"Delivery is {locked.status}; only a departed delivery can arrive.",
                                     status=locked.status)

        arrived_at = arrival_time or timezone.now()
        changes = {"actual_arrival": arrived_at}
        if arrival_temp is not None:
            changes["arrival_temp"] = arrival_temp
        if coords:
            changes.update(_trail(locked, *coords))
        _write(locked, bump=True, **changes)
        if coords:
            _point(locked, *coords, D.DEPARTED, notes="Arrived", recorded_at=arrived_at)

        audit_log(actor, locked.schedule.organization, "DELIVERY_ARRIVED", target=locked, payload={
            "actual_arrival": arrived_at,
            "estimated_arrival": locked.estimated_arrival,
        }, request=request)
    delivery.refresh_from_db()
    log.info("delivery %s arrived%s", delivery.pk, " late" if delivery.is_late else "")
    return delivery


def complete_delivery(delivery: Delivery, actor, portions_delivered: int, serving_temp=None,
                      recipient_name: str = "", notes: str = "", request=None) -> Delivery:
    if portions_delivered is None or int(portions_delivered) < 0:
        raise ValidationFailed(fields={"portions_delivered": ["Must be zero or more."]})
    portions_delivered = int(portions_delivered)

    with transaction.atomic():
        locked = _lock(delivery)
        _require_running_schedule(locked.schedule)
        _check_transition(locked.status, D.DELIVERED)
        if portions_delivered > locked.portions_planned:
            raise ValidationFailed(
                f"Delivered {portions_delivered} portions but only {locked.portions_planned} were planned.",
                fields={"portions_delivered": [f"Cannot exceed {locked.portions_planned}."]},
            )

        now = timezone.now()
        changes = {
            "status": D.DELIVERED,
            "portions_delivered": portions_delivered,
            "delivery_completed_at": now,
            "recipient_name": recipient_name or "",
        }
        # direct handoff without a separate arrival
        if locked.actual_arrival is None:
            changes["actual_arrival"] = now
        if serving_temp is not None:
            changes["serving_temp"] = serving_temp
        if notes:
            changes["notes"] = notes
        _write(locked, bump=True, **changes)

        audit_log(actor, locked.schedule.organization, "DELIVERY_COMPLETED", target=locked, payload={
            "old": {"status": locked.status},
            "new": {"status": D.DELIVERED},
            "portions_planned": locked.portions_planned,
            "portions_delivered": portions_delivered,
        }, request=request)
    delivery.refresh_from_db()
    log.info("delivery %s delivered %s/%s portions", delivery.pk, portions_delivered, delivery.portions_planned)
    return delivery


def fail_delivery(delivery: Delivery, actor, reason: str, request=None) -> Delivery:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed(fields={"reason": ["A failure reason is required."]})

    with transaction.atomic():
        locked = _lock(delivery)
        if locked.schedule.status in Schedule.TERMINAL:
            raise ImmutableRecord(f"Schedule is {locked.schedule.status}.", status=locked.schedule.status)
        _check_transition(locked.status, D.FAILED)
        _write(locked, bump=True, status=D.FAILED, failure_reason=reason[:255])
        audit_log(actor, locked.schedule.organization, "DELIVERY_FAILED", target=locked, payload={
            "old": {"status": locked.status}, "new": {"status": D.FAILED}, "reason": reason,
        }, request=request)
    delivery.refresh_from_db()
    log.info("delivery %s failed: %s", delivery.pk, reason)
    return delivery


# ---------------------------------------------------------------------------
# GPS
# ---------------------------------------------------------------------------

def record_location(delivery: Delivery, latitude, longitude, accuracy=None, status: Optional[str] = None,
                    notes: str = "", recorded_at: Optional[datetime] = None, actor=None,
                    request=None) -> TrackingPoint:
    """
    Append one GPS observation and move current_location / route_trail along.

    Points may arrive out of order; nothing here sorts them. A `status` that
    is a legal move from the delivery's current one is applied as a
    transition; any other label is ignored and the point keeps the
    delivery's status.
    """
    lat, lon = _coordinates(latitude, longitude)
    if status and status not in D.values:
        raise ValidationFailed(fields={"status": [f"Unknown status {status!r}."]})

    if status == D.FAILED and not (notes or "").strip():
        raise ValidationFailed(fields={"notes": ["Say why the delivery failed."]})

    # rejected pushes must not eat into the rate bucket
    current = Delivery.objects.filter(pk=delivery.pk).values_list("status", "schedule__status").first()
    if current is None:
        raise NotFound("Delivery not found.", delivery_id=delivery.pk)
    delivery_status, schedule_status = current
    if schedule_status != S.IN_PROGRESS or delivery_status not in Delivery.TRACKABLE:
        raise TrackingNotAllowed(schedule_status=schedule_status, delivery_status=delivery_status)
    check_tracking_rate(delivery.pk)

    with transaction.atomic():
        locked = _lock(delivery, match_caller=False)
        if locked.schedule.status != S.IN_PROGRESS or locked.status not in Delivery.TRACKABLE:
            raise TrackingNotAllowed(
                schedule_status=locked.schedule.status, delivery_status=locked.status,
            )

        changes = _trail(locked, lat, lon)
        # a label that is not a legal move (e.g. a late DEPARTED after handoff) only tags the point
        new_status = status if status in Delivery.TRANSITIONS[locked.status] else None
        if status and status != locked.status and not new_status:
            log.info("delivery %s: ignoring status %s from GPS while %s", delivery.pk, status, locked.status)
        if new_status:
            changes["status"] = new_status
            if new_status == D.FAILED:
                changes["failure_reason"] = notes.strip()[:255]
            elif new_status == D.DELIVERED:
                now = timezone.now()
                changes["delivery_completed_at"] = now
                if locked.actual_arrival is None:
                    changes["actual_arrival"] = now
        _write(locked, bump=bool(new_status), **changes)

        point = _point(locked, lat, lon, new_status or locked.status,
                       accuracy=accuracy, notes=notes, recorded_at=recorded_at)
        if new_status:
            audit_log(actor, locked.schedule.organization, "DELIVERY_STATUS_CHANGED", target=locked, payload={
                "old": {"status": locked.status}, "new": {"status": new_status}, "source": "gps",
            }, request=request)
    delivery.refresh_from_db()
    log.debug("delivery %s at %s,%s", delivery.pk, lat, lon)
    return point


def get_tracking_history(delivery: Delivery) -> dict:
    points = geo.sort_by_recorded_at(TrackingPoint.objects.filter(delivery=delivery))
    latest = geo.latest_point(points)
    return {
        "points": points,
        "statistics": {
            "total_points": len(points),
            "total_distance_km": geo.total_distance(points),
            "latest_point": None if latest is None else {
                "latitude": float(latest.latitude),
                "longitude": float(latest.longitude),
                "recorded_at": latest.recorded_at,
                "status": latest.status,
            },
        },
    }


def delivery_temperature_report(delivery: Delivery) -> dict:
    readings = {
        "departure": delivery.departure_temp,
        "arrival": delivery.arrival_temp,
        "serving": delivery.serving_temp,
    }
    return {
        "food_type": delivery.food_type,
        "readings": {
            name: None if value is None else {
                "value": value,
                "level": temperature.classify(value, delivery.food_type),
            }
            for name, value in readings.items()
        },
        "overall": temperature.overall_level(readings.values(), delivery.food_type),
        "temperature_change": temperature.temperature_change(
            delivery.departure_temp, delivery.arrival_temp, delivery.serving_temp,
        ),
    }
