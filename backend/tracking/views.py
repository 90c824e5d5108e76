from accounts.decorators import require_roles
from accounts.models import ALL_ROLES, FIELD_ROLES, PLANNER_ROLES
from distribution.http import api_view, bind, ok, parse_json
from distribution.services import get_schedule

from . import services
from .forms import ArriveForm, CompleteForm, DeliveryForm, DepartForm, FailForm, LocationForm


def delivery_to_dict(d) -> dict:
    return {
        "id": d.id,
        "schedule_id": d.schedule_id,
        "target_type": d.target_type,
        "target_name": d.target_name,
        "target_address": d.target_address,
        "status": d.status,
        "estimated_arrival": d.estimated_arrival,
        "departure_time": d.departure_time,
        "actual_arrival": d.actual_arrival,
        "delivery_completed_at": d.delivery_completed_at,
        "is_late": d.is_late,
        "portions_planned": d.portions_planned,
        "portions_delivered": d.portions_delivered,
        "driver_name": d.driver_name,
        "helper_names": d.helper_names,
        "food_type": d.food_type,
        "departure_temp": d.departure_temp,
        "arrival_temp": d.arrival_temp,
        "serving_temp": d.serving_temp,
        "current_location": d.current_location,
        "route_trail": d.route_trail,
        "recipient_name": d.recipient_name,
        "failure_reason": d.failure_reason,
        "notes": d.notes,
        "version": d.version,
    }


def point_to_dict(p) -> dict:
    return {
        "id": p.id,
        "delivery_id": p.delivery_id,
        "latitude": float(p.latitude),
        "longitude": float(p.longitude),
        "accuracy": None if p.accuracy is None else float(p.accuracy),
        "status": p.status,
        "notes": p.notes,
        "recorded_at": p.recorded_at,
    }


@api_view("GET", "POST")
def schedule_deliveries(request, schedule_id: int):
    if request.method == "POST":
        return _create_delivery(request, schedule_id)
    return _list_deliveries(request, schedule_id)


@require_roles(*ALL_ROLES)
def _list_deliveries(request, schedule_id):
    sched = get_schedule(request.org, schedule_id)
    return ok([delivery_to_dict(d) for d in services.list_deliveries(sched)])


@require_roles(*PLANNER_ROLES)
def _create_delivery(request, schedule_id):
    sched = get_schedule(request.org, schedule_id)
    f = bind(DeliveryForm, parse_json(request))
    delivery = services.create_delivery(sched, request.user, request=request, **f)
    return ok(delivery_to_dict(delivery), status=201)


@api_view("GET")
@require_roles(*ALL_ROLES)
def delivery_detail(request, delivery_id: int):
    return ok(delivery_to_dict(services.get_delivery(request.org, delivery_id)))


@api_view("POST")
@require_roles(*FIELD_ROLES)
def depart(request, delivery_id: int):
    d = services.get_delivery(request.org, delivery_id)
    f = bind(DepartForm, parse_json(request))
    d = services.depart_delivery(d, request.user, request=request, **f)
    return ok(delivery_to_dict(d))


@api_view("POST")
@require_roles(*FIELD_ROLES)
def arrive(request, delivery_id: int):
    d = services.get_delivery(request.org, delivery_id)
    f = bind(ArriveForm, parse_json(request))
    d = services.arrive_delivery(d, request.user, request=request, **f)
    return ok(delivery_to_dict(d))


@api_view("POST")
@require_roles(*FIELD_ROLES)
def complete(request, delivery_id: int):
    d = services.get_delivery(request.org, delivery_id)
    f = bind(CompleteForm, parse_json(request))
    d = services.complete_delivery(d, request.user, request=request, **f)
    return ok(delivery_to_dict(d))


@api_view("POST")
@require_roles(*FIELD_ROLES)
def fail(request, delivery_id: int):
    d = services.get_delivery(request.org, delivery_id)
    f = bind(FailForm, parse_json(request))
    d = services.fail_delivery(d, request.user, f["reason"], request=request)
    return ok(delivery_to_dict(d))


@api_view("GET", "POST")
def tracking(request, delivery_id: int):
    if request.method == "POST":
        return _record_location(request, delivery_id)
    return _tracking_history(request, delivery_id)


@require_roles(*FIELD_ROLES)
def _record_location(request, delivery_id):
    d = services.get_delivery(request.org, delivery_id)
    f = bind(LocationForm, parse_json(request))
    point = services.record_location(
        d, f["latitude"], f["longitude"],
        accuracy=f["accuracy"],
        status=f["status"] or None,
        notes=f["notes"],
        recorded_at=f["recorded_at"],
        actor=request.user,
        request=request,
    )
    return ok(point_to_dict(point), status=201)


@require_roles(*ALL_ROLES)
def _tracking_history(request, delivery_id):
    d = services.get_delivery(request.org, delivery_id)
    history = services.get_tracking_history(d)
    return ok(
        [point_to_dict(p) for p in history["points"]],
        statistics=history["statistics"],
    )


@api_view("GET")
@require_roles(*ALL_ROLES)
def temperature(request, delivery_id: int):
    d = services.get_delivery(request.org, delivery_id)
    return ok(services.delivery_temperature_report(d))
