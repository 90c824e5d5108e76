from accounts.decorators import require_roles
from accounts.models import ALL_ROLES, PLANNER_ROLES
from audit.utils import audit_trail
from fleet.services import available_vehicles

from . import services
from .forms import (
    AssignVehicleForm,
    ScheduleFilterForm,
    ScheduleForm,
    ScheduleUpdateForm,
    StatisticsQueryForm,
    TransitionForm,
)
from .http import api_view, bind, ok, parse_json, present


def schedule_to_dict(s, detail=False) -> dict:
    data = {
        "id": s.id,
        "production_batch": s.production_batch,
        "distribution_date": s.distribution_date,
        "wave": s.wave,
        "status": s.status,
        "estimated_beneficiaries": s.estimated_beneficiaries,
        "total_portions": s.total_portions,
        "packaging_type": s.packaging_type,
        "packaging_cost": s.packaging_cost,
        "fuel_cost": s.fuel_cost,
        "estimated_cost": s.estimated_cost,
        "notes": s.notes,
        "started_at": s.started_at,
        "completed_at": s.completed_at,
        "cancelled_at": s.cancelled_at,
        "cancellation_reason": s.cancellation_reason,
        "version": s.version,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
    }
    if hasattr(s, "delivery_count"):
        data["delivery_count"] = s.delivery_count
        data["vehicle_count"] = s.vehicle_count
    if detail:
        data["vehicles"] = [assignment_to_dict(a) for a in s.vehicle_assignments.select_related("vehicle", "driver")]
        data.update(services.schedule_detail(s))
    return data


def assignment_to_dict(a) -> dict:
    return {
        "id": a.id,
        "schedule_id": a.schedule_id,
        "vehicle": {
            "id": a.vehicle_id,
            "license_plate": a.vehicle.license_plate,
            "vehicle_type": a.vehicle.vehicle_type,
            "capacity_portions": a.vehicle.capacity_portions,
        },
        "driver": {"id": a.driver_id, "name": a.driver.display_name},
        "helpers": a.helpers,
        "start_time": a.start_time,
        "end_time": a.end_time,
        "start_location": a.start_location,
        "end_location": a.end_location,
        "notes": a.notes,
        "distribution_date": a.distribution_date,
        "wave": a.wave,
        "is_active": a.is_active,
    }


# ---------------------------------------------------------------------------
# /distribution/schedules
# ---------------------------------------------------------------------------

@api_view("GET", "POST")
def schedules(request):
    if request.method == "POST":
        return _create_schedule(request)
    return _list_schedules(request)


@require_roles(*ALL_ROLES)
def _list_schedules(request):
    f = bind(ScheduleFilterForm, request.GET)
    qs = services.list_schedules(
        request.org, status=f["status"] or None, wave=f["wave"] or None, start=f["start"], end=f["end"],
    )
    return ok([schedule_to_dict(s) for s in qs], count=qs.count())


@require_roles(*PLANNER_ROLES)
def _create_schedule(request):
    f = bind(ScheduleForm, parse_json(request))
    sched = services.create_schedule(
        request.org, request.user,
        production_batch=f["production_batch"],
        distribution_date=f["distribution_date"],
        wave=f["wave"],
        estimated_beneficiaries=f["estimated_beneficiaries"] or 0,
        total_portions=f["total_portions"] or 0,
        packaging_type=f["packaging_type"],
        packaging_cost=f["packaging_cost"],
        fuel_cost=f["fuel_cost"],
        notes=f["notes"],
        request=request,
    )
    return ok(schedule_to_dict(sched), status=201)


@api_view("GET", "PATCH", "DELETE")
def schedule_detail(request, schedule_id: int):
    if request.method == "PATCH":
        return _update_schedule(request, schedule_id)
    if request.method == "DELETE":
        return _delete_schedule(request, schedule_id)
    return _get_schedule(request, schedule_id)


@require_roles(*ALL_ROLES)
def _get_schedule(request, schedule_id):
    sched = services.get_schedule(request.org, schedule_id)
    return ok(schedule_to_dict(sched, detail=True))


@require_roles(*PLANNER_ROLES)
def _update_schedule(request, schedule_id):
    sched = services.get_schedule(request.org, schedule_id)
    data = parse_json(request)
    fields = present(bind(ScheduleUpdateForm, data), data)
    sched = services.update_schedule(sched, request.user, request=request, **fields)
    return ok(schedule_to_dict(sched))


@require_roles(*PLANNER_ROLES)
def _delete_schedule(request, schedule_id):
    sched = services.get_schedule(request.org, schedule_id)
    services.delete_schedule(sched, request.user, request=request)
    return ok({"id": schedule_id, "deleted": True})


@api_view("GET")
@require_roles(*ALL_ROLES)
def schedule_statistics(request):
    f = bind(StatisticsQueryForm, request.GET)
    return ok(services.get_schedule_statistics(request.org, start=f["start"], end=f["end"]))


# ---------------------------------------------------------------------------
# lifecycle + vehicles
# ---------------------------------------------------------------------------

@api_view("POST")
@require_roles(*PLANNER_ROLES)
def transition(request, schedule_id: int):
    sched = services.get_schedule(request.org, schedule_id)
    f = bind(TransitionForm, parse_json(request))
    result = services.transition_schedule(sched, request.user, f["status"], reason=f["reason"], request=request)
    return ok(schedule_to_dict(result.schedule), previous_status=result.previous_status, warnings=result.warnings)


@api_view("POST")
@require_roles(*PLANNER_ROLES)
def assign_vehicle(request, schedule_id: int):
    sched = services.get_schedule(request.org, schedule_id)
    f = bind(AssignVehicleForm, parse_json(request))
    assignment = services.assign_vehicle(
        sched, request.user,
        vehicle_id=f["vehicle_id"],
        driver_id=f["driver_id"],
        helpers=f["helpers"],
        start_time=f["start_time"],
        end_time=f["end_time"],
        start_location=f["start_location"],
        end_location=f["end_location"],
        notes=f["notes"],
        request=request,
    )
    return ok(assignment_to_dict(assignment), status=201)


@api_view("DELETE")
@require_roles(*PLANNER_ROLES)
def unassign_vehicle(request, schedule_id: int, vehicle_id: int):
    sched = services.get_schedule(request.org, schedule_id)
    services.unassign_vehicle(sched, request.user, vehicle_id, request=request)
    return ok({"schedule_id": schedule_id, "vehicle_id": vehicle_id, "removed": True})


@api_view("GET")
@require_roles(*PLANNER_ROLES)
def schedule_history(request, schedule_id: int):
    sched = services.get_schedule(request.org, schedule_id)
    rows = audit_trail(sched).select_related("actor")
    return ok([
        {
            "action": r.action,
            "actor": r.actor.email if r.actor else None,
            "payload": r.payload,
            "created_at": r.created_at,
        }
        for r in rows
    ])


@api_view("GET")
@require_roles(*PLANNER_ROLES)
def vehicles(request):
    return ok([
        {
            "id": v.id,
            "license_plate": v.license_plate,
            "vehicle_type": v.vehicle_type,
            "capacity_portions": v.capacity_portions,
            "has_insulated_box": v.has_insulated_box,
        }
        for v in available_vehicles(request.org)
    ])
