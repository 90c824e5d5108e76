from decimal import Decimal

import pytest
from django.test import Client
from django.utils import timezone

from distribution import services
from distribution.models import Schedule
from tracking import services as tracking

BASE = "/distribution"


@pytest.fixture
def driver_client(driver):
    c = Client()
    c.force_login(driver)
    return c


def _json(client, method, url, body=None):
    return getattr(client, method)(url, data=body or {}, content_type="application/json")


@pytest.mark.django_db
def test_anonymous_gets_401(client):
    r = client.get(f"{BASE}/schedules")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.django_db
def test_viewer_reads_but_cannot_plan(client, viewer, schedule):
    client.force_login(viewer)
    r = client.get(f"{BASE}/schedules")
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["data"]] == [schedule.pk]

    r = _json(client, "post", f"{BASE}/schedules", {"production_batch": "B-9", "distribution_date": "2026-03-02"})
    assert r.status_code == 403
    assert not Schedule.objects.filter(production_batch="B-9").exists()


@pytest.mark.django_db
def test_create_and_list_schedules(planner_client):
    r = _json(planner_client, "post", f"{BASE}/schedules", {
        "production_batch": "B-2026-0302",
        "distribution_date": "2026-03-02",
        "total_portions": 450,
        "estimated_beneficiaries": 440,
        "packaging_cost": "120000",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["status"] == "PLANNED"
    assert body["data"]["wave"] == "MORNING"
    assert Decimal(body["data"]["estimated_cost"]) == Decimal("120000")

    r = planner_client.get(f"{BASE}/schedules", {"status": "PLANNED"})
    data = r.json()
    assert data["count"] == 1
    assert data["data"][0]["delivery_count"] == 0


@pytest.mark.django_db
def test_validation_error_body(planner_client):
    r = _json(planner_client, "post", f"{BASE}/schedules", {"distribution_date": "not a date"})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "VALIDATION_FAILED"
    assert set(err["fields"]) == {"production_batch", "distribution_date"}


@pytest.mark.django_db
def test_malformed_json(planner_client):
    r = planner_client.post(f"{BASE}/schedules", data="{nope", content_type="application/json")
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Malformed JSON body."


@pytest.mark.django_db
def test_wrong_method(planner_client, schedule):
    r = _json(planner_client, "put", f"{BASE}/schedules/{schedule.pk}", {})
    assert r.status_code == 405
    assert r.json()["error"]["code"] == "METHOD_NOT_ALLOWED"
    assert r["Allow"] == "DELETE, GET, PATCH"


@pytest.mark.django_db
def test_patch_and_delete(planner_client, schedule):
    url = f"{BASE}/schedules/{schedule.pk}"
    r = _json(planner_client, "patch", url, {"notes": "two extra classes"})
    assert r.status_code == 200
    assert r.json()["data"]["notes"] == "two extra classes"
    assert r.json()["data"]["total_portions"] == 300

    r = planner_client.get(url)
    assert r.json()["data"]["allowed_transitions"] == ["CANCELLED", "PREPARED"]

    r = planner_client.delete(url)
    assert r.status_code == 200
    assert r.json()["data"]["deleted"] is True
    assert planner_client.get(url).status_code == 404


@pytest.mark.django_db
def test_other_kitchens_schedule_is_404(planner_client, make_schedule, other_org):
    foreign = make_schedule(org=other_org)
    r = planner_client.get(f"{BASE}/schedules/{foreign.pk}")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.django_db
def test_transition_gate_violation_body(planner_client, schedule):
    r = _json(planner_client, "post", f"{BASE}/schedules/{schedule.pk}/status", {"status": "PREPARED"})
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "GATE_VIOLATION"
    assert [v["code"] for v in err["violations"]] == ["NO_VEHICLE_ASSIGNED"]


@pytest.mark.django_db
def test_invalid_transition_body(planner_client, schedule):
    r = _json(planner_client, "post", f"{BASE}/schedules/{schedule.pk}/status", {"status": "COMPLETED"})
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "INVALID_TRANSITION"
    assert err["allowed"] == ["CANCELLED", "PREPARED"]


@pytest.mark.django_db
def test_assign_and_transition(planner_client, schedule, vehicle, driver):
    r = _json(planner_client, "post", f"{BASE}/schedules/{schedule.pk}/vehicles", {
        "vehicle_id": vehicle.pk, "driver_id": driver.pk, "helpers": ["Asep"],
    })
    assert r.status_code == 201
    assert r.json()["data"]["vehicle"]["license_plate"] == "T 1234 AB"

    r = _json(planner_client, "post", f"{BASE}/schedules/{schedule.pk}/status", {"status": "PREPARED"})
    assert r.status_code == 200
    body = r.json()
    assert body["previous_status"] == "PLANNED"
    assert body["warnings"] == []
    assert body["data"]["status"] == "PREPARED"


@pytest.mark.django_db
def test_vehicle_conflict_body(planner_client, make_schedule, manager, vehicle, driver):
    first = make_schedule()
    second = make_schedule()
    services.assign_vehicle(first, manager, vehicle.pk, driver.pk)

    r = _json(planner_client, "post", f"{BASE}/schedules/{second.pk}/vehicles", {
        "vehicle_id": vehicle.pk, "driver_id": driver.pk,
    })
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "VEHICLE_CONFLICT"
    assert err["conflicting_schedule_id"] == first.pk


@pytest.mark.django_db
def test_unassign_endpoint(planner_client, schedule, manager, vehicle, driver):
    services.assign_vehicle(schedule, manager, vehicle.pk, driver.pk)
    r = planner_client.delete(f"{BASE}/schedules/{schedule.pk}/vehicles/{vehicle.pk}")
    assert r.status_code == 200
    assert r.json()["data"]["removed"] is True


@pytest.mark.django_db
def test_statistics_endpoint(planner_client, schedule):
    r = planner_client.get(f"{BASE}/schedules/statistics")
    assert r.status_code == 200
    assert r.json()["data"]["overall"]["total_schedules"] == 1

    r = planner_client.get(f"{BASE}/schedules/statistics", {"start": "2026-03-10", "end": "2026-03-01"})
    assert r.status_code == 400


@pytest.mark.django_db
def test_delivery_flow_over_http(planner_client, driver_client, running_schedule, viewer):
    r = _json(planner_client, "post", f"{BASE}/schedules/{running_schedule.pk}/deliveries", {
        "target_name": "SDN 1 Purwakarta", "portions_planned": 120, "helper_names": ["Rina"],
    })
    assert r.status_code == 201
    delivery_id = r.json()["data"]["id"]

    client = driver_client
    r = _json(client, "post", f"{BASE}/deliveries/{delivery_id}/depart", {
        "latitude": -6.5565, "longitude": 107.4433, "departure_temp": "75",
    })
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "DEPARTED"

    r = _json(client, "post", f"{BASE}/deliveries/{delivery_id}/tracking", {
        "latitude": -6.55, "longitude": 107.45, "accuracy": 5,
    })
    assert r.status_code == 201
    assert r.json()["data"]["status"] == "DEPARTED"

    r = _json(client, "post", f"{BASE}/deliveries/{delivery_id}/tracking", {"latitude": 95, "longitude": 107})
    assert r.status_code == 400

    r = _json(client, "post", f"{BASE}/deliveries/{delivery_id}/complete", {
        "portions_delivered": 120, "serving_temp": "63",
    })
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "DELIVERED"

    client = Client()
    client.force_login(viewer)
    r = client.get(f"{BASE}/deliveries/{delivery_id}/tracking")
    body = r.json()
    assert len(body["data"]) == 2
    assert body["statistics"]["total_points"] == 2
    assert body["statistics"]["total_distance_km"] > 0

    r = client.get(f"{BASE}/deliveries/{delivery_id}/temperature")
    assert r.json()["data"]["overall"] == "SAFE"

    r = _json(client, "post", f"{BASE}/deliveries/{delivery_id}/fail", {"reason": "x"})
    assert r.status_code == 403


@pytest.mark.django_db
def test_tracking_refused_before_departure(driver_client, running_schedule, manager):
    d = tracking.create_delivery(running_schedule, manager, "SDN 7", 40)
    r = _json(driver_client, "post", f"{BASE}/deliveries/{d.pk}/tracking", {"latitude": -6.5, "longitude": 107.4})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "TRACKING_NOT_ALLOWED"


@pytest.mark.django_db
def test_issue_endpoints(planner_client, driver_client, schedule):
    client = driver_client
    r = _json(client, "post", f"{BASE}/schedules/{schedule.pk}/issues", {
        "issue_type": "VEHICLE_BREAKDOWN", "severity": "CRITICAL", "description": "Engine overheated",
    })
    assert r.status_code == 201
    issue_id = r.json()["data"]["id"]

    # drivers report, planners resolve
    r = _json(client, "post", f"{BASE}/issues/{issue_id}/resolve", {"notes": "fixed"})
    assert r.status_code == 403

    r = _json(planner_client, "post", f"{BASE}/issues/{issue_id}/resolve", {"notes": "Spare van sent"})
    assert r.status_code == 200
    assert r.json()["data"]["resolved"] is True

    r = _json(planner_client, "post", f"{BASE}/issues/{issue_id}/resolve", {"notes": "again"})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "ALREADY_RESOLVED"

    r = planner_client.get(f"{BASE}/schedules/{schedule.pk}/issues", {"resolved": "true"})
    body = r.json()
    assert [i["id"] for i in body["data"]] == [issue_id]
    assert body["summary"]["resolved"] == 1


@pytest.mark.django_db
def test_whoami(planner_client, org):
    r = planner_client.get("/whoami/")
    assert r.status_code == 200
    assert r.json()["active_org"] == org.name
    assert r.json()["role"] == "DISTRIBUTION_MANAGER"


@pytest.mark.django_db
def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "db_ok": True, "celery_beat_ok": False}


@pytest.mark.django_db
def test_healthz_sees_a_fresh_beat(client):
    from ops.models import Heartbeat
    Heartbeat.objects.create(key="beat", seen_at=timezone.now())
    assert client.get("/healthz").json()["celery_beat_ok"] is True


@pytest.mark.django_db
def test_schedule_history(planner_client, schedule, manager):
    services.transition_schedule(schedule, manager, Schedule.Status.CANCELLED, reason="Flooding")
    r = planner_client.get(f"{BASE}/schedules/{schedule.pk}/history")
    rows = r.json()["data"]
    assert [row["action"] for row in rows] == ["SCHEDULE_CREATED", "SCHEDULE_STATUS_CHANGED"]
    assert rows[1]["actor"] == manager.email
    assert rows[1]["payload"]["reason"] == "Flooding"


@pytest.mark.django_db
def test_vehicle_list(planner_client, vehicle, vehicle2):
    r = planner_client.get(f"{BASE}/vehicles")
    assert [v["license_plate"] for v in r.json()["data"]] == ["T 1234 AB", "T 5678 CD"]


@pytest.mark.django_db
def test_tracking_survives_a_limiter_outage(driver_client, running_schedule, manager, driver, settings, monkeypatch):
    import redis
    from tracking import ratelimit

    def refuse():
        raise redis.exceptions.ConnectionError("Connection refused")

    settings.TRACKING_RATE_LIMIT_PER_MIN = 5
    monkeypatch.setattr(ratelimit, "_bucket", lambda *a, **kw: refuse())
    d = tracking.depart_delivery(tracking.create_delivery(running_schedule, manager, "SDN 8", 40), driver)

    r = _json(driver_client, "post", f"{BASE}/deliveries/{d.pk}/tracking", {"latitude": -6.5, "longitude": 107.4})
    assert r.status_code == 201
    assert r.json()["success"] is True
