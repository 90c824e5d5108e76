from __future__ import annotations
import csv, io
from datetime import timedelta
from django.http import HttpResponse
from django.utils import timezone
from accounts.decorators import require_roles
from accounts.models import PLANNER_ROLES
from distribution.forms import StatisticsQueryForm
from distribution.http import api_view, bind, ok
from .models import DistributionStatDaily
from .services import period_summary


def _period(request):
    f = bind(StatisticsQueryForm, request.GET)
    end = f["end"] or timezone.localdate()
    start = f["start"] or (end - timedelta(days=29))
    return start, end


@api_view("GET")
@require_roles(*PLANNER_ROLES)
def daily_summary(request):
    org = request.org
    start, end = _period(request)
    trend = (DistributionStatDaily.objects
             .filter(organization=org, day__gte=start, day__lte=end)
             .order_by("day")
             .values("day", "schedules_total", "deliveries_delivered", "deliveries_failed",
                     "deliveries_late", "portions_delivered", "distance_km", "issues_critical"))
    return ok({"start": start, "end": end, "summary": period_summary(org, start, end), "trend": list(trend)})


@api_view("GET")
@require_roles(*PLANNER_ROLES)
def export_summary_csv(request):
    org = request.org
    start, end = _period(request)
    agg = period_summary(org, start, end)
    buff = io.StringIO()
    w = csv.writer(buff)
    w.writerow(["Kitchen", org.name])
    w.writerow(["Period", f"{start} to {end}"])
    w.writerow([])
    w.writerow(["Metric", "Value"])
    for k, v in agg.items():
        w.writerow([k, v])
    resp = HttpResponse(buff.getvalue(), content_type="text/csv")
    resp["Content-Disposition"] = f'attachment; filename="{org.code}_{start}_{end}_distribution.csv"'
    return resp
