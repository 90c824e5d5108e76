from datetime import date, timedelta
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from reporting.services import build_rollups_for_day


class Command(BaseCommand):
    help = "Build daily distribution rollups for a date range (default last 30 days)."

    def add_arguments(self, parser):
        parser.add_argument("--start", type=str, help="YYYY-MM-DD")
        parser.add_argument("--end", type=str, help="YYYY-MM-DD")

    def handle(self, *args, **opts):
        def _parse(s):
            if not s:
                return None
            try:
                return date.fromisoformat(s)
            except ValueError:
                raise CommandError(f"Not a date: {s!r} (expected YYYY-MM-DD)")

        end = _parse(opts.get("end")) or timezone.localdate()
        start = _parse(opts.get("start")) or (end - timedelta(days=30))
        if start > end:
            raise CommandError("--start is after --end")

        d = start
        n = 0
        while d <= end:
            build_rollups_for_day(d)
            self.stdout.write(f"Rolled up {d}")
            d += timedelta(days=1)
            n += 1
        self.stdout.write(self.style.SUCCESS(f"Completed {n} days."))
