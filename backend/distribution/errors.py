"""
Typed failures of the distribution engine.

Services raise these before touching the database; distribution.http turns
them into the structured JSON error body. Every class carries a stable
machine code and the HTTP status the API answers with.
"""
from __future__ import annotations

from typing import Iterable, Sequence


class DistributionError(Exception):
    code = "DISTRIBUTION_ERROR"
    status_code = 400
    default_message = "Distribution operation failed."

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        body.update(self.details)
        return body


class NotFound(DistributionError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Record not found."


class InvalidTransition(DistributionError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, target: str, allowed: Iterable[str]):
        allowed = sorted(allowed)
        super().__init__(
            f"Cannot move from {current} to {target}.",
            current=current, target=target, allowed=allowed,
        )
        self.current = current
        self.target = target
        self.allowed = allowed


class GateViolation(DistributionError):
    """All unmet preconditions of one transition attempt, reported together."""
    code = "GATE_VIOLATION"
    status_code = 422

    def __init__(self, target: str, violations: Sequence[dict]):
        super().__init__(
            f"Transition to {target} is blocked.",
            target=target, violations=list(violations),
        )
        self.target = target
        self.violations = list(violations)

    @property
    def violation_codes(self) -> list[str]:
        return [v["code"] for v in self.violations]


class VehicleConflict(DistributionError):
    code = "VEHICLE_CONFLICT"
    status_code = 409

    def __init__(self, vehicle, conflicting_schedule):
        super().__init__(
            f"Vehicle {vehicle.license_plate} is already booked for "
            f"{conflicting_schedule.distribution_date} wave {conflicting_schedule.wave}.",
            vehicle_id=vehicle.pk,
            conflicting_schedule_id=conflicting_schedule.pk,
            conflicting_batch=conflicting_schedule.production_batch,
            distribution_date=conflicting_schedule.distribution_date.isoformat(),
            wave=conflicting_schedule.wave,
        )
        self.conflicting_schedule_id = conflicting_schedule.pk


class DuplicateAssignment(DistributionError):
    code = "DUPLICATE_ASSIGNMENT"
    status_code = 409
    default_message = "Vehicle is already assigned to this schedule."


class TrackingNotAllowed(DistributionError):
    code = "TRACKING_NOT_ALLOWED"
    status_code = 409
    default_message = "Tracking is only available for an active delivery."


class AlreadyResolved(DistributionError):
    code = "ALREADY_RESOLVED"
    status_code = 409
    default_message = "Issue is already resolved."


class ConcurrentModification(DistributionError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409
    default_message = "Record was changed by another request; reload and retry."


class ImmutableRecord(DistributionError):
    code = "IMMUTABLE_RECORD"
    status_code = 409
    default_message = "Record can no longer be changed."


class ValidationFailed(DistributionError):
    code = "VALIDATION_FAILED"
    status_code = 400
    default_message = "Invalid input."


class RateLimited(DistributionError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "Too many location updates; slow down."


class StorageFailure(DistributionError):
    code = "STORAGE_FAILURE"
    status_code = 503
    default_message = "Storage is unavailable; nothing was saved."
