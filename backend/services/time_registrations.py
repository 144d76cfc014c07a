"""
Time registration lifecycle.

A worker has at most one open (in_progress) registration. The kiosk toggle
opens or closes it based on whether one exists; admins can create, edit and
delete registrations directly, and every admin write is flagged as a manual
intervention.
"""
import logging
import sqlite3
from datetime import datetime
from typing import Any, Literal, TypedDict

from backend import timeutils
from backend.errors import BadRequest, Conflict, NotFound, Unauthorized
from backend.responses import parse_pagination
from backend.security import verify_pin
from database.db import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    close_registration,
    delete_registration,
    find_open_registration,
    get_registration,
    get_registration_detail,
    get_worker_by_id,
    get_workers_with_pin_hashes,
    insert_registration,
    list_registrations,
    update_registration_fields,
)

logger = logging.getLogger(__name__)

ToggleAction = Literal["check_in", "check_out"]


class ToggleResult(TypedDict):
    action: ToggleAction
    registration: dict[str, Any]
    worker: dict[str, Any]


def with_duration(registration: dict[str, Any]) -> dict[str, Any]:
    return {
        **registration,
        "duration_hours": timeutils.duration_hours(registration["check_in"], registration["check_out"]),
    }


def _find_worker_by_pin(pin: str) -> dict[str, Any] | None:
    # Hashes are salted, so there is no indexed lookup: scan in insertion
    # order and take the first match. Shared PINs resolve to the oldest worker.
    for worker in get_workers_with_pin_hashes():
        if verify_pin(pin, worker["pin_hash"]):
            return worker
    return None


def toggle_check_in_out(pin: str) -> ToggleResult:
    worker = _find_worker_by_pin(pin)
    if worker is None:
        logger.warning("Toggle rejected: PIN did not match any worker")
        raise Unauthorized("Invalid PIN")

    if not worker["is_active"]:
        logger.warning("Toggle rejected: worker %s is inactive", worker["id"])
        raise NotFound("Worker not found or inactive")

    worker_payload = {
        "id": worker["id"],
        "first_name": worker["first_name"],
        "last_name": worker["last_name"],
    }
    now = timeutils.to_iso(timeutils.utcnow())

    open_registration = find_open_registration(worker["id"])
    if open_registration:
        if now <= open_registration["check_in"]:
            raise BadRequest("Check-out time must be after check-in time")
        closed = close_registration(open_registration["id"], now)
        if closed is None:
            # another request checked this registration out first
            raise Conflict("Registration was already closed")
        logger.info("Worker %s checked out (registration %s)", worker["id"], closed["id"])
        return {"action": "check_out", "registration": with_duration(closed), "worker": worker_payload}

    try:
        opened = insert_registration(
            worker_id=worker["id"],
            check_in=now,
            manual_intervention=False,
        )
    except sqlite3.IntegrityError:
        # a concurrent toggle opened one between our read and write
        raise Conflict("Worker already has an active registration")
    logger.info("Worker %s checked in (registration %s)", worker["id"], opened["id"])
    return {"action": "check_in", "registration": opened, "worker": worker_payload}


def get_time_registration(registration_id: str) -> dict[str, Any]:
    registration = get_registration_detail(registration_id)
    if not registration:
        raise NotFound("Registration not found")
    return with_duration(registration)


def list_time_registrations(
    *,
    worker_id: str | None = None,
    status: str | None = None,
    manual_intervention: bool | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> dict[str, Any]:
    try:
        lower = timeutils.parse_range_bound(date_from)
        upper = timeutils.parse_range_bound(date_to, end_of_day=True)
    except ValueError:
        raise BadRequest("date_from and date_to must be ISO-8601 dates")

    clean_page, clean_limit, offset = parse_pagination(page, limit)
    rows, total = list_registrations(
        worker_id=worker_id,
        status=status,
        manual_intervention=manual_intervention,
        date_from=lower,
        date_to=upper,
        sort_by=sort_by or "check_in",
        sort_order=sort_order or "desc",
        limit=clean_limit,
        offset=offset,
    )
    return {
        "registrations": [with_duration(r) for r in rows],
        "page": clean_page,
        "limit": clean_limit,
        "total_items": total,
    }


def create_time_registration(
    *,
    worker_id: str,
    check_in: datetime,
    admin_id: int,
    notes: str | None = None,
) -> dict[str, Any]:
    worker = get_worker_by_id(worker_id)
    if not worker:
        raise NotFound("Worker not found")
    if not worker["is_active"]:
        raise BadRequest("Worker is not active")

    if find_open_registration(worker_id):
        raise Conflict("Worker already has an active registration")

    if timeutils.to_utc(check_in) > timeutils.utcnow():
        raise BadRequest("Check-in time cannot be in the future")

    try:
        registration = insert_registration(
            worker_id=worker_id,
            check_in=timeutils.to_iso(check_in),
            manual_intervention=True,
            notes=notes,
            modified_by_admin_id=admin_id,
        )
    except sqlite3.IntegrityError:
        raise Conflict("Worker already has an active registration")

    logger.info("Admin %s created registration %s for worker %s", admin_id, registration["id"], worker_id)
    return registration


def update_time_registration(registration_id: str, patch: dict[str, Any], admin_id: int) -> dict[str, Any]:
    """
    Apply an admin patch (check_in, check_out, status, notes).

    The effective check-in/check-out pair is the patch value falling back to
    the stored one, and must stay ordered. Supplying check_out without a
    status completes the registration.
    """
    existing = get_registration(registration_id)
    if not existing:
        raise NotFound("Registration not found")

    check_in = patch.get("check_in")
    check_out = patch.get("check_out")
    effective_in = timeutils.to_utc(check_in) if check_in else timeutils.parse_iso(existing["check_in"])
    if check_out:
        effective_out = timeutils.to_utc(check_out)
    elif existing["check_out"]:
        effective_out = timeutils.parse_iso(existing["check_out"])
    else:
        effective_out = None

    if effective_in > timeutils.utcnow():
        raise BadRequest("Check-in time cannot be in the future")
    if effective_out is not None and effective_out <= effective_in:
        raise BadRequest("Check-out time must be after check-in time")

    status = patch.get("status")
    if check_out and not status:
        status = STATUS_COMPLETED

    effective_status = status or existing["status"]
    if effective_status == STATUS_COMPLETED and effective_out is None:
        raise BadRequest("A completed registration needs a check-out time")
    if effective_status == STATUS_IN_PROGRESS and effective_out is not None:
        raise BadRequest("A registration with a check-out time cannot be in progress")

    fields: dict[str, Any] = {
        "manual_intervention": True,
        "modified_by_admin_id": admin_id,
    }
    if check_in:
        fields["check_in"] = timeutils.to_iso(check_in)
    if check_out:
        fields["check_out"] = timeutils.to_iso(check_out)
    if status:
        fields["status"] = status
    if "notes" in patch:
        fields["notes"] = patch["notes"]

    updated = update_registration_fields(registration_id, fields)
    if updated is None:
        raise NotFound("Registration not found")

    logger.info("Admin %s updated registration %s", admin_id, registration_id)
    return with_duration(updated)


def delete_time_registration(registration_id: str) -> None:
    if not delete_registration(registration_id):
        raise NotFound("Registration not found")
    logger.info("Registration %s deleted", registration_id)
