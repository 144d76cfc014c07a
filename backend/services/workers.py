import logging
from typing import Any

from backend import timeutils
from backend.errors import Conflict, NotFound
from backend.responses import parse_pagination
from backend.security import hash_pin, verify_pin
from database.db import (
    add_worker,
    get_completed_registrations_for_worker,
    get_open_registration_worker_ids,
    get_worker_by_id,
    get_workers_with_pin_hashes,
    list_workers as list_worker_rows,
    update_worker_fields,
)

logger = logging.getLogger(__name__)


def _pin_in_use(pin: str, *, exclude_id: str | None = None) -> bool:
    # O(n) bcrypt checks: salted hashes cannot be looked up by value.
    return any(
        verify_pin(pin, worker["pin_hash"])
        for worker in get_workers_with_pin_hashes(exclude_id=exclude_id)
    )


def list_workers(
    *,
    search: str | None = None,
    department: str | None = None,
    is_active: bool | None = None,
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> dict[str, Any]:
    clean_page, clean_limit, offset = parse_pagination(page, limit)
    rows, total = list_worker_rows(
        search=search.strip() if search else None,
        department=department,
        # only active workers unless asked otherwise
        is_active=True if is_active is None else is_active,
        sort_by=sort_by or "last_name",
        sort_order=sort_order or "asc",
        limit=clean_limit,
        offset=offset,
    )
    return {"workers": rows, "page": clean_page, "limit": clean_limit, "total_items": total}


def list_active_workers() -> list[dict[str, Any]]:
    """Kiosk listing: active workers and whether each is currently clocked in."""
    rows, _total = list_worker_rows(is_active=True, limit=-1)
    clocked_in = get_open_registration_worker_ids()
    return [
        {
            "id": w["id"],
            "first_name": w["first_name"],
            "last_name": w["last_name"],
            "department": w["department"],
            "has_active_registration": w["id"] in clocked_in,
        }
        for w in rows
    ]


def get_worker(worker_id: str) -> dict[str, Any]:
    worker = get_worker_by_id(worker_id)
    if not worker:
        raise NotFound("Worker not found")

    completed = get_completed_registrations_for_worker(worker_id)
    total_hours = sum(timeutils.hours_between(r["check_in"], r["check_out"]) for r in completed)
    average = total_hours / len(completed) if completed else 0
    return {
        **worker,
        "stats": {
            "total_registrations": len(completed),
            "total_hours_worked": round(total_hours, 2),
            "average_daily_hours": round(average, 2),
        },
    }


def create_worker(
    *,
    first_name: str,
    last_name: str,
    pin: str,
    department: str | None = None,
    is_active: bool | None = None,
) -> dict[str, Any]:
    if _pin_in_use(pin):
        raise Conflict("PIN already exists")

    worker = add_worker(
        first_name=first_name,
        last_name=last_name,
        pin_hash=hash_pin(pin),
        department=department,
        is_active=True if is_active is None else is_active,
    )
    logger.info("Worker %s created", worker["id"])
    return worker


def update_worker(worker_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    clean = {k: v for k, v in fields.items() if k in {"first_name", "last_name", "department", "is_active"}}
    if not get_worker_by_id(worker_id):
        raise NotFound("Worker not found")
    updated = update_worker_fields(worker_id, clean)
    if updated is None:
        raise NotFound("Worker not found")
    logger.info("Worker %s updated (%s)", worker_id, ", ".join(sorted(clean)) or "no fields")
    return updated


def update_worker_pin(worker_id: str, new_pin: str) -> None:
    if not get_worker_by_id(worker_id):
        raise NotFound("Worker not found")
    if _pin_in_use(new_pin, exclude_id=worker_id):
        raise Conflict("PIN already in use")
    update_worker_fields(worker_id, {"pin_hash": hash_pin(new_pin)})
    logger.info("Worker %s PIN rotated", worker_id)


def deactivate_worker(worker_id: str) -> None:
    if update_worker_fields(worker_id, {"is_active": False}) is None:
        raise NotFound("Worker not found")
    logger.info("Worker %s deactivated", worker_id)
