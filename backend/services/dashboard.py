import logging
from typing import Any

from backend import config, timeutils
from backend.errors import BadRequest
from backend.services.time_registrations import with_duration
from database.db import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    get_open_registration_worker_ids,
    get_recent_registrations,
    get_registrations_in_range,
    get_worker_counts,
)

logger = logging.getLogger(__name__)


def _ratio(part: float, whole: float) -> float:
    return part / whole if whole else 0


def _percent(part: int, whole: int) -> float:
    return round(_ratio(part, whole) * 100, 2)


def summarize_registrations(registrations: list[dict[str, Any]]) -> dict[str, Any]:
    """Counts, manual-intervention rate and hour totals for a set of registrations."""
    total = len(registrations)
    completed = sum(1 for r in registrations if r["status"] == STATUS_COMPLETED)
    in_progress = sum(1 for r in registrations if r["status"] == STATUS_IN_PROGRESS)
    manual = sum(1 for r in registrations if r["manual_intervention"])
    total_hours = sum(timeutils.hours_between(r["check_in"], r["check_out"]) for r in registrations)
    return {
        "total": total,
        "completed": completed,
        "in_progress": in_progress,
        "manual_interventions": manual,
        "manual_intervention_rate": _percent(manual, total),
        "successful_registrations_rate": _percent(completed, total),
        "total_hours": total_hours,
    }


def get_dashboard_stats(date_from: str | None = None, date_to: str | None = None) -> dict[str, Any]:
    now = timeutils.utcnow()
    try:
        lower = timeutils.parse_range_bound(date_from) or timeutils.to_iso(
            timeutils.days_ago(config.DASHBOARD_DEFAULT_DAYS, now)
        )
        upper = timeutils.parse_range_bound(date_to, end_of_day=True) or timeutils.to_iso(now)
    except ValueError:
        raise BadRequest("date_from and date_to must be ISO-8601 dates")
    logger.debug("Dashboard stats window %s .. %s", lower, upper)

    summary = summarize_registrations(get_registrations_in_range(date_from=lower, date_to=upper))
    counts = get_worker_counts()
    active_workers = counts["active"]
    total_hours = summary["total_hours"]

    today = get_registrations_in_range(date_from=timeutils.to_iso(timeutils.local_midnight_utc(now)))
    today_hours = sum(timeutils.hours_between(r["check_in"], r["check_out"]) for r in today)

    return {
        "time_period": {"from": lower, "to": upper},
        "registrations": {
            "total": summary["total"],
            "completed": summary["completed"],
            "in_progress": summary["in_progress"],
            "manual_interventions": summary["manual_interventions"],
            "manual_intervention_rate": summary["manual_intervention_rate"],
        },
        "workers": {
            "total": counts["total"],
            "active": active_workers,
            "inactive": counts["total"] - active_workers,
            "with_active_registration": len(get_open_registration_worker_ids()),
        },
        "work_hours": {
            "total_hours": round(total_hours, 2),
            "average_per_registration": round(_ratio(total_hours, summary["completed"]), 2),
            "average_per_worker": round(_ratio(total_hours, active_workers), 2),
        },
        "performance": {
            "successful_registrations_rate": summary["successful_registrations_rate"],
        },
        "recent_activity": {
            "today_registrations": len(today),
            "today_hours": round(today_hours, 2),
        },
    }


def get_recent_entries(limit: int | None = None) -> list[dict[str, Any]]:
    clean_limit = min(max(1, limit or config.RECENT_ENTRIES_LIMIT_DEFAULT), config.RECENT_ENTRIES_LIMIT_MAX)
    return [
        {
            "id": r["id"],
            "worker": {
                "id": r["worker"]["id"],
                "first_name": r["worker"]["first_name"],
                "last_name": r["worker"]["last_name"],
            },
            "check_in": r["check_in"],
            "check_out": r["check_out"],
            "duration_hours": with_duration(r)["duration_hours"],
            "status": r["status"],
            "manual_intervention": r["manual_intervention"],
            "created_at": r["created_at"],
        }
        for r in get_recent_registrations(clean_limit)
    ]
