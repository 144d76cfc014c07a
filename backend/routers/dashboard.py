from fastapi import APIRouter, Depends, Query

from backend import config
from backend.responses import success_response
from backend.security import require_admin
from backend.services import dashboard as service

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/admin/dashboard/stats")
def dashboard_stats(date_from: str | None = None, date_to: str | None = None):
    return success_response(service.get_dashboard_stats(date_from, date_to))


@router.get("/admin/dashboard/recent-entries")
def recent_entries(limit: int | None = Query(default=None, ge=1, le=config.RECENT_ENTRIES_LIMIT_MAX)):
    return success_response({"entries": service.get_recent_entries(limit)})
