from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import AwareDatetime, BaseModel, Field, model_validator

from backend import config
from backend.responses import pagination_metadata, success_response
from backend.security import PIN_PATTERN, require_admin
from backend.services import time_registrations as service

router = APIRouter()

RegistrationStatus = Literal["in_progress", "completed"]


class ToggleRequest(BaseModel):
    pin: str = Field(pattern=PIN_PATTERN)


class TimeRegistrationCreate(BaseModel):
    worker_id: UUID
    check_in: AwareDatetime
    notes: str | None = Field(default=None, max_length=1000)


class TimeRegistrationUpdate(BaseModel):
    check_in: AwareDatetime | None = None
    check_out: AwareDatetime | None = None
    status: RegistrationStatus | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _require_a_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


# Kiosk endpoint: the PIN is the only credential.
@router.post("/time-registrations/toggle")
def toggle_time_registration(payload: ToggleRequest):
    result = service.toggle_check_in_out(payload.pin)
    if result["action"] == "check_in":
        return success_response(result, "Check-in successful", 201)
    return success_response(result, "Check-out successful", 200)


@router.get("/admin/time-registrations")
def list_time_registrations(
    worker_id: UUID | None = None,
    status: RegistrationStatus | None = None,
    manual_intervention: bool | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1, le=config.PAGE_LIMIT_MAX),
    sort_by: Literal["check_in", "check_out", "created_at"] | None = None,
    sort_order: Literal["asc", "desc"] | None = None,
    _admin: dict = Depends(require_admin),
):
    result = service.list_time_registrations(
        worker_id=str(worker_id) if worker_id else None,
        status=status,
        manual_intervention=manual_intervention,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response(
        {
            "registrations": result["registrations"],
            "pagination": pagination_metadata(result["page"], result["limit"], result["total_items"]),
        }
    )


@router.post("/admin/time-registrations")
def create_time_registration(payload: TimeRegistrationCreate, admin: dict = Depends(require_admin)):
    registration = service.create_time_registration(
        worker_id=str(payload.worker_id),
        check_in=payload.check_in,
        notes=payload.notes,
        admin_id=admin["id"],
    )
    return success_response(registration, "Time registration created successfully", 201)


@router.get("/admin/time-registrations/{registration_id}")
def get_time_registration(registration_id: UUID, _admin: dict = Depends(require_admin)):
    return success_response(service.get_time_registration(str(registration_id)))


@router.patch("/admin/time-registrations/{registration_id}")
def update_time_registration(
    registration_id: UUID,
    payload: TimeRegistrationUpdate,
    admin: dict = Depends(require_admin),
):
    registration = service.update_time_registration(
        str(registration_id),
        payload.model_dump(exclude_unset=True),
        admin["id"],
    )
    return success_response(registration, "Time registration updated successfully")


@router.delete("/admin/time-registrations/{registration_id}")
def delete_time_registration(registration_id: UUID, _admin: dict = Depends(require_admin)):
    service.delete_time_registration(str(registration_id))
    return success_response(None, "Time registration deleted successfully")
