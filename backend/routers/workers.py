from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, StringConstraints, model_validator

from backend import config
from backend.responses import pagination_metadata, success_response
from backend.security import PIN_PATTERN, require_admin
from backend.services import workers as service

router = APIRouter()

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Department = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]


class WorkerCreate(BaseModel):
    first_name: Name
    last_name: Name
    pin: str = Field(pattern=PIN_PATTERN)
    department: Department | None = None
    is_active: bool | None = None


class WorkerUpdate(BaseModel):
    first_name: Name | None = None
    last_name: Name | None = None
    department: Department | None = None
    is_active: bool | None = None

    @model_validator(mode="after")
    def _require_a_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        for name in ("first_name", "last_name", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class WorkerPinUpdate(BaseModel):
    new_pin: str = Field(pattern=PIN_PATTERN)


@router.get("/workers")
def list_workers(
    search: str | None = Query(default=None, max_length=200),
    department: str | None = Query(default=None, max_length=100),
    is_active: bool | None = None,
    page: int | None = Query(default=None, ge=1),
    limit: int | None = Query(default=None, ge=1, le=config.PAGE_LIMIT_MAX),
    sort_by: Literal["first_name", "last_name", "created_at"] | None = None,
    sort_order: Literal["asc", "desc"] | None = None,
    _admin: dict = Depends(require_admin),
):
    result = service.list_workers(
        search=search,
        department=department,
        is_active=is_active,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response(
        {
            "workers": result["workers"],
            "pagination": pagination_metadata(result["page"], result["limit"], result["total_items"]),
        }
    )


# Public: the clock kiosk lists who can punch in. No PIN data leaves here.
@router.get("/workers/active")
def list_active_workers():
    return success_response({"workers": service.list_active_workers()})


@router.post("/workers")
def create_worker(payload: WorkerCreate, _admin: dict = Depends(require_admin)):
    worker = service.create_worker(
        first_name=payload.first_name,
        last_name=payload.last_name,
        pin=payload.pin,
        department=payload.department,
        is_active=payload.is_active,
    )
    return success_response(worker, "Worker created successfully", 201)


@router.get("/workers/{worker_id}")
def get_worker(worker_id: UUID, _admin: dict = Depends(require_admin)):
    return success_response(service.get_worker(str(worker_id)))


@router.patch("/workers/{worker_id}")
def update_worker(worker_id: UUID, payload: WorkerUpdate, _admin: dict = Depends(require_admin)):
    worker = service.update_worker(str(worker_id), payload.model_dump(exclude_unset=True))
    return success_response(worker, "Worker updated successfully")


@router.patch("/workers/{worker_id}/pin")
def update_worker_pin(worker_id: UUID, payload: WorkerPinUpdate, _admin: dict = Depends(require_admin)):
    service.update_worker_pin(str(worker_id), payload.new_pin)
    return success_response(None, "PIN updated successfully")


@router.delete("/workers/{worker_id}")
def deactivate_worker(worker_id: UUID, _admin: dict = Depends(require_admin)):
    service.deactivate_worker(str(worker_id))
    return success_response(None, "Worker deactivated successfully")
