"""Lead management endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.lead import (
    LeadCreate,
    LeadDetail,
    LeadImportRecord,
    LeadImportResult,
    LeadPage,
    LeadRead,
    LeadUpdate,
    StatusChange,
    StatusHistoryRead,
)
from backend.app.services import claims, lead_status, leads as lead_service

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("/", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
async def create_lead(lead_in: LeadCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return lead_service.create_lead(db, current_user, lead_in)


@router.get("/", response_model=LeadPage)
async def list_leads(
    status: str | None = None,
    system: str | None = None,
    assigned_to_id: int | None = None,
    search: str | None = None,
    created_on: Optional[date] = Query(default=None, alias="date"),
    action: str | None = Query(default=None, alias="filter"),
    page: int = 1,
    limit: int = lead_service.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lead_service.list_leads(
        db,
        current_user,
        status=status,
        system=system,
        assigned_to_id=assigned_to_id,
        search=search,
        created_on=created_on,
        action=action,
        page=page,
        limit=limit,
    )


@router.get("/date-filter", response_model=LeadPage)
async def list_leads_by_date(
    day: date = Query(alias="date"),
    statuses: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = lead_service.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    selected = statuses.split(",") if statuses else []
    return lead_service.list_leads_by_date(
        db,
        current_user,
        day=day,
        statuses=selected,
        search=search,
        page=page,
        limit=limit,
    )


@router.post("/import", response_model=LeadImportResult)
async def import_leads(
    records: list[LeadImportRecord],
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lead_service.import_leads(db, current_user, records)


@router.get("/{lead_id}", response_model=LeadDetail)
async def get_lead(lead_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return lead_service.get_visible_lead(db, lead_id, current_user)


@router.get("/{lead_id}/history", response_model=list[StatusHistoryRead])
async def get_lead_history(lead_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    lead_service.get_visible_lead(db, lead_id, current_user)
    return lead_status.list_history(db, lead_id)


@router.put("/{lead_id}", response_model=LeadRead)
async def update_lead(lead_id: int, lead_in: LeadUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return lead_service.update_lead(db, lead_id, current_user, lead_in)


@router.post("/{lead_id}/status", response_model=LeadRead)
async def change_lead_status(
    lead_id: int,
    change: StatusChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lead_status.change_status(db, lead_id, current_user, change.new_status, change.reason)


@router.post("/{lead_id}/claim", response_model=LeadRead)
async def claim_lead(lead_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return claims.claim(db, lead_id, current_user)


@router.post("/{lead_id}/unclaim", response_model=LeadRead)
async def unclaim_lead(lead_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return claims.unclaim(db, lead_id, current_user)


@router.delete("/{lead_id}")
async def delete_lead(lead_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    lead_service.delete_lead(db, lead_id, current_user)
    return {"status": "deleted", "id": lead_id}
