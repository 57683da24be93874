"""Lead commands and role-scoped queries."""

import logging
import math
from datetime import UTC, date, datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.constants import (
    FOLLOWUP_1_FILTER_DAYS,
    LEAD_STATUS_VALUES,
    REPLIED_FILTER_DAYS,
    TEXTED_FILTER_DAYS,
    LeadStatus,
    Role,
)
from backend.app.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.crud.crud_lead import lead_crud
from backend.app.db.session import commit_or_rollback
from backend.app.models.lead import Lead
from backend.app.models.status_history import StatusHistory
from backend.app.models.user import User
from backend.app.schemas.lead import LeadCreate, LeadImportRecord, LeadUpdate
from backend.app.services import automation
from backend.app.services.access import (
    LeadOperation,
    actor_role,
    can_create_leads,
    can_mutate,
    ensure_can,
    scope_leads,
    strip_assignment,
)
from backend.app.services.lead_status import append_history, apply_status, get_lead_or_404

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100

ACTION_FILTERS = ("unclaimed", "texted_old", "first_followup_old", "replied_old")

# Columns that cannot be cleared through an edit
NON_NULLABLE_FIELDS = {"name", "system"}


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def _stale_since(status: LeadStatus, column, days: int, now: datetime):
    return and_(Lead.status == status.value, column.is_not(None), column <= now - timedelta(days=days))


def action_filter_condition(action: str, now: datetime):
    if action == "unclaimed":
        return Lead.assigned_to_id.is_(None)
    if action == "texted_old":
        return _stale_since(LeadStatus.TEXTED, Lead.texted_at, TEXTED_FILTER_DAYS, now)
    if action == "first_followup_old":
        return _stale_since(LeadStatus.FIRST_FOLLOWUP, Lead.first_followup_at, FOLLOWUP_1_FILTER_DAYS, now)
    if action == "replied_old":
        return _stale_since(LeadStatus.REPLIED, Lead.replied_at, REPLIED_FILTER_DAYS, now)
    raise InvalidInputError("Invalid filter")


def search_condition(search: str):
    pattern = f"%{search.strip()}%"
    return or_(
        Lead.name.ilike(pattern),
        Lead.email.ilike(pattern),
        Lead.company.ilike(pattern),
    )


def build_lead_filter(
    actor: User,
    *,
    status: Optional[str] = None,
    system: Optional[str] = None,
    assigned_to_id: Optional[int] = None,
    search: Optional[str] = None,
    created_on: Optional[date] = None,
    action: Optional[str] = None,
    now: Optional[datetime] = None,
):
    """Role scope ANDed with every client filter that was supplied."""
    now = now or utc_now()
    conditions = [scope_leads(actor)]
    if status and status != "all":
        if status not in LEAD_STATUS_VALUES:
            raise InvalidInputError(f"Unknown status '{status}'")
        conditions.append(Lead.status == status)
    if action and action != "all":
        conditions.append(action_filter_condition(action, now))
    if system and system != "all":
        conditions.append(Lead.system == system)
    if assigned_to_id is not None:
        conditions.append(Lead.assigned_to_id == assigned_to_id)
    if search and search.strip():
        conditions.append(search_condition(search))
    if created_on is not None:
        start, end = day_bounds(created_on)
        conditions.append(Lead.created_at.between(start, end))
    return and_(*conditions)


def paginate(page: int, limit: int) -> tuple[int, int]:
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))
    return page, limit


def page_payload(leads: list[Lead], page: int, limit: int, total: int) -> dict:
    return {
        "leads": leads,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }


def list_leads(
    db: Session,
    actor: User,
    *,
    status: Optional[str] = None,
    system: Optional[str] = None,
    assigned_to_id: Optional[int] = None,
    search: Optional[str] = None,
    created_on: Optional[date] = None,
    action: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    where = build_lead_filter(
        actor,
        status=status,
        system=system,
        assigned_to_id=assigned_to_id,
        search=search,
        created_on=created_on,
        action=action,
    )
    if status is not None and get_settings().automation_on_read:
        automation.run_automation_rules(db)

    page, limit = paginate(page, limit)
    total = lead_crud.count(db, where=where)
    leads = lead_crud.get_multi(db, where=where, skip=(page - 1) * limit, limit=limit)
    return page_payload(leads, page, limit, total)


def list_leads_by_date(
    db: Session,
    actor: User,
    *,
    day: date,
    statuses: Iterable[str] = (),
    search: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """Leads created on ``day`` in one of ``statuses``, or moved into one of them on ``day``."""
    selected = [s for s in statuses if s]
    unknown = [s for s in selected if s not in LEAD_STATUS_VALUES]
    if unknown:
        raise InvalidInputError(f"Unknown status '{unknown[0]}'")

    start, end = day_bounds(day)
    created_that_day = Lead.created_at.between(start, end)
    if selected:
        date_condition = or_(
            and_(created_that_day, Lead.status.in_(selected)),
            Lead.status_history.any(
                and_(StatusHistory.new_status.in_(selected), StatusHistory.created_at.between(start, end))
            ),
        )
    else:
        date_condition = created_that_day

    conditions = [scope_leads(actor), date_condition]
    if search and search.strip():
        conditions.append(search_condition(search))
    where = and_(*conditions)

    page, limit = paginate(page, limit)
    total = lead_crud.count(db, where=where)
    leads = lead_crud.get_multi(db, where=where, skip=(page - 1) * limit, limit=limit)
    return page_payload(leads, page, limit, total)


def get_visible_lead(db: Session, lead_id: int, actor: User) -> Lead:
    lead = get_lead_or_404(db, lead_id)
    ensure_can(actor, lead, LeadOperation.VIEW)
    return lead


def _ensure_assignee_exists(db: Session, user_id: int) -> None:
    if not db.query(User.id).filter(User.id == user_id).first():
        raise NotFoundError("Assignee not found")


def create_lead(db: Session, actor: User, lead_in: LeadCreate) -> Lead:
    if not can_create_leads(actor):
        raise ForbiddenError("Forbidden")
    fields = strip_assignment(actor, lead_in.model_dump())
    if fields.get("assigned_to_id") is not None:
        _ensure_assignee_exists(db, fields["assigned_to_id"])
    fields["status"] = LeadStatus.NEW.value
    lead = lead_crud.create(db, fields=fields, created_by_id=actor.id)
    logger.info("Lead created", extra={"lead_id": lead.id, "actor_id": actor.id})
    return lead


def _edit_forbidden_message(actor: User) -> str:
    if actor_role(actor) is Role.LEAD_GEN:
        return "Cannot edit assigned leads"
    return "Can only edit your own leads"


def update_lead(db: Session, lead_id: int, actor: User, lead_in: LeadUpdate) -> Lead:
    lead = get_lead_or_404(db, lead_id)
    ensure_can(actor, lead, LeadOperation.EDIT, _edit_forbidden_message(actor))

    fields = strip_assignment(actor, lead_in.model_dump(exclude_unset=True))
    reason = fields.pop("reason", None)
    new_status = fields.pop("status", None)
    for field in NON_NULLABLE_FIELDS:
        if field in fields and fields[field] is None:
            fields.pop(field)
    if fields.get("assigned_to_id") is not None:
        _ensure_assignee_exists(db, fields["assigned_to_id"])

    for field, value in fields.items():
        setattr(lead, field, value)

    status_changed = new_status is not None and new_status != lead.status
    if status_changed:
        now = utc_now()
        append_history(
            db,
            lead=lead,
            user_id=actor.id,
            old_status=lead.status,
            new_status=new_status,
            reason=reason,
            now=now,
        )
        apply_status(lead, new_status, now)

    commit_or_rollback(db)
    db.refresh(lead)
    logger.info(
        "Lead updated",
        extra={"lead_id": lead.id, "actor_id": actor.id, "fields": sorted(fields), "status_changed": status_changed},
    )
    return lead


def delete_lead(db: Session, lead_id: int, actor: User) -> None:
    lead = get_lead_or_404(db, lead_id)
    if not can_mutate(actor, lead, LeadOperation.DELETE):
        raise ForbiddenError("Forbidden")
    lead_crud.delete(db, db_obj=lead)
    logger.info("Lead deleted", extra={"lead_id": lead_id, "actor_id": actor.id})


def import_leads(db: Session, actor: User, records: list[LeadImportRecord]) -> dict:
    """Create leads from parsed candidate rows, skipping duplicates of existing leads."""
    if not can_create_leads(actor):
        raise ForbiddenError("Forbidden")

    created: list[Lead] = []
    skipped: list[dict] = []
    for record in records:
        data = strip_assignment(actor, record.model_dump())
        summary = {key: data.get(key) for key in ("name", "email", "company", "profile_url")}
        reason = lead_crud.find_duplicate(
            db,
            email=data.get("email"),
            profile_url=data.get("profile_url"),
            name=data.get("name"),
            company=data.get("company"),
        )
        if reason:
            skipped.append({**summary, "reason": reason})
            continue
        if data.get("assigned_to_id") is not None and not db.query(User.id).filter(User.id == data["assigned_to_id"]).first():
            skipped.append({**summary, "reason": "Assignee not found"})
            continue
        try:
            data["status"] = LeadStatus.NEW.value
            created.append(lead_crud.create(db, fields=data, created_by_id=actor.id))
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Lead import row failed", extra={"lead_name": data.get("name"), "error": str(exc)})
            skipped.append({**summary, "reason": "Could not be saved"})

    logger.info("Lead import finished", extra={"actor_id": actor.id, "created_count": len(created), "skipped_count": len(skipped)})
    return {
        "success": True,
        "created": len(created),
        "skipped": len(skipped),
        "details": {"created": created, "skipped": skipped},
    }
