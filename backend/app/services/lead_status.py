"""Lead status transitions and the status history log.

``StatusHistory`` is the authoritative log; ``Lead.status`` is a projection
written in the same commit as the history row it mirrors.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from backend.app.core.constants import FIRST_REACHED_FIELDS, LEAD_STATUS_VALUES, ActorKind, Role
from backend.app.core.errors import InvalidInputError, NotFoundError
from backend.app.core.time import utc_now
from backend.app.crud.crud_lead import lead_crud
from backend.app.db.session import commit_or_rollback
from backend.app.models.lead import Lead
from backend.app.models.status_history import StatusHistory
from backend.app.models.user import User
from backend.app.services.access import LeadOperation, actor_role, ensure_can

logger = logging.getLogger(__name__)


def get_lead_or_404(db: Session, lead_id: int) -> Lead:
    lead = lead_crud.get(db, lead_id=lead_id)
    if not lead:
        raise NotFoundError("Lead not found")
    return lead


def append_history(
    db: Session,
    *,
    lead: Lead,
    user_id: Optional[int],
    old_status: Optional[str],
    new_status: str,
    reason: Optional[str] = None,
    actor_kind: ActorKind = ActorKind.HUMAN,
    now: Optional[datetime] = None,
) -> StatusHistory:
    """Stage a history row; the caller commits it with the matching lead update."""
    entry = StatusHistory(
        lead_id=lead.id,
        user_id=user_id,
        old_status=old_status,
        new_status=new_status,
        reason=reason,
        actor_kind=actor_kind.value,
        created_at=now or utc_now(),
    )
    db.add(entry)
    return entry


def apply_status(lead: Lead, new_status: str, now: datetime) -> None:
    lead.status = new_status
    stamp_field = FIRST_REACHED_FIELDS.get(new_status)
    if stamp_field and getattr(lead, stamp_field) is None:
        setattr(lead, stamp_field, now)


def _status_forbidden_message(actor: User) -> str:
    if actor_role(actor) is Role.LEAD_GEN:
        return "Cannot change status of assigned leads"
    return "Can only change status of your own leads"


def change_status(
    db: Session,
    lead_id: int,
    actor: User,
    new_status: str,
    reason: Optional[str] = None,
    *,
    actor_kind: ActorKind = ActorKind.HUMAN,
    now: Optional[datetime] = None,
) -> Lead:
    if new_status not in LEAD_STATUS_VALUES:
        raise InvalidInputError(f"Unknown status '{new_status}'")
    lead = get_lead_or_404(db, lead_id)
    ensure_can(actor, lead, LeadOperation.CHANGE_STATUS, _status_forbidden_message(actor))

    now = now or utc_now()
    old_status = lead.status
    append_history(
        db,
        lead=lead,
        user_id=actor.id,
        old_status=old_status,
        new_status=new_status,
        reason=reason,
        actor_kind=actor_kind,
        now=now,
    )
    apply_status(lead, new_status, now)
    commit_or_rollback(db)
    db.refresh(lead)
    logger.info(
        "Lead status changed",
        extra={"lead_id": lead.id, "old_status": old_status, "new_status": new_status, "actor_id": actor.id, "actor_kind": actor_kind.value},
    )
    return lead


def list_history(db: Session, lead_id: int) -> list[StatusHistory]:
    return (
        db.query(StatusHistory)
        .filter(StatusHistory.lead_id == lead_id)
        .order_by(StatusHistory.created_at.asc(), StatusHistory.id.asc())
        .all()
    )


def recompute_status(db: Session, lead_id: int) -> str:
    """Current status as derived from the history log alone."""
    lead = get_lead_or_404(db, lead_id)
    latest = (
        db.query(StatusHistory)
        .filter(StatusHistory.lead_id == lead_id)
        .order_by(StatusHistory.created_at.desc(), StatusHistory.id.desc())
        .first()
    )
    if latest is None:
        return lead.status
    return latest.new_status
