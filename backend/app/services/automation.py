"""Time-driven sweeps: stale second follow-ups to junk, overdue tasks to backlog.

Both sweeps are idempotent and may be interrupted; the next run re-selects
whatever still matches.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.constants import (
    AUTOMATED_JUNK_REASON,
    FOLLOWUP_2_TO_JUNK_DAYS,
    ActorKind,
    LeadStatus,
    Role,
    TaskStatus,
)
from backend.app.core.errors import CRMError
from backend.app.core.time import utc_now
from backend.app.crud.crud_lead import lead_crud
from backend.app.db.session import commit_or_rollback
from backend.app.models.lead import Lead
from backend.app.models.task import Task
from backend.app.models.user import User
from backend.app.services.lead_status import change_status

logger = logging.getLogger(__name__)


def get_automation_actor(db: Session) -> Optional[User]:
    """Automated transitions are attributed to the earliest admin account."""
    return db.query(User).filter(User.role == Role.ADMIN.value).order_by(User.id.asc()).first()


def find_stale_second_followups(db: Session, now: datetime) -> list[int]:
    cutoff = now - timedelta(days=FOLLOWUP_2_TO_JUNK_DAYS)
    rows = (
        db.query(Lead.id)
        .filter(
            Lead.status == LeadStatus.SECOND_FOLLOWUP.value,
            Lead.second_followup_at.is_not(None),
            Lead.second_followup_at <= cutoff,
        )
        .order_by(Lead.id.asc())
        .all()
    )
    return [row.id for row in rows]


def run_automation_rules(db: Session, now: Optional[datetime] = None) -> int:
    """Move leads stuck in second follow-up for more than four days to junk."""
    now = now or utc_now()
    candidate_ids = find_stale_second_followups(db, now)
    if not candidate_ids:
        return 0

    actor = get_automation_actor(db)
    if actor is None:
        logger.warning("No admin user to attribute automated transitions to", extra={"candidates": len(candidate_ids)})
        return 0

    transitioned = 0
    for lead_id in candidate_ids:
        lead = lead_crud.get(db, lead_id=lead_id)
        # Moved or deleted since selection
        if lead is None or lead.status != LeadStatus.SECOND_FOLLOWUP.value:
            continue
        try:
            change_status(
                db,
                lead_id,
                actor,
                LeadStatus.JUNK.value,
                reason=AUTOMATED_JUNK_REASON,
                actor_kind=ActorKind.SYSTEM,
                now=now,
            )
            transitioned += 1
        except (CRMError, SQLAlchemyError):
            db.rollback()
            logger.exception("Automated junk transition failed", extra={"lead_id": lead_id})

    logger.info("Automation rules finished", extra={"transitioned": transitioned, "candidates": len(candidate_ids)})
    return transitioned


def sync_task_backlog(db: Session, now: Optional[datetime] = None) -> int:
    """Move undone tasks whose due time has passed to backlog."""
    now = now or utc_now()
    moved = (
        db.query(Task)
        .filter(Task.status == TaskStatus.UNDONE.value, Task.due_at < now)
        .update({Task.status: TaskStatus.BACKLOG.value}, synchronize_session=False)
    )
    commit_or_rollback(db)
    if moved:
        logger.info("Moved tasks to backlog", extra={"count": moved})
    return moved
