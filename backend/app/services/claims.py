"""Claiming and releasing lead ownership."""

import logging

from sqlalchemy.orm import Session

from backend.app.core.constants import CLAIM_REASON, UNCLAIM_REASON, Role
from backend.app.core.errors import ConflictError, ForbiddenError, InvalidInputError
from backend.app.core.time import utc_now
from backend.app.crud.crud_lead import lead_crud
from backend.app.db.session import commit_or_rollback
from backend.app.models.lead import Lead
from backend.app.models.user import User
from backend.app.services.access import LeadOperation, actor_role, can_mutate
from backend.app.services.lead_status import append_history, get_lead_or_404

logger = logging.getLogger(__name__)


def claim(db: Session, lead_id: int, actor: User) -> Lead:
    lead = get_lead_or_404(db, lead_id)
    if not can_mutate(actor, lead, LeadOperation.CLAIM):
        raise ForbiddenError("Forbidden")
    if lead.assigned_to_id is not None and lead.assigned_to_id != actor.id:
        raise ConflictError("Lead is already assigned to another user")

    # The UPDATE re-checks availability so only one of two racing claims wins
    if not lead_crud.assign_if_available(db, lead_id=lead.id, user_id=actor.id):
        db.rollback()
        logger.info("Claim lost race", extra={"lead_id": lead_id, "actor_id": actor.id})
        raise ConflictError("Lead is already assigned to another user")

    append_history(
        db,
        lead=lead,
        user_id=actor.id,
        old_status=lead.status,
        new_status=lead.status,
        reason=CLAIM_REASON,
        now=utc_now(),
    )
    commit_or_rollback(db)
    db.refresh(lead)
    logger.info("Lead claimed", extra={"lead_id": lead.id, "actor_id": actor.id})
    return lead


def unclaim(db: Session, lead_id: int, actor: User) -> Lead:
    lead = get_lead_or_404(db, lead_id)
    if actor_role(actor) not in (Role.ADMIN, Role.OUTREACH):
        raise ForbiddenError("Forbidden")
    if lead.assigned_to_id is None:
        raise InvalidInputError("Lead is already unclaimed")
    if not can_mutate(actor, lead, LeadOperation.UNCLAIM):
        raise ForbiddenError("Can only unclaim your own leads")

    previous_assignee_id = lead.assigned_to_id
    if not lead_crud.release_if_assigned(db, lead_id=lead.id, expected_assignee_id=previous_assignee_id):
        db.rollback()
        raise ConflictError("Lead assignment changed, reload and retry")

    append_history(
        db,
        lead=lead,
        user_id=actor.id,
        old_status=lead.status,
        new_status=lead.status,
        reason=UNCLAIM_REASON,
        now=utc_now(),
    )
    commit_or_rollback(db)
    db.refresh(lead)
    logger.info("Lead unclaimed", extra={"lead_id": lead.id, "actor_id": actor.id, "previous_assignee_id": previous_assignee_id})
    return lead
