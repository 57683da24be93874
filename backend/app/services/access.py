"""Role scope and per-lead permission rules.

Every lead or task query starts from ``scope_leads`` / ``scope_tasks`` and
client filters are ANDed on top, so a filter can narrow the role scope but
never widen it. Per-lead mutation checks go through ``can_mutate``.
"""

import enum
from typing import assert_never

from sqlalchemy import and_, or_, true

from backend.app.core.constants import LeadStatus, Role
from backend.app.core.errors import ForbiddenError
from backend.app.models.lead import Lead
from backend.app.models.task import Task
from backend.app.models.user import User


class LeadOperation(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"
    CHANGE_STATUS = "change_status"
    CLAIM = "claim"
    UNCLAIM = "unclaim"
    DELETE = "delete"
    ASSIGN = "assign"


def actor_role(actor: User) -> Role:
    return Role(actor.role)


def scope_leads(actor: User):
    """SQL predicate selecting the leads ``actor`` may see."""
    role = actor_role(actor)
    match role:
        case Role.ADMIN:
            return true()
        case Role.LEAD_GEN:
            return and_(Lead.assigned_to_id.is_(None), Lead.status == LeadStatus.NEW.value)
        case Role.OUTREACH:
            return or_(Lead.assigned_to_id.is_(None), Lead.assigned_to_id == actor.id)
        case _:
            assert_never(role)


def can_view(actor: User, lead: Lead) -> bool:
    role = actor_role(actor)
    match role:
        case Role.ADMIN:
            return True
        case Role.LEAD_GEN:
            return lead.assigned_to_id is None and lead.status == LeadStatus.NEW.value
        case Role.OUTREACH:
            return lead.assigned_to_id is None or lead.assigned_to_id == actor.id
        case _:
            assert_never(role)


def can_edit(actor: User, lead: Lead) -> bool:
    role = actor_role(actor)
    match role:
        case Role.ADMIN:
            return True
        case Role.LEAD_GEN:
            # Edit rights end the moment the lead is claimed
            return lead.assigned_to_id is None
        case Role.OUTREACH:
            return lead.assigned_to_id == actor.id
        case _:
            assert_never(role)


def can_create_leads(actor: User) -> bool:
    return actor_role(actor) in (Role.ADMIN, Role.LEAD_GEN)


def can_mutate(actor: User, lead: Lead, operation: LeadOperation) -> bool:
    role = actor_role(actor)
    match operation:
        case LeadOperation.VIEW:
            return can_view(actor, lead)
        case LeadOperation.EDIT | LeadOperation.CHANGE_STATUS:
            return can_edit(actor, lead)
        case LeadOperation.CLAIM:
            # Availability of the lead is checked by the claim itself (Conflict, not Forbidden)
            return role in (Role.ADMIN, Role.OUTREACH)
        case LeadOperation.UNCLAIM:
            if role is Role.ADMIN:
                return True
            return role is Role.OUTREACH and lead.assigned_to_id == actor.id
        case LeadOperation.DELETE | LeadOperation.ASSIGN:
            return role is Role.ADMIN
        case _:
            assert_never(operation)


def ensure_can(actor: User, lead: Lead, operation: LeadOperation, message: str = "Forbidden") -> None:
    if not can_mutate(actor, lead, operation):
        raise ForbiddenError(message)


def strip_assignment(actor: User, payload: dict) -> dict:
    """Drop ``assigned_to_id`` from a write payload unless the actor may assign leads."""
    if actor_role(actor) is not Role.ADMIN:
        payload.pop("assigned_to_id", None)
    return payload


def scope_tasks(actor: User):
    if actor_role(actor) is Role.ADMIN:
        return true()
    return Task.assigned_to_id == actor.id


def can_complete_task(actor: User, task: Task) -> bool:
    return actor_role(actor) is Role.ADMIN or task.assigned_to_id == actor.id
