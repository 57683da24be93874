"""Task lifecycle: undone -> done by the assignee or an admin, undone -> backlog by the sweep. Done and backlog are terminal."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session, joinedload

from backend.app.core.constants import DEFAULT_TASK_DUE_HOURS, Role, TaskStatus
from backend.app.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from backend.app.core.time import ensure_utc, utc_now
from backend.app.db.session import commit_or_rollback
from backend.app.models.task import Task
from backend.app.models.user import User
from backend.app.schemas.task import TaskCreate, TaskUpdate
from backend.app.services.access import actor_role, can_complete_task, scope_tasks
from backend.app.services.automation import sync_task_backlog
from backend.app.services.leads import day_bounds

logger = logging.getLogger(__name__)

DEFAULT_TASK_PAGE_SIZE = 10
MAX_TASK_PAGE_SIZE = 50
TASK_STATUS_VALUES = {s.value for s in TaskStatus}


def _ensure_admin(actor: User) -> None:
    if actor_role(actor) is not Role.ADMIN:
        raise ForbiddenError("Admin access required")


def _ensure_user_exists(db: Session, user_id: int) -> None:
    if not db.query(User.id).filter(User.id == user_id).first():
        raise NotFoundError("Assignee not found")


def _validate_window(created_at: datetime, due_at: datetime) -> None:
    if due_at < created_at:
        raise InvalidInputError("Due date must be on or after created date")


def get_task_or_404(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise NotFoundError("Task not found")
    return task


def get_visible_task(db: Session, task_id: int, actor: User) -> Task:
    task = get_task_or_404(db, task_id)
    if not can_complete_task(actor, task):
        raise ForbiddenError("Forbidden")
    return task


def create_task(db: Session, actor: User, task_in: TaskCreate, now: Optional[datetime] = None) -> Task:
    _ensure_admin(actor)
    _ensure_user_exists(db, task_in.assigned_to_id)

    created_at = ensure_utc(task_in.created_at) or now or utc_now()
    due_at = ensure_utc(task_in.due_at) or created_at + timedelta(hours=DEFAULT_TASK_DUE_HOURS)
    _validate_window(created_at, due_at)

    task = Task(
        title=task_in.title,
        description=task_in.description or None,
        assigned_to_id=task_in.assigned_to_id,
        created_by_id=actor.id,
        created_at=created_at,
        due_at=due_at,
        status=TaskStatus.UNDONE.value,
    )
    db.add(task)
    commit_or_rollback(db)
    db.refresh(task)
    logger.info("Task created", extra={"task_id": task.id, "assigned_to_id": task.assigned_to_id, "actor_id": actor.id})
    return task


def complete_task(db: Session, actor: User, task_id: int, now: Optional[datetime] = None) -> Task:
    task = get_task_or_404(db, task_id)
    if not can_complete_task(actor, task):
        raise ForbiddenError("Forbidden")
    if task.completed_at is not None:
        return task
    if task.status == TaskStatus.BACKLOG.value:
        raise InvalidInputError("Backlog tasks cannot be completed")

    task.completed_at = now or utc_now()
    task.status = TaskStatus.DONE.value
    commit_or_rollback(db)
    db.refresh(task)
    logger.info("Task completed", extra={"task_id": task.id, "actor_id": actor.id})
    return task


def edit_task(db: Session, actor: User, task_id: int, task_in: TaskUpdate) -> Task:
    _ensure_admin(actor)
    task = get_task_or_404(db, task_id)

    fields = task_in.model_dump(exclude_unset=True)
    for field in ("title", "assigned_to_id", "created_at", "due_at"):
        if field in fields and fields[field] is None:
            fields.pop(field)
    if "assigned_to_id" in fields:
        _ensure_user_exists(db, fields["assigned_to_id"])
    for field in ("created_at", "due_at"):
        if field in fields:
            fields[field] = ensure_utc(fields[field])

    # Validate against the values the task will have after the edit
    effective_created = fields.get("created_at", ensure_utc(task.created_at))
    effective_due = fields.get("due_at", ensure_utc(task.due_at))
    _validate_window(effective_created, effective_due)

    for field, value in fields.items():
        setattr(task, field, value)
    commit_or_rollback(db)
    db.refresh(task)
    logger.info("Task edited", extra={"task_id": task.id, "actor_id": actor.id, "fields": sorted(fields)})
    return task


def delete_task(db: Session, actor: User, task_id: int) -> None:
    _ensure_admin(actor)
    task = get_task_or_404(db, task_id)
    db.delete(task)
    commit_or_rollback(db)
    logger.info("Task deleted", extra={"task_id": task_id, "actor_id": actor.id})


def list_tasks(
    db: Session,
    actor: User,
    *,
    status: Optional[str] = None,
    assigned_to_id: Optional[int] = None,
    due_on: Optional[date] = None,
    created_on: Optional[date] = None,
    page: int = 1,
    limit: int = DEFAULT_TASK_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> dict:
    sync_task_backlog(db, now=now)

    conditions = [scope_tasks(actor)]
    if status and status != "all":
        if status not in TASK_STATUS_VALUES:
            raise InvalidInputError(f"Unknown task status '{status}'")
        conditions.append(Task.status == status)
    if assigned_to_id is not None:
        conditions.append(Task.assigned_to_id == assigned_to_id)
    if due_on is not None:
        start, end = day_bounds(due_on)
        conditions.append(Task.due_at.between(start, end))
    if created_on is not None:
        start, end = day_bounds(created_on)
        conditions.append(Task.created_at.between(start, end))
    where = and_(*conditions)

    page = max(1, page)
    limit = min(MAX_TASK_PAGE_SIZE, max(1, limit))
    total = db.query(Task).filter(where).count()
    tasks = (
        db.query(Task)
        .filter(where)
        .options(joinedload(Task.assigned_to), joinedload(Task.created_by))
        .order_by(Task.due_at.asc(), Task.created_at.desc(), Task.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "tasks": tasks,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }
