"""Task endpoints: admins assign, assignees complete."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidInputError
from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.task import TaskComplete, TaskCreate, TaskPage, TaskRead, TaskUpdate
from backend.app.services import tasks as task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/", response_model=TaskPage)
async def list_tasks(
    status: str | None = None,
    assigned_to_id: int | None = None,
    due_on: Optional[date] = Query(default=None, alias="date"),
    created_on: Optional[date] = None,
    page: int = 1,
    limit: int = task_service.DEFAULT_TASK_PAGE_SIZE,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return task_service.list_tasks(
        db,
        current_user,
        status=status,
        assigned_to_id=assigned_to_id,
        due_on=due_on,
        created_on=created_on,
        page=page,
        limit=limit,
    )


@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(task_in: TaskCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return task_service.create_task(db, current_user, task_in)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return task_service.get_visible_task(db, task_id, current_user)


@router.patch("/{task_id}", response_model=TaskRead)
async def complete_task(
    task_id: int,
    body: TaskComplete,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not body.completed:
        raise InvalidInputError("Tasks can only be marked as completed")
    return task_service.complete_task(db, current_user, task_id)


@router.put("/{task_id}", response_model=TaskRead)
async def edit_task(task_id: int, task_in: TaskUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return task_service.edit_task(db, current_user, task_id, task_in)


@router.delete("/{task_id}")
async def delete_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task_service.delete_task(db, current_user, task_id)
    return {"status": "deleted", "id": task_id}
