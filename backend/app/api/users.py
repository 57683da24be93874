"""Admin user management endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidInputError
from backend.app.core.security import get_password_hash
from backend.app.db.session import commit_or_rollback, get_db
from backend.app.dependencies.auth import get_current_admin
from backend.app.models.user import User
from backend.app.schemas.user import UserCreate, UserRead

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/", response_model=list[UserRead])
async def list_users(
    role: Optional[Literal["admin", "lead_gen", "outreach"]] = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.username.asc()).all()


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    existing = db.query(User).filter(User.username == user_in.username).first()
    if existing:
        raise InvalidInputError("Username already taken")
    user = User(
        username=user_in.username,
        hashed_password=get_password_hash(user_in.password),
        role=user_in.role,
    )
    db.add(user)
    commit_or_rollback(db)
    db.refresh(user)
    return user
