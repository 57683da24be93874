"""Authentication dependencies for retrieving the current user."""

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from backend.app.core.constants import Role
from backend.app.core.errors import ForbiddenError, UnauthenticatedError
from backend.app.core.security import decode_access_token
from backend.app.db.session import get_db
from backend.app.models.user import User


def get_current_user(db: Session = Depends(get_db), authorization: str | None = Header(default=None)) -> User:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthenticatedError()
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise UnauthenticatedError()

    user_id = payload.get("sub")
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise UnauthenticatedError()

    user = db.query(User).filter(User.id == user_id_int).first()
    if not user:
        raise UnauthenticatedError()
    return user


def require_roles(*roles: Role):
    """Dependency factory rejecting users whose role is not listed."""
    allowed = {role.value for role in roles}

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("Forbidden")
        return current_user

    return dependency


get_current_admin = require_roles(Role.ADMIN)
