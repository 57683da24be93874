import logging
import os

from sqlalchemy.orm import Session

from backend.app.core.constants import Role
from backend.app.core.security import get_password_hash
from backend.app.models.user import User

logger = logging.getLogger(__name__)

# username -> (password, role)
DEFAULT_DEV_USERS = {
    "admin": ("admin123", Role.ADMIN),
    "leadgen": ("leadgen123", Role.LEAD_GEN),
    "outreach": ("outreach123", Role.OUTREACH),
}


def ensure_default_dev_users(db: Session) -> None:
    """
    Create one account per role for local development if they do not exist.
    Skips execution when running under pytest to avoid altering test expectations.
    """
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    created = []
    for username, (password, role) in DEFAULT_DEV_USERS.items():
        existing = db.query(User).filter(User.username == username).first()
        if existing:
            continue

        db.add(User(username=username, hashed_password=get_password_hash(password), role=role.value))
        created.append(username)

    if created:
        db.commit()
        logger.info("Seeded development users", extra={"usernames": created})
