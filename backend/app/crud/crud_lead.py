"""Store operations for leads."""

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from backend.app.models.lead import Lead
from backend.app.models.status_history import StatusHistory


class CRUDLead:
    def create(self, db: Session, *, fields: dict, created_by_id: Optional[int]) -> Lead:
        obj = Lead(created_by_id=created_by_id, **fields)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def get(self, db: Session, *, lead_id: int) -> Optional[Lead]:
        return db.query(Lead).filter(Lead.id == lead_id).first()

    def get_multi(self, db: Session, *, where, skip: int = 0, limit: int = 15) -> List[Lead]:
        return (
            db.query(Lead)
            .filter(where)
            .options(
                joinedload(Lead.assigned_to),
                selectinload(Lead.status_history).joinedload(StatusHistory.user),
            )
            .order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count(self, db: Session, *, where) -> int:
        return db.query(Lead).filter(where).count()

    def update(self, db: Session, *, db_obj: Lead, fields: dict) -> Lead:
        for field, value in fields.items():
            setattr(db_obj, field, value)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, db_obj: Lead) -> Lead:
        db.delete(db_obj)
        db.commit()
        return db_obj

    def assign_if_available(self, db: Session, *, lead_id: int, user_id: int) -> bool:
        """Conditionally assign the lead to ``user_id``.

        Succeeds only while the lead is unassigned or already assigned to the same
        user. Not committed; the caller commits together with the history row.
        """
        affected = (
            db.query(Lead)
            .filter(
                Lead.id == lead_id,
                or_(Lead.assigned_to_id.is_(None), Lead.assigned_to_id == user_id),
            )
            .update({Lead.assigned_to_id: user_id}, synchronize_session=False)
        )
        return affected == 1

    def release_if_assigned(self, db: Session, *, lead_id: int, expected_assignee_id: int) -> bool:
        """Clear the assignee only if it is still ``expected_assignee_id``. Not committed."""
        affected = (
            db.query(Lead)
            .filter(Lead.id == lead_id, Lead.assigned_to_id == expected_assignee_id)
            .update({Lead.assigned_to_id: None}, synchronize_session=False)
        )
        return affected == 1

    def find_duplicate(
        self,
        db: Session,
        *,
        email: Optional[str] = None,
        profile_url: Optional[str] = None,
        name: Optional[str] = None,
        company: Optional[str] = None,
    ) -> Optional[str]:
        """Return why a candidate duplicates an existing lead, checking email, profile URL, then name and company."""
        if email and db.query(Lead.id).filter(Lead.email == email).first():
            return "Duplicate email"
        if profile_url and db.query(Lead.id).filter(Lead.profile_url == profile_url).first():
            return "Duplicate profile URL"
        if name and company and db.query(Lead.id).filter(Lead.name == name, Lead.company == company).first():
            return "Duplicate name and company"
        return None


lead_crud = CRUDLead()
