"""Lead model for the Outreach CRM."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    company = Column(String, nullable=True)
    profile_url = Column(String, nullable=True, index=True)
    post_url = Column(String, nullable=True)
    website = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="new", index=True)
    system = Column(String(32), nullable=False, default="linkedin_one")
    assigned_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # First-reached timestamps, written once
    texted_at = Column(DateTime(timezone=True), nullable=True)
    first_followup_at = Column(DateTime(timezone=True), nullable=True)
    second_followup_at = Column(DateTime(timezone=True), nullable=True)
    replied_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    assigned_to = relationship("User", back_populates="assigned_leads", foreign_keys=[assigned_to_id])
    created_by = relationship("User", back_populates="created_leads", foreign_keys=[created_by_id])
    status_history = relationship(
        "StatusHistory",
        back_populates="lead",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[StatusHistory.created_at, StatusHistory.id]",
    )

    @property
    def last_status_entry(self):
        return self.status_history[-1] if self.status_history else None

    @property
    def last_status_updater(self):
        entry = self.last_status_entry
        return entry.user if entry is not None else None

    @property
    def last_status_updated_at(self):
        entry = self.last_status_entry
        return entry.created_at if entry is not None else None
