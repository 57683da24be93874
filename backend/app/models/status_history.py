"""Append-only status history for leads."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class StatusHistory(Base):
    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    old_status = Column(String(32), nullable=True)
    new_status = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    actor_kind = Column(String(16), nullable=False, default="human")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    lead = relationship("Lead", back_populates="status_history")
    user = relationship("User", back_populates="status_changes")
