# models/mood_entry.py

from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from venti.core.config import Base


class MoodEntry(Base):
    """At most one row per user per calendar date."""

    __tablename__ = "moods"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_moods_user_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("user_auth.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    mood = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
