# models/journal_entry.py

from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey
from venti.core.config import Base


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("user_auth.id", ondelete="CASCADE"), nullable=False, index=True)

    prompt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    mood = Column(Integer, nullable=False, default=5)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
