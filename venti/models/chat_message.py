# models/chat_message.py

import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Enum as SqlEnum
from venti.core.config import Base


class ChatRole(str, enum.Enum):
    user = "user"
    model = "model"


class ChatMessage(Base):
    __tablename__ = "chat_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("user_auth.id", ondelete="CASCADE"), nullable=False, index=True)

    role = Column(SqlEnum(ChatRole), nullable=False)   # user / model
    text = Column(Text, nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
