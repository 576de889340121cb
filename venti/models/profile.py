# models/profile.py

import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, Integer, JSON, ForeignKey, Enum as SqlEnum
)
from sqlalchemy.orm import relationship
from venti.core.config import Base


class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"
    superadmin = "superadmin"


class Program(str, enum.Enum):
    healing = "healing"
    glow_up = "glow-up"
    no_contact = "no-contact"


SHIELD_LIST_SIZE = 5
MAX_PROGRAM_DAY = 30


def empty_breakup_context():
    return {"role": "", "initiator": "", "reason": "", "red_flags": "", "feelings": []}


def empty_shield_list():
    return [""] * SHIELD_LIST_SIZE


def default_baseline():
    return {"mood": 5, "sleep": 8, "anxiety": 5, "urge": 5}


def zero_streaks():
    return {"no_contact": 0, "journaling": 0, "self_care": 0}


def empty_emergency_contact():
    return {"name": "", "phone": ""}


class Profile(Base):
    __tablename__ = "profiles"

    # One-to-One PK link with user_auth
    id = Column(
        String(36),
        ForeignKey("user_auth.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
        nullable=False,
    )

    # ---- Identity ----
    name = Column(String(255), nullable=False, default="")
    role = Column(SqlEnum(UserRole), nullable=False, default=UserRole.user)
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    anonymous_display_name = Column(String(255), nullable=True)

    # ---- Onboarding answers ----
    breakup_context = Column(JSON, nullable=False, default=empty_breakup_context)
    ex_name = Column(String(255), nullable=False, default="")  # the "chapter name"
    shield_list = Column(JSON, nullable=False, default=empty_shield_list)
    baseline = Column(JSON, nullable=False, default=default_baseline)

    # ---- Program progress ----
    program = Column(SqlEnum(Program, values_callable=lambda e: [m.value for m in e]), nullable=True)
    program_day = Column(Integer, nullable=False, default=1)
    last_task_completed_date = Column(Date, nullable=True)
    streaks = Column(JSON, nullable=False, default=zero_streaks)

    emergency_contact = Column(JSON, nullable=False, default=empty_emergency_contact)

    # ---- Metadata ----
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ---- Relationship ----
    user = relationship("UserAuth", back_populates="profile", uselist=False)
