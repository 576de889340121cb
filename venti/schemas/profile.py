# schemas/profile.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Literal
from datetime import date

from venti.models.profile import UserRole, Program, SHIELD_LIST_SIZE, MAX_PROGRAM_DAY


# =====================================================================
# NESTED STRUCTURES
# =====================================================================

class BreakupContext(BaseModel):
    role: Literal["dumpee", "dumper", "mutual", ""] = ""
    initiator: Literal["me", "them", "mutual", ""] = ""
    reason: str = ""
    red_flags: Literal["yes", "no", "unsure", ""] = ""
    feelings: List[str] = Field(default_factory=list)


class Baseline(BaseModel):
    """Self-report snapshot taken during onboarding (0-10 scales)."""
    mood: int = Field(5, ge=0, le=10)
    sleep: int = Field(8, ge=0, le=24)
    anxiety: int = Field(5, ge=0, le=10)
    urge: int = Field(5, ge=0, le=10)


class Streaks(BaseModel):
    no_contact: int = Field(0, ge=0)
    journaling: int = Field(0, ge=0)
    self_care: int = Field(0, ge=0)


class EmergencyContact(BaseModel):
    name: str = ""
    phone: str = ""


def default_display_name(email: str) -> str:
    """Local part of the e-mail address, or a friendly fallback."""
    local = (email or "").split("@")[0]
    return local or "Friend"


def _check_shield_list(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is not None and len(v) != SHIELD_LIST_SIZE:
        raise ValueError(f"shield_list must contain exactly {SHIELD_LIST_SIZE} items")
    return v


# =====================================================================
# 1. BASE / READ SCHEMAS
# =====================================================================

class ProfileFields(BaseModel):
    """Every user-editable profile field with its default value."""
    name: str = ""
    onboarding_complete: bool = False
    anonymous_display_name: Optional[str] = None
    breakup_context: BreakupContext = Field(default_factory=BreakupContext)
    ex_name: str = ""
    shield_list: List[str] = Field(default_factory=lambda: [""] * SHIELD_LIST_SIZE)
    baseline: Baseline = Field(default_factory=Baseline)
    program: Optional[Program] = None
    program_day: int = Field(1, ge=1, le=MAX_PROGRAM_DAY)
    last_task_completed_date: Optional[date] = None
    streaks: Streaks = Field(default_factory=Streaks)
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)

    @field_validator("shield_list")
    @classmethod
    def validate_shield_list(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _check_shield_list(v)


class ProfileRead(ProfileFields):
    id: str
    role: UserRole = UserRole.user

    model_config = ConfigDict(from_attributes=True)


class AdminUserView(ProfileRead):
    """Profile as listed by the admin function, joined with the login e-mail."""
    email: str = "N/A"


# =====================================================================
# 2. CREATE / UPSERT SCHEMAS
# =====================================================================

class ProfileCreate(ProfileFields):
    """Client-side lazy creation. Any role supplied here is ignored."""
    id: str
    role: Optional[UserRole] = None


# =====================================================================
# 3. UPDATE SCHEMAS
# =====================================================================

class ProfileUpdate(BaseModel):
    """Partial update - every field optional, role is not user-editable."""
    name: Optional[str] = None
    onboarding_complete: Optional[bool] = None
    anonymous_display_name: Optional[str] = None
    breakup_context: Optional[BreakupContext] = None
    ex_name: Optional[str] = None
    shield_list: Optional[List[str]] = None
    baseline: Optional[Baseline] = None
    program: Optional[Program] = None
    program_day: Optional[int] = Field(None, ge=1, le=MAX_PROGRAM_DAY)
    last_task_completed_date: Optional[date] = None
    streaks: Optional[Streaks] = None
    emergency_contact: Optional[EmergencyContact] = None

    @field_validator("shield_list")
    @classmethod
    def validate_shield_list(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _check_shield_list(v)

    # Omitting a field leaves it alone; only these three may be cleared
    @field_validator(
        "name",
        "onboarding_complete",
        "breakup_context",
        "ex_name",
        "shield_list",
        "baseline",
        "program_day",
        "streaks",
        "emergency_contact",
    )
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("this field cannot be cleared")
        return v


class RoleUpdateRequest(BaseModel):
    """Privileged role change; superadmin cannot be granted through the API."""
    target_user_id: str
    new_role: str
