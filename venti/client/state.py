# client/state.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from venti.models.profile import UserRole
from venti.schemas.profile import ProfileRead

logger = logging.getLogger(__name__)

DEFAULT_SCREEN = "home"


# =====================================================================
# TRACKED RECORDS
# =====================================================================

@dataclass(frozen=True)
class Pending:
    """Key of a record that exists only locally, awaiting its remote write."""
    temp_id: str


@dataclass(frozen=True)
class Confirmed:
    """Key of a record the store has acknowledged."""
    id: Any


Key = Union[Pending, Confirmed]


@dataclass(frozen=True)
class Tracked:
    key: Key
    record: Dict[str, Any]

    @property
    def confirmed(self) -> bool:
        return isinstance(self.key, Confirmed)


Items = Tuple[Tracked, ...]


def confirmed(record: Dict[str, Any]) -> Tracked:
    return Tracked(Confirmed(record["id"]), record)


def index_of(items: Items, key: Key) -> Optional[int]:
    for i, item in enumerate(items):
        if item.key == key:
            return i
    return None


def replace_item(items: Items, key: Key, new: Tracked) -> Items:
    """Swap the item with ``key`` for ``new`` at the same position."""
    i = index_of(items, key)
    if i is None:
        return items
    return items[:i] + (new,) + items[i + 1:]


def remove_item(items: Items, key: Key) -> Items:
    return tuple(item for item in items if item.key != key)


# =====================================================================
# AGGREGATE
# =====================================================================

@dataclass(frozen=True)
class Permissions:
    can_admin: bool = False
    can_super_admin: bool = False

    @classmethod
    def from_role(cls, role: Union[UserRole, str]) -> "Permissions":
        role = UserRole(role)
        return cls(
            can_admin=role in (UserRole.admin, UserRole.superadmin),
            can_super_admin=role == UserRole.superadmin,
        )


@dataclass(frozen=True)
class UserData:
    """Everything the client knows about the signed-in user."""
    profile: ProfileRead
    permissions: Permissions
    journal_entries: Items = ()
    moods: Items = ()
    my_stories: Items = ()
    chat_history: Items = ()


@dataclass(frozen=True)
class Notice:
    message: str
    level: str
    created_at: datetime


class AggregateContainer:
    """
    Single holder of the signed-in user's aggregate.

    ``load`` belongs to the session lifecycle; every other change goes
    through ``update`` with a pure ``UserData -> UserData`` function.
    ``generation`` increases on every ``clear`` so a write that resolves
    after sign-out can tell its aggregate is gone.
    """

    def __init__(
        self,
        notice_ttl_seconds: float = 3.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.user_data: Optional[UserData] = None
        self.generation = 0
        self.navigation: List[str] = [DEFAULT_SCREEN]
        self.show_sos = False
        self.notices: List[Notice] = []
        self.notice_ttl = timedelta(seconds=notice_ttl_seconds)
        self._clock = clock

    # =====================================================================
    # AGGREGATE LIFECYCLE
    # =====================================================================

    def load(self, user_data: UserData) -> None:
        self.user_data = user_data

    def update(self, fn: Callable[[UserData], UserData]) -> None:
        if self.user_data is None:
            return
        self.user_data = fn(self.user_data)

    def clear(self) -> None:
        self.user_data = None
        self.generation += 1
        self.navigation = [DEFAULT_SCREEN]
        self.show_sos = False
        self.notices = []
        logger.debug(f"Aggregate cleared (generation {self.generation})")

    # =====================================================================
    # NAVIGATION & SOS
    # =====================================================================

    @property
    def screen(self) -> str:
        return self.navigation[-1]

    def navigate(self, screen: str) -> None:
        self.navigation.append(screen)

    def go_back(self) -> None:
        if len(self.navigation) > 1:
            self.navigation.pop()

    def trigger_sos(self) -> None:
        self.show_sos = True

    def dismiss_sos(self) -> None:
        self.show_sos = False

    # =====================================================================
    # NOTICES
    # =====================================================================

    def notify(self, message: str, level: str = "error") -> Notice:
        notice = Notice(message=message, level=level, created_at=self._clock())
        self.notices.append(notice)
        return notice

    def active(self, now: Optional[datetime] = None) -> List[Notice]:
        """Notices younger than the TTL; expired ones are dropped."""
        now = now or self._clock()
        self.notices = [n for n in self.notices if now - n.created_at < self.notice_ttl]
        return list(self.notices)

    def dismiss(self, notice: Notice) -> None:
        if notice in self.notices:
            self.notices.remove(notice)
