# venti/client/__init__.py

from .app import VentiApp
from .bootstrap import SessionBootstrapper
from .errors import (
    FunctionError,
    NotAuthenticated,
    ProfileUnavailable,
    RecordConflict,
    RecordNotFound,
    RecordStoreError,
)
from .mutations import OptimisticMutations
from .state import AggregateContainer, Confirmed, Pending, Permissions, Tracked, UserData

__all__ = [
    "VentiApp",
    "SessionBootstrapper",
    "OptimisticMutations",
    "AggregateContainer",
    "UserData",
    "Permissions",
    "Tracked",
    "Pending",
    "Confirmed",
    "RecordStoreError",
    "RecordNotFound",
    "RecordConflict",
    "FunctionError",
    "NotAuthenticated",
    "ProfileUnavailable",
]
