# client/errors.py
from typing import Optional

NOT_SIGNED_IN_MESSAGE = "You are not signed in."
NETWORK_MESSAGE = "Network error: could not reach the server."
BAD_RESPONSE_MESSAGE = "Unexpected response from the server."


# ---------------------------
# Record store
# ---------------------------

class RecordStoreError(Exception):
    """
    A failed store operation.

    ``kind`` is one of ``not_found``, ``conflict``, ``unauthorized``,
    ``network`` or ``other``.
    """

    kind = "other"

    def __init__(self, message: str, kind: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.status_code = status_code


class RecordNotFound(RecordStoreError):
    kind = "not_found"


class RecordConflict(RecordStoreError):
    kind = "conflict"


# ---------------------------
# Session & functions
# ---------------------------

class NotAuthenticated(Exception):
    """No signed-in session is available for the call."""

    def __init__(self, message: str = NOT_SIGNED_IN_MESSAGE):
        super().__init__(message)


class FunctionError(Exception):
    """A server function failed; the message is safe to show to the user."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProfileUnavailable(Exception):
    """The profile could be neither fetched nor created. Fatal for the session."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
