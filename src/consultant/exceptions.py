"""Exception hierarchy for the consultant chat engine.

Each condition a caller may want to react to differently gets its own
class, so that access and sign-in failures can be told apart from
generic transport errors.
"""


class ConsultantError(Exception):
    """Base class for all consultant errors."""


class SessionStoreError(ConsultantError):
    """A session persistence call failed (read or write)."""


class SessionCreationError(SessionStoreError):
    """A new conversation session could not be allocated."""


class StreamError(ConsultantError):
    """Base class for failures of a streaming chat request."""


class AccessDeniedError(StreamError):
    """The backend refused the request for lack of an active entitlement."""

    def __init__(self, message: str = "An active consultant access pass is required", code: str | None = None):
        super().__init__(message)
        self.code = code


class ReauthenticationRequiredError(StreamError):
    """The backend rejected the caller's credentials; sign in again."""


class StreamRequestError(StreamError):
    """The backend answered with an unexpected non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Chat request failed: {status_code} {body}".strip())
        self.status_code = status_code
        self.body = body


class EngineBusyError(ConsultantError):
    """A response is still streaming for this chat surface."""


class NotHydratedError(ConsultantError):
    """The chat surface has no hydrated session yet."""
