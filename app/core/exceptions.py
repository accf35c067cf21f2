"""Error taxonomy for the content pipeline and conversation service."""


class HelpdeskError(Exception):
    """Base class for all errors raised by the help center pipeline."""

    status_code: int = 500
    public_message: str = "Internal server error"


class ValidationError(HelpdeskError):
    """Required input missing or malformed."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.public_message = message


class AuthError(HelpdeskError):
    """Missing or invalid bearer token."""

    status_code = 401

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.public_message = message


class UpstreamTimeout(HelpdeskError, TimeoutError):
    """An embedding, search or scrape call exceeded its bound."""

    status_code = 504
    public_message = "Upstream service timed out"

    def __init__(self, label: str, seconds: float):
        super().__init__(f"{label} timed out after {seconds}s")
        self.label = label
        self.seconds = seconds


class UpstreamFailure(HelpdeskError):
    """Store or provider returned an error."""

    status_code = 500
    public_message = "Upstream service failed"


class EmptyContentError(HelpdeskError):
    """Generation finished but produced no usable text."""

    status_code = 500
    public_message = "Generation produced no content"


class InvalidTransitionError(HelpdeskError):
    """Conversation status change not allowed from the current status."""

    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition: {current} -> {target}")
        self.current = current
        self.target = target
        self.public_message = f"Cannot move conversation from {current} to {target}"


class TracingDegraded(HelpdeskError):
    """Tracing backend unreachable; an offline run was substituted."""


class NotFoundError(HelpdeskError):
    """Referenced record does not exist."""

    status_code = 404

    def __init__(self, message: str):
        super().__init__(message)
        self.public_message = message
