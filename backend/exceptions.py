"""Error types shared by the session core and the HTTP layer."""


class RouterChatError(Exception):
    """Base class for RouterChat errors."""


class PreconditionError(RouterChatError):
    """A turn cannot start; ``message`` is shown to the user as guidance."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredentialError(PreconditionError):
    def __init__(self):
        super().__init__("Please enter your OpenRouter API key first.")


class MissingModelError(PreconditionError):
    def __init__(self):
        super().__init__("Please select a model.")


class SessionBusyError(RouterChatError):
    """A turn is already streaming or reconciling for this session."""


class CompletionError(RouterChatError):
    """The completion endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"HTTP error! status: {status_code}")
        self.status_code = status_code
        self.body = body


class InvalidCredentialError(RouterChatError):
    """OpenRouter rejected the API key (401/403)."""

    def __init__(self, status_code: int):
        super().__init__(f"API key rejected (status {status_code})")
        self.status_code = status_code


class UsageNotReadyError(RouterChatError):
    """Generation stats are not available yet; the poll may be retried."""


class UsageFetchError(RouterChatError):
    """Generation stats request failed with a non-retryable status."""

    def __init__(self, status_code: int):
        super().__init__(f"Stats fetch failed (status {status_code})")
        self.status_code = status_code
