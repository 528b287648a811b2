"""Error taxonomy for the assistant pipeline."""


class VEAError(Exception):
    """Base class for all assistant errors."""


class ConfigurationError(VEAError):
    """A required credential or endpoint is missing.

    Raised before any network call is attempted and never retried.
    """


class ProviderError(VEAError):
    """A language-model or media provider returned a non-2xx or malformed response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownFunctionError(VEAError):
    """The model referenced a function that is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Unknown function: {name}")
        self.name = name


class ProviderTimeoutError(VEAError, TimeoutError):
    """A bounded wait (model call or poll budget) was exceeded."""


class TransientPollError(VEAError):
    """A single status check failed; the poll loop keeps going."""


class AssistantError(VEAError):
    """User-facing failure of a conversation turn."""
