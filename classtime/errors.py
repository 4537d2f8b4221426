class ClasstimeError(Exception):
    """Base class for every error raised by classtime."""


class ConfigurationError(ClasstimeError):
    """Malformed snapshot or configuration; raised before any search work."""


class InfeasibleSessionError(ClasstimeError):
    """A session has no legal candidate even before search starts."""

    def __init__(self, session_id: str, reason: str):
        super().__init__(f"{session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason


class SearchBudgetExceeded(ClasstimeError):
    """Node or time budget of the constructive search ran out."""


class Cancelled(ClasstimeError):
    """The caller asked the running solve to stop."""
