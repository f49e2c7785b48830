"""Custom exceptions for the contact discovery domain."""


class CascadeError(Exception):
    """Base exception for this project."""


class ConfigError(CascadeError):
    """Raised when runtime configuration is invalid."""


class BriefError(CascadeError):
    """Raised when a search brief is malformed. No tier runs."""


class AdapterError(CascadeError):
    """Raised when one source adapter fails."""


class BudgetError(CascadeError):
    """Raised when a costed tier cannot be paid for."""


class RunCancelled(CascadeError):
    """Raised when the caller abandons a run."""
