"""Custom exceptions for NoMoneyLa."""


class NoMoneyLaError(Exception):
    """Base exception for all NoMoneyLa errors."""

    pass


class ConfigurationError(NoMoneyLaError):
    """Raised when configuration is invalid or missing."""

    pass


class RecordNotFoundError(NoMoneyLaError):
    """Raised when a payer, category, subcategory or transaction does not exist."""

    def __init__(self, kind: str, record_id: str, message: str | None = None):
        self.kind = kind
        self.record_id = record_id
        super().__init__(message or f"{kind} '{record_id}' not found")


class ProtectedRecordError(NoMoneyLaError):
    """Raised when deleting or renaming a default entry."""

    def __init__(self, kind: str, name: str, message: str | None = None):
        self.kind = kind
        self.name = name
        super().__init__(
            message or f"{kind} '{name}' is a default entry and cannot be changed"
        )


class InvalidRecordError(NoMoneyLaError):
    """Raised when a record fails validation before being stored."""

    pass
