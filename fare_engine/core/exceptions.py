"""Exception hierarchy for the fare engine.

The engine performs no I/O, so every failure is permanent: retrying the same
call with the same inputs always fails the same way.
"""

from typing import Any

from pydantic import ValidationError


class PricingError(Exception):
    """Base exception for all fare engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PermanentError(PricingError):
    """Errors that will not succeed on retry."""

    pass


class InvalidInputError(PermanentError):
    """Negative, non-finite or unrecognized input to a calculation."""

    @classmethod
    def from_validation_error(cls, what: str, exc: ValidationError) -> "InvalidInputError":
        """Wrap a pydantic ValidationError, keeping its error list in details."""
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        return cls(
            f"Invalid {what}: {', '.join(fields) or 'input'}",
            details={"errors": exc.errors(include_url=False)},
        )


class MeterStateError(PermanentError):
    """Meter command issued from a state that does not allow it."""

    pass


class NotFoundError(PermanentError):
    """Requested meter does not exist."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass
