"""Core utilities for the fare engine."""

from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    MeterStateError,
    NotFoundError,
    PermanentError,
    PricingError,
)

__all__ = [
    "ConfigurationError",
    "InvalidInputError",
    "MeterStateError",
    "NotFoundError",
    "PermanentError",
    "PricingError",
]
