"""Core configuration, clock and error types for Polya Tutor."""

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .exceptions import (
    AllRoutesExhausted,
    ErrorKind,
    GenerationError,
    MalformedModelOutput,
    MissingConfiguration,
    ModelUnavailable,
    NoActiveSession,
    NoCredentialAvailable,
    QuotaExceeded,
    RateLimited,
    TransientGenerationError,
    TutorError,
)

__all__ = [
    "Settings",
    "get_settings",
    "Clock",
    "SystemClock",
    "AllRoutesExhausted",
    "ErrorKind",
    "GenerationError",
    "MalformedModelOutput",
    "MissingConfiguration",
    "ModelUnavailable",
    "NoActiveSession",
    "NoCredentialAvailable",
    "QuotaExceeded",
    "RateLimited",
    "TransientGenerationError",
    "TutorError",
]
