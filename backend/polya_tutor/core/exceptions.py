"""Error taxonomy for the routing layer and the tutoring session."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a failed outbound generation call."""

    QUOTA = "quota"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"


class TutorError(Exception):
    """Base class for every error raised by the tutoring core."""


class MissingConfiguration(TutorError):
    """Credentials or models were not configured."""


class NoCredentialAvailable(TutorError):
    """The credential pool is empty or has no active entry."""


class GenerationError(TutorError):
    """A single (model, credential) call failed."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str, model_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.model_name = model_name

    @property
    def is_quota_like(self) -> bool:
        return self.kind == ErrorKind.QUOTA


class QuotaExceeded(GenerationError):
    """The provider reported plan quota exhaustion for a credential/model."""

    kind = ErrorKind.QUOTA


class RateLimited(QuotaExceeded):
    """The provider answered HTTP 429."""


class ModelUnavailable(GenerationError):
    """The model name is unknown to the provider (HTTP 404)."""

    kind = ErrorKind.NOT_FOUND


class TransientGenerationError(GenerationError):
    """Any other provider or network failure."""

    kind = ErrorKind.TRANSIENT


class AllRoutesExhausted(TutorError):
    """No (model, credential) pair produced a reply."""

    def __init__(self, last_error: Optional[BaseException], available_credential_count: int):
        detail = str(last_error) if last_error else "no model was eligible"
        super().__init__(
            f"All model/credential routes exhausted "
            f"({available_credential_count} credential(s) available). Last error: {detail}"
        )
        self.last_error = last_error
        self.available_credential_count = available_credential_count

    @property
    def rate_limited(self) -> bool:
        """True when the cascade ended on a quota-like error."""
        return isinstance(self.last_error, GenerationError) and self.last_error.is_quota_like


class NoActiveSession(TutorError):
    """A turn or hint was requested before the session was started or restored."""


class MalformedModelOutput(TutorError):
    """A model reply could not be decoded into the expected structure."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text
