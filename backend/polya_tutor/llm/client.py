"""LLM client factory and the outbound generation call.

Gemini is reached through its OpenAI-compatible endpoint, so the same
ChatOpenAI client serves every (model, credential) pair. Provider failures
are classified into quota-like, not-found-like and transient errors.
"""

import logging
from typing import Awaitable, Callable, Optional, Sequence, Union

import openai
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from ..core.config import Settings
from ..core.exceptions import (
    GenerationError,
    ModelUnavailable,
    QuotaExceeded,
    RateLimited,
    TransientGenerationError,
)
from ..observability.langsmith import generation_trace_config
from .credentials import mask_secret
from .message_utils import message_content

logger = logging.getLogger(__name__)

Prompt = Union[str, Sequence[BaseMessage]]
Generate = Callable[[str, str, Prompt], Awaitable[str]]

_QUOTA_MARKERS = (
    "429",
    "quota",
    "rate limit",
    "resource_exhausted",
    "resource exhausted",
    "exceeded",
)
_NOT_FOUND_MARKERS = (
    "404",
    "not found",
    "not_found",
    "is not supported",
)


def get_llm(
    api_key: str,
    model: str,
    base_url: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
) -> ChatOpenAI:
    """
    Get a configured LLM client for one (model, credential) pair.

    Args:
        api_key: Credential secret
        model: Model name
        base_url: OpenAI-compatible endpoint
        temperature: Sampling temperature
        max_tokens: Maximum output tokens
        timeout: Request timeout in seconds

    Returns:
        Configured ChatOpenAI instance with client-side retries disabled
    """
    return ChatOpenAI(
        base_url=base_url,
        api_key=api_key,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
        max_retries=0,
    )


def classify_generation_error(exc: BaseException, model_name: Optional[str] = None) -> GenerationError:
    """
    Map a provider exception onto the routing error taxonomy.

    Args:
        exc: Exception raised by the client
        model_name: Model that was being called

    Returns:
        RateLimited, QuotaExceeded, ModelUnavailable or TransientGenerationError
    """
    if isinstance(exc, GenerationError):
        return exc

    message = str(exc)
    if isinstance(exc, openai.RateLimitError):
        return RateLimited(message, model_name)
    if isinstance(exc, openai.NotFoundError):
        return ModelUnavailable(message, model_name)

    status_code = getattr(exc, "status_code", None)
    if status_code == 429:
        return RateLimited(message, model_name)
    if status_code == 404:
        return ModelUnavailable(message, model_name)

    text = message.lower()
    if any(marker in text for marker in _QUOTA_MARKERS):
        return QuotaExceeded(message, model_name)
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return ModelUnavailable(message, model_name)

    return TransientGenerationError(message, model_name)


class LangChainGenerator:
    """
    The outbound call ``generate(model_name, secret, prompt) -> text``.

    Raises a classified GenerationError on failure.
    """

    def __init__(
        self,
        base_url: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "LangChainGenerator":
        return cls(
            base_url=settings.LLM_BASE_URL,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    async def __call__(self, model_name: str, secret: str, prompt: Prompt) -> str:
        llm = get_llm(
            api_key=secret,
            model=model_name,
            base_url=self.base_url,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        config = generation_trace_config(model_name, mask_secret(secret))
        try:
            response = await llm.ainvoke(prompt, config=config)
        except Exception as exc:
            raise classify_generation_error(exc, model_name) from exc
        return message_content(response)
