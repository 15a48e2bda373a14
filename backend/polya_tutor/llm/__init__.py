"""Resilient AI-request routing: credentials, model cascade and dispatcher."""

from .client import LangChainGenerator, classify_generation_error, get_llm
from .context import RoutingContext, build_routing_context
from .credentials import Credential, CredentialPool
from .dispatcher import RateLimitedDispatcher, is_rate_limit_signal
from .router import ModelRouter, ModelSpec

__all__ = [
    "get_llm",
    "classify_generation_error",
    "LangChainGenerator",
    "Credential",
    "CredentialPool",
    "ModelSpec",
    "ModelRouter",
    "RateLimitedDispatcher",
    "is_rate_limit_signal",
    "RoutingContext",
    "build_routing_context",
]
