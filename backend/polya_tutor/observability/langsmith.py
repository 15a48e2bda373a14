"""LangSmith tracing for tutoring turns and outbound model calls."""

import logging
import os
from typing import Any, Dict, Iterable, Optional

from ..core.config import Settings

logger = logging.getLogger(__name__)

TRACE_TAG = "polya_tutor"


def initialize_langsmith(settings: Settings) -> bool:
    """
    Export the LangSmith environment read by LangChain and LangGraph.

    Returns:
        True when tracing is requested and an API key is present.
    """
    enabled = bool(settings.LANGSMITH_TRACING) and bool(settings.LANGSMITH_API_KEY.strip())
    flag = "true" if enabled else "false"

    exported = {
        "LANGSMITH_TRACING": flag,
        "LANGCHAIN_TRACING_V2": flag,
        "LANGSMITH_API_KEY": settings.LANGSMITH_API_KEY,
        "LANGSMITH_ENDPOINT": settings.LANGSMITH_ENDPOINT,
        "LANGSMITH_PROJECT": settings.LANGSMITH_PROJECT,
    }
    for name, value in exported.items():
        if value:
            os.environ[name] = value

    if enabled:
        logger.info(f"LangSmith tracing enabled for project {settings.LANGSMITH_PROJECT}")
    elif settings.LANGSMITH_TRACING:
        logger.warning("LANGSMITH_TRACING is set but LANGSMITH_API_KEY is empty; tracing stays off")
    return enabled


def build_trace_config(
    thread_id: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge tags, metadata and a thread id into a runnable config.

    Values already present in ``config`` are kept; new tags are appended and
    new metadata keys win.
    """
    merged = dict(config or {})

    all_tags = [*merged.get("tags", []), *(tags or [])]
    if all_tags:
        merged["tags"] = all_tags

    all_metadata = {**merged.get("metadata", {}), **(metadata or {})}
    if all_metadata:
        merged["metadata"] = all_metadata

    if thread_id:
        merged["configurable"] = {**merged.get("configurable", {}), "thread_id": thread_id}

    return merged


def turn_trace_config(session_id: str, stage: int, operation: str = "turn") -> Dict[str, Any]:
    """Config for one graph run of a tutoring session."""
    return build_trace_config(
        thread_id=session_id,
        tags=[TRACE_TAG, operation],
        metadata={"session_id": session_id, "stage": stage},
    )


def generation_trace_config(model_name: str, masked_credential: str) -> Dict[str, Any]:
    """Config for one outbound model call; only the masked key is recorded."""
    return build_trace_config(
        tags=[TRACE_TAG, "generate"],
        metadata={"model": model_name, "credential": masked_credential},
    )
