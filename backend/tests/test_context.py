"""
Tests for the routing context factory, tracing configuration and
transcript conversion helpers.
"""

import os

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from conftest import ScriptedGenerator
from polya_tutor.core.config import Settings
from polya_tutor.core.exceptions import MissingConfiguration
from polya_tutor.llm.client import get_llm
from polya_tutor.llm.context import build_routing_context
from polya_tutor.llm.message_utils import (
    langchain_to_transcript,
    message_content,
    transcript_to_langchain,
)
from polya_tutor.observability.langsmith import (
    build_trace_config,
    initialize_langsmith,
    turn_trace_config,
)

TRACE_ENV = (
    "LANGSMITH_TRACING",
    "LANGCHAIN_TRACING_V2",
    "LANGSMITH_API_KEY",
    "LANGSMITH_ENDPOINT",
    "LANGSMITH_PROJECT",
)


class TestRoutingContext:
    """Test construction of the shared routing components."""

    def test_missing_keys(self):
        settings = Settings(GEMINI_API_KEYS="", GEMINI_MODELS="model-lite:5")
        with pytest.raises(MissingConfiguration):
            build_routing_context(settings, generate=ScriptedGenerator())

    def test_missing_models(self):
        settings = Settings(GEMINI_API_KEYS="key-1", GEMINI_MODELS=" , ")
        with pytest.raises(MissingConfiguration):
            build_routing_context(settings, generate=ScriptedGenerator())

    def test_models_keep_configured_priority(self, routing_context):
        report = routing_context.usage_report()

        assert [model["name"] for model in report["models"]] == ["model-lite", "model-pro"]
        assert report["available_credentials"] == 2
        assert report["total_requests"] == 0

    def test_llm_client_disables_retries(self):
        llm = get_llm("key-1", "model-lite", "https://example.invalid/v1")
        assert llm.max_retries == 0
        assert llm.model_name == "model-lite"


class TestTracing:
    """Test LangSmith setup and run configuration."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in TRACE_ENV:
            monkeypatch.delenv(name, raising=False)

    def test_disabled_without_key(self):
        settings = Settings(LANGSMITH_TRACING=True, LANGSMITH_API_KEY="")

        assert initialize_langsmith(settings) is False
        assert os.environ["LANGSMITH_TRACING"] == "false"

    def test_enabled_with_key(self):
        settings = Settings(LANGSMITH_TRACING=True, LANGSMITH_API_KEY="ls-key", LANGSMITH_PROJECT="demo")

        assert initialize_langsmith(settings) is True
        assert os.environ["LANGCHAIN_TRACING_V2"] == "true"
        assert os.environ["LANGSMITH_PROJECT"] == "demo"

    def test_trace_config_merges_existing_values(self):
        config = build_trace_config(
            thread_id="s-1",
            tags=["turn"],
            metadata={"stage": 2},
            config={"tags": ["api"], "metadata": {"stage": 1, "user": "x"}},
        )

        assert config["tags"] == ["api", "turn"]
        assert config["metadata"] == {"stage": 2, "user": "x"}
        assert config["configurable"]["thread_id"] == "s-1"

    def test_trace_config_without_thread(self):
        assert "configurable" not in build_trace_config(tags=["x"])

    def test_turn_trace_config(self):
        config = turn_trace_config("s-9", 3)
        assert config["metadata"] == {"session_id": "s-9", "stage": 3}
        assert "turn" in config["tags"]


class TestMessageUtils:
    """Test conversion between stored transcripts and LangChain messages."""

    def test_roles_map_to_message_types(self):
        messages = transcript_to_langchain([
            {"role": "system", "text": "Bạn là gia sư"},
            {"role": "user", "text": "12 và 30"},
            {"role": "assistant", "content": "Đúng rồi"},
            {"role": "model", "parts": [{"text": "Bước"}, {"text": "tiếp"}]},
        ])

        assert [type(message) for message in messages] == [SystemMessage, HumanMessage, AIMessage, AIMessage]
        assert messages[2].content == "Đúng rồi"
        assert messages[3].content == "Bước tiếp"

    def test_transcript_drops_system_messages(self):
        transcript = langchain_to_transcript([
            SystemMessage(content="prompt"),
            HumanMessage(content="42"),
            AIMessage(content="Giỏi lắm"),
        ])

        assert transcript == [
            {"role": "user", "text": "42"},
            {"role": "model", "text": "Giỏi lắm"},
        ]

    def test_multipart_content_keeps_text(self):
        message = AIMessage(content=[{"type": "text", "text": "Xin "}, {"type": "text", "text": "chào"}])
        assert message_content(message) == "Xin chào"
