"""Utilities for converting between stored transcripts and LangChain messages."""

from typing import Any, Dict, Iterable, List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage


def message_content(message: Any) -> str:
    """Extract plain-text content from dict or LangChain message objects."""
    if isinstance(message, dict):
        content = message.get("text", message.get("content", ""))
        return content if isinstance(content, str) else str(content)

    if isinstance(message, BaseMessage):
        content = getattr(message, "content", "")
        if isinstance(content, list):
            # Multi-part content: keep the text parts only.
            return "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return content if isinstance(content, str) else str(content)

    return str(message) if message is not None else ""


def message_role(message: Any) -> str:
    """Infer a normalized transcript role ("user" | "model" | "system")."""
    if isinstance(message, dict):
        role = str(message.get("role", "user")).lower()
        if role in ("assistant", "ai", "model"):
            return "model"
        return "system" if role == "system" else "user"

    if isinstance(message, AIMessage):
        return "model"
    if isinstance(message, SystemMessage):
        return "system"
    return "user"


def transcript_to_langchain(history: Iterable[Any]) -> List[BaseMessage]:
    """
    Convert stored ``{role, text}`` entries to LangChain messages.

    Entries may also use ``content`` or Gemini-style ``parts`` instead of ``text``.
    """
    result: List[BaseMessage] = []
    for entry in history:
        if isinstance(entry, BaseMessage):
            result.append(entry)
            continue

        text = message_content(entry)
        if isinstance(entry, dict) and "parts" in entry and not text:
            text = " ".join(
                part.get("text", "") for part in entry.get("parts") or [] if isinstance(part, dict)
            )

        role = message_role(entry)
        if role == "model":
            result.append(AIMessage(content=text))
        elif role == "system":
            result.append(SystemMessage(content=text))
        else:
            result.append(HumanMessage(content=text))
    return result


def langchain_to_transcript(messages: Iterable[BaseMessage]) -> List[Dict[str, str]]:
    """Convert LangChain messages to ``{role, text}`` entries, dropping system messages."""
    return [
        {"role": message_role(message), "text": message_content(message)}
        for message in messages
        if not isinstance(message, SystemMessage)
    ]
