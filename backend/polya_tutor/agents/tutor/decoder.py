"""Decoding of structured (JSON) model replies."""

import json
import logging
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from ...core.exceptions import MalformedModelOutput

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_json_object(text: str) -> dict:
    """
    Return the first JSON object embedded in a reply.

    Markdown fences and surrounding prose are skipped.

    Raises:
        MalformedModelOutput: If no decodable object is found
    """
    if not text:
        raise MalformedModelOutput("Empty model reply")

    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)

    raise MalformedModelOutput("No JSON object in model reply", raw_text=text)


def decode_json_object(text: str, model_cls: Type[ModelT]) -> ModelT:
    """
    Decode the first JSON object in a reply into ``model_cls``.

    Args:
        text: Raw model reply
        model_cls: Pydantic model to validate against

    Returns:
        Validated model instance

    Raises:
        MalformedModelOutput: If the reply has no object or it fails validation
    """
    data = extract_json_object(text)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Model reply failed {model_cls.__name__} validation: {e}")
        raise MalformedModelOutput(f"Invalid {model_cls.__name__}: {e}", raw_text=text) from e
