"""Structured payload extraction from free-form model output.

This module provides:
- _strip_json_fences: Remove markdown code fences from model output
- extract_json_object: Locate the first balanced {...} span and parse it
- parse_payload: Extract and validate into a Pydantic model
"""

import json
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from vision_builder.core.exceptions import MalformedResponseError

logger = structlog.get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def _strip_json_fences(content: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    content = content.strip()
    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            content = content[first_newline + 1 :]
        if content.endswith("```"):
            content = content[:-3].rstrip()
    return content


def _first_balanced_object(text: str) -> str | None:
    """Return the first balanced-brace span, ignoring braces inside JSON strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def extract_json_object(content: str | None) -> dict[str, Any]:
    """Parse the first JSON object found in model output.

    Raises:
        MalformedResponseError: If no balanced object parses as a JSON object
    """
    if not content or not content.strip():
        raise MalformedResponseError("Model returned empty content")

    text = _strip_json_fences(content)
    candidate = _first_balanced_object(text)
    if candidate is None:
        raise MalformedResponseError("No JSON object found in model output")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Model output is not valid JSON: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise MalformedResponseError("Model output JSON is not an object")
    return data


def parse_payload(content: str | None, model: type[PayloadT]) -> PayloadT:
    """Extract the structured payload and validate the expected fields.

    Raises:
        MalformedResponseError: On extraction failure or missing/invalid fields
    """
    data = extract_json_object(content)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        logger.warning("payload_validation_failed", payload_model=model.__name__, fields=fields)
        raise MalformedResponseError(
            f"Model output is missing or has invalid fields: {', '.join(fields)}"
        ) from exc
