# src/chatvault/memory/llm_json.py
"""
Defensive parsing of JSON-shaped model output.

Model replies are cleaned (code fences, leading prose), parsed, repaired with
json_repair when plain parsing fails, then validated against a pydantic
schema. The outcome is a `Result`, never an exception.
"""

from __future__ import annotations

import json
import re
from typing import Any, Type, TypeVar

from json_repair import repair_json
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chatvault.core.errors import ChatVaultError, ParseError, Result, ValidationError

M = TypeVar("M", bound=BaseModel)

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def strip_fences(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE.sub("", cleaned).strip()
    return cleaned


def parse_json(text: str, allow_repair: bool = True) -> Any:
    """
    Parse model output into a Python object.

    Raises:
        ParseError: empty or unparseable output
    """
    if not text or not isinstance(text, str):
        raise ParseError("empty model response")
    cleaned = strip_fences(text)

    start, end = cleaned.find("{"), cleaned.rfind("}")
    candidate = cleaned[start:end + 1] if 0 <= start < end else cleaned

    try:
        return json.loads(candidate)
    except ValueError:
        if not allow_repair:
            raise ParseError("invalid JSON", context={"snippet": cleaned[:200]})

    try:
        repaired = repair_json(candidate, return_objects=True)
    except Exception as e:
        raise ParseError(f"JSON repair failed: {e}", context={"snippet": cleaned[:200]}) from e
    if repaired in ("", None):
        raise ParseError("no JSON object in model response", context={"snippet": cleaned[:200]})
    return repaired


def parse_model(text: str, schema: Type[M]) -> Result[M, ChatVaultError]:
    """Parse and validate; failures come back as `Result.err`."""
    try:
        data = parse_json(text)
    except ParseError as e:
        return Result.err(e)

    if not isinstance(data, dict):
        return Result.err(ParseError(
            f"expected a JSON object, got {type(data).__name__}",
            context={"schema": schema.__name__},
        ))

    try:
        return Result.ok(schema.model_validate(data))
    except PydanticValidationError as e:
        return Result.err(ValidationError(
            f"model output does not match {schema.__name__}",
            context={"errors": e.errors(include_url=False)},
        ))
