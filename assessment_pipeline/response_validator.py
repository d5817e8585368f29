"""
Boundary between the generation capability and the typed pipeline.

Every capability exchange is reduced to a tagged result:

    Ok(value) | SchemaError(reason) | TransportError(reason)

Stages chain the helpers below and turn anything that is not ``Ok`` into their
own exception, so nothing downstream ever trusts an unchecked payload.
"""

import re
import json
from dataclasses import dataclass
from typing import Any, Sequence, Type, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from . import utils

logger = utils.setup_logger(__name__)


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class SchemaError:
    reason: str


@dataclass(frozen=True)
class TransportError:
    reason: str


CapabilityResult = Union[Ok, SchemaError, TransportError]


# Regex + helper to repair invalid JSON backslash escapes coming from LaTeX.
# JSON only allows: \" \\ \/ \b \f \n \r \t \uXXXX
_INVALID_JSON_ESCAPE_RE = re.compile(r'(?<!\\)\\([^"\\/bfnrtu])')
_CONTROL_CHAR_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')
_FENCE_RE = re.compile(r'```(?:json)?\s*([\[{][\s\S]*?[\]}])\s*```')


def _escape_invalid_json_backslashes(s: str) -> str:
    """
    Turn single-backslash LaTeX such as '\\frac' or '\\theta' inside JSON strings
    into '\\\\frac' so json.loads keeps the intended backslash.
    Valid escapes and already-doubled backslashes are left alone.
    """
    if not s:
        return s
    return _INVALID_JSON_ESCAPE_RE.sub(r'\\\\\1', s)


def _extract_json_block(raw_text: str) -> str:
    """Find the JSON value, even if it is wrapped in markdown or prose."""
    fenced = _FENCE_RE.search(raw_text)
    if fenced:
        return fenced.group(1)

    starts = [i for i in (raw_text.find("{"), raw_text.find("[")) if i != -1]
    if not starts:
        return raw_text
    start = min(starts)
    closer = "}" if raw_text[start] == "{" else "]"
    end = raw_text.rfind(closer)
    return raw_text[start:end + 1] if end > start else raw_text[start:]


def parse_json(raw_text: str) -> CapabilityResult:
    """
    Parse model text into JSON, attempting the usual repairs.

    Strict json.loads first (schema-constrained responses normally pass);
    then: pull the JSON block out of fences/prose, strip control characters and
    smart quotes, escape stray LaTeX backslashes, drop trailing commas.
    """
    if not raw_text or not raw_text.strip():
        logger.warning("Validator: empty response.")
        return SchemaError("empty response from the generation capability")

    logger.debug("Validator: attempting parse. Raw (first 500 chars): %s", raw_text[:500])

    try:
        return Ok(json.loads(raw_text))
    except json.JSONDecodeError:
        pass

    json_str = _extract_json_block(raw_text.strip())
    json_str = _CONTROL_CHAR_RE.sub('', json_str)
    json_str = (
        json_str
        .replace('\u00a0', ' ')
        .replace('“', '"').replace('”', '"')
    )
    json_str = _escape_invalid_json_backslashes(json_str)
    json_str = re.sub(r',\s*([}\]])', r'\1', json_str)

    try:
        parsed = json.loads(json_str)
        logger.debug("Validator: JSON parsed after repair.")
        return Ok(parsed)
    except json.JSONDecodeError as e:
        short = utils.truncate(str(e), limit=160)
        logger.warning("Validator: parse failed after repair attempts — %s", short)
        logger.debug("Validator: original raw (first 2000 chars): %s", raw_text[:2000])
        return SchemaError(f"response is not valid JSON: {short}")


def _describe(e: ValidationError, limit: int = 3) -> str:
    errs = e.errors()
    bits = []
    for err in errs[:limit]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        bits.append(f"{loc or '<root>'}: {err.get('msg')}")
    more = f" (+{len(errs) - limit} more)" if len(errs) > limit else ""
    return "; ".join(bits) + more


def validate_object(payload: Any, model: Type[BaseModel]) -> CapabilityResult:
    """Validate a parsed JSON object against a pydantic model."""
    if not isinstance(payload, dict):
        return SchemaError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        return Ok(model.model_validate(payload))
    except ValidationError as e:
        return SchemaError(_describe(e))


def validate_list(payload: Any, model: Type[BaseModel]) -> CapabilityResult:
    """Validate a parsed JSON array; a single bad record fails the whole list."""
    if isinstance(payload, dict):
        # Some responses wrap the array: {"questions": [...]} / {"mcqs": [...]}
        lists = [v for v in payload.values() if isinstance(v, list)]
        if len(lists) == 1:
            payload = lists[0]
    if not isinstance(payload, list):
        return SchemaError(f"expected a JSON array, got {type(payload).__name__}")
    try:
        return Ok(TypeAdapter(list[model]).validate_python(payload))
    except ValidationError as e:
        return SchemaError(_describe(e))


def call_capability(capability, contents: Sequence[Any], response_schema: dict, label: str) -> CapabilityResult:
    """Invoke the capability once; any exception becomes a TransportError."""
    try:
        text = capability.generate(contents, response_schema)
    except Exception as e:
        logger.error("%s: capability call failed — %s", label, utils.truncate(str(e), 200))
        return TransportError(f"{type(e).__name__}: {e}")
    if not isinstance(text, str):
        return SchemaError(f"capability returned {type(text).__name__}, expected text")
    return Ok(text)


def parse_and_validate(result: CapabilityResult, model: Type[BaseModel], *, many: bool) -> CapabilityResult:
    """Chain: capability text → JSON → pydantic model(s). Non-Ok results pass straight through."""
    if not isinstance(result, Ok):
        return result
    parsed = parse_json(result.value)
    if not isinstance(parsed, Ok):
        return parsed
    return validate_list(parsed.value, model) if many else validate_object(parsed.value, model)
