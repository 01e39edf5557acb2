import json
import math
import re
from typing import Any


def _non_finite(literal: str) -> None:
    # NaN / Infinity / -Infinity are not JSON; the value counts as absent
    return None


_decoder = json.JSONDecoder(parse_constant=_non_finite)


def _strip_code_fences(s: str) -> str:
    s = s.strip()
    # remove ```json ... ``` or ``` ... ```
    if s.startswith("```"):
        s = re.sub(r"^```[a-zA-Z0-9]*\s*", "", s)
        s = re.sub(r"\s*```$", "", s)
    return s.strip()


def loads_json(text: str) -> Any:
    """Strict JSON body parsing; non-finite literals decode to None."""
    return json.loads(text, parse_constant=_non_finite)


def extract_json(text: str) -> Any:
    """
    Parse the first JSON object/array found in text.
    Code fences, leading prose and trailing garbage are ignored.
    """
    candidate = _strip_code_fences(text or "")
    starts = [i for i in (candidate.find("{"), candidate.find("[")) if i != -1]
    if not starts:
        raise ValueError("No JSON object/array found in text")
    value, _ = _decoder.raw_decode(candidate, min(starts))
    return value


def drop_non_finite(value: Any) -> Any:
    """
    Replace NaN and infinite floats with None, through nested dicts and lists.
    Overflowing exponents such as 1e400 decode to inf even without a literal.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: drop_non_finite(v) for k, v in value.items()}
    if isinstance(value, list):
        return [drop_non_finite(v) for v in value]
    return value


def ensure_record(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def parse_tool_arguments(raw: Any) -> dict:
    """
    Tool-call arguments arrive as a JSON string (OpenAI) or an object
    (Anthropic). Anything unparsable becomes an empty input so the validator
    reports the missing fields instead of the request failing.
    """
    if isinstance(raw, dict):
        return drop_non_finite(raw)
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        return drop_non_finite(ensure_record(extract_json(raw)))
    except ValueError:
        return {}
