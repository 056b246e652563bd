"""
Output validator — turns free-form model text into a ValidatedScore.

Three steps, each with its own failure:

    extract_json_object   "Sure! ```json {...} ``` hope that helps"  →  "{...}"
                          no braces / "}" before "{"                  →  NonJsonOutput
    parse_json_object     "{...}" → dict                              →  NonJsonOutput
    validate              dict → ValidatedScore                       →  SchemaViolation

Nothing downstream ever sees the raw dict: persistence only accepts a
ValidatedScore, whose fields are already floats and lists of strings.
"""

import json
import math
import re
from dataclasses import dataclass, asdict

from scoring.errors import NonJsonOutput, SchemaViolation
from scoring.prompts import REQUIRED_KEYS, SCORE_KEYS, LIST_KEYS

# One fence at the very start (optionally tagged, e.g. ```json) and one at the very end
_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```$")


@dataclass(frozen=True)
class ValidatedScore:
    overall_score: float
    communication_score: float
    conversion_score: float
    risk_score: float
    coaching_priority: float
    strengths: list[str]
    weaknesses: list[str]
    key_patterns: list[str]

    def to_dict(self) -> dict:
        return asdict(self)


def extract_json_object(raw_text: str) -> str:
    """Return the substring from the first '{' to the last '}' (inclusive)."""
    text = (raw_text or "").strip()
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1:
        raise NonJsonOutput("model output contains no JSON object")
    if end < start:
        raise NonJsonOutput("model output has '}' before '{'")
    return text[start:end + 1]


def parse_json_object(json_text: str) -> dict:
    try:
        parsed = json.loads(json_text)
    except ValueError:
        # the decoder's position details are useless to an operator
        raise NonJsonOutput("model output is not valid JSON") from None
    if not isinstance(parsed, dict):
        raise NonJsonOutput("model output is not a JSON object")
    return parsed


def validate(parsed: dict) -> ValidatedScore:
    """
    Check presence first (first missing key wins), then types.

    Extra keys are ignored. Scores may arrive as numbers or numeric strings
    and are clamped to 0..100; list items are stringified and blanks dropped.
    """
    for key in REQUIRED_KEYS:
        if key not in parsed:
            raise SchemaViolation(key)

    fields = {key: _as_score(key, parsed[key]) for key in SCORE_KEYS}
    fields.update({key: _as_string_list(key, parsed[key]) for key in LIST_KEYS})
    return ValidatedScore(**fields)


def parse_and_validate(raw_text: str) -> ValidatedScore:
    return validate(parse_json_object(extract_json_object(raw_text)))


def _as_score(key: str, value) -> float:
    if isinstance(value, bool):
        raise SchemaViolation(key, "non-numeric")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SchemaViolation(key, "non-numeric") from None
    if math.isnan(number) or math.isinf(number):
        raise SchemaViolation(key, "non-numeric")
    return min(max(number, 0.0), 100.0)


def _as_string_list(key: str, value) -> list[str]:
    if not isinstance(value, list):
        raise SchemaViolation(key, "non-array")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]
