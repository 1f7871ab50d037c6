"""Agent output parsing and numeric extraction."""

import json
import math
import re
from typing import Any, Optional

from .models.comparison import CONTAINER_FIELDS

FENCED_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```")
FENCED_BLOCK_PATTERN = re.compile(r"```\s*([\s\S]*?)\s*```")
LEADING_NUMBER_PATTERN = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def parse_output(raw: Any) -> Any:
    """Decode fenced or bare JSON from a string, falling back to the raw string."""
    if not isinstance(raw, str):
        return raw

    for pattern in (FENCED_JSON_PATTERN, FENCED_BLOCK_PATTERN):
        match = pattern.search(raw)
        if match:
            try:
                return json.loads(match.group(1))
            except ValueError:
                continue

    try:
        return json.loads(raw)
    except ValueError:
        return raw


def extract_number(value: Any) -> Optional[float]:
    """Parse value to a finite float, unwrapping score/value/result containers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            # Leading number of replies like "8 out of 10"
            match = LEADING_NUMBER_PATTERN.match(value)
            if not match:
                return None
            number = float(match.group(0))
    elif isinstance(value, dict):
        for field in CONTAINER_FIELDS:
            if field in value:
                return extract_number(value[field])
        return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def select_field(value: Any, field: Optional[str]) -> Any:
    """Return value[field] for dict outputs when a target field is configured."""
    if field and isinstance(value, dict):
        return value.get(field)
    return value


def canonical_json(value: Any) -> str:
    """Serialize value deterministically for equality checks."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)
