"""Output comparison settings."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel

from .configuration import Configuration

ComparisonMethod = Literal["numeric", "exact", "llm", "auto"]

NUMERIC_SCHEMA_TYPES = {"number", "integer"}
CONTAINER_FIELDS = ("score", "value", "result")


def numeric_schema_field(schema: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the numeric property of an object schema with a score or a single numeric field."""
    if not schema or schema.get("type") != "object":
        return None
    properties = schema.get("properties") or {}
    score = properties.get("score")
    if isinstance(score, dict) and score.get("type") in NUMERIC_SCHEMA_TYPES:
        return "score"
    if len(properties) == 1:
        name, property_schema = next(iter(properties.items()))
        if isinstance(property_schema, dict) and property_schema.get("type") in NUMERIC_SCHEMA_TYPES:
            return name
    return None


def is_numeric_schema(schema: Optional[Dict[str, Any]]) -> bool:
    """Check whether a JSON schema describes a numeric score."""
    if not schema:
        return False
    return schema.get("type") in NUMERIC_SCHEMA_TYPES or numeric_schema_field(schema) is not None


class ComparisonConfig(BaseModel):
    """Explicit comparison method and optional target field."""

    method: ComparisonMethod
    field: Optional[str] = None

    @classmethod
    def infer(cls, configuration: Configuration) -> Optional["ComparisonConfig"]:
        """Derive numeric comparison from a numeric output schema, else None."""
        schema = configuration.output_schema
        if not is_numeric_schema(schema):
            return None
        field = numeric_schema_field(schema)
        if field in CONTAINER_FIELDS:
            field = None
        return cls(method="numeric", field=field)
