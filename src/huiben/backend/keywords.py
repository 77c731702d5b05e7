"""
Load the segment classification vocabulary from the bundled
segment_keywords.yaml file.

The file is parsed and validated once per process. Section order matters:
detect_segment_type returns the first section whose keywords match.
"""

import importlib.resources

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from huiben.core.models import SEGMENT_TYPES
from huiben.utils.exceptions import ConfigurationError

KEYWORDS_FILE = "segment_keywords.yaml"
FALLBACK_TYPE = "other"

# Module-level cache of (type, lowercase keywords) in precedence order
_rules: list[tuple[str, tuple[str, ...]]] | None = None


class SegmentRule(BaseModel):
    """One section of segment_keywords.yaml."""

    type: str
    keywords: list[str] = Field(..., min_length=1)

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in SEGMENT_TYPES:
            raise ValueError(f"must be one of {', '.join(SEGMENT_TYPES)}")
        return value


class KeywordsSchema(BaseModel):
    """Schema for segment_keywords.yaml."""

    segments: list[SegmentRule] = Field(..., min_length=1)


def _load_rules() -> list[tuple[str, tuple[str, ...]]]:
    """Parse and validate segment_keywords.yaml. Cached after first call.

    Raises:
        ConfigurationError: If the file is missing, malformed, or fails validation.
    """
    global _rules
    if _rules is not None:
        return _rules

    try:
        with importlib.resources.files("huiben").joinpath(KEYWORDS_FILE).open(
            encoding="utf-8"
        ) as f:
            raw = f.read()
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"{KEYWORDS_FILE} not found. It should be bundled with the package."
        ) from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {KEYWORDS_FILE}: {e}") from e
    if data is None:
        raise ConfigurationError(f"{KEYWORDS_FILE} is empty. Expected a 'segments' list.")

    try:
        schema = KeywordsSchema(**data)
    except ValidationError as e:
        errors = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid {KEYWORDS_FILE} structure:\n{errors}") from e

    _rules = [
        (rule.type, tuple(k.lower() for k in rule.keywords if k.strip()))
        for rule in schema.segments
    ]
    return _rules


def detect_segment_type(text: str) -> str:
    """Classify a clause; "other" when no keyword matches."""
    lowered = text.lower()
    for segment_type, keywords in _load_rules():
        if any(k in lowered for k in keywords):
            return segment_type
    return FALLBACK_TYPE
