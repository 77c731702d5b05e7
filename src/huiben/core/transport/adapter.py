"""
Canonical adapter between transport records and domain types.

The embedded host and the networked server disagree on field naming
(characterName vs character_name, bananaPro vs banana_pro, baseUrl vs
base_url). Every record entering the orchestrator passes through one of the
normalize_* functions here, and every record leaving it through one of the
*_to_record functions, so no other module looks at raw field names.
"""

from collections.abc import Mapping
from typing import Any

from huiben.core.models import (
    IMAGE_TYPE_PERSON,
    IMAGE_TYPES,
    LEGACY_IMAGE_TYPES,
    MODEL_BANANA_PRO,
    MODEL_SEEDREAM,
    APIConfig,
    CharacterBinding,
    CharacterRef,
    GenerationConfig,
    ImageGenerationParams,
    ImageGenerationResult,
    ParsedPrompt,
    PromptSegment,
    ProviderEndpoint,
)
from huiben.logging_config import get_logger
from huiben.utils.exceptions import TransportError

logger = get_logger(__name__)

NAMING_SNAKE = "snake"
NAMING_CAMEL = "camel"

# Optional seedream-only fields: (snake, camel)
_SEEDREAM_EXTRAS = (
    ("size", "size"),
    ("sequential_image_generation", "sequentialImageGeneration"),
    ("response_format", "responseFormat"),
    ("watermark", "watermark"),
)


def _require_mapping(record: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(record, Mapping):
        raise TransportError(f"Malformed {kind} record: expected an object, got {record!r}")
    return record


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first of keys present with a non-None value."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def _image_type(value: Any) -> str:
    value = LEGACY_IMAGE_TYPES.get(value, value)
    if value in IMAGE_TYPES:
        return value
    logger.warning(
        "Unknown image type %r in binding record; treating as %s", value, IMAGE_TYPE_PERSON
    )
    return IMAGE_TYPE_PERSON


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# --- character bindings ---


def normalize_binding(record: Any) -> CharacterBinding:
    """
    Build a CharacterBinding from a camelCase or snake_case record.

    A record without "bound" is bound exactly when it carries a reference
    path; missing tags mean no tags.
    """
    record = _require_mapping(record, "binding")
    name = _pick(record, "character_name", "characterName", default="")
    if not name:
        raise TransportError(f"Binding record has no character name: {dict(record)!r}")
    path = _pick(record, "reference_image_path", "referenceImagePath", default="") or ""
    bound = _pick(record, "bound")
    return CharacterBinding(
        character_name=str(name),
        reference_image_path=str(path),
        image_type=_image_type(_pick(record, "image_type", "imageType", default=IMAGE_TYPE_PERSON)),
        created_at=_int(_pick(record, "created_at", "createdAt", default=0)),
        bound=bool(path) if bound is None else bool(bound),
        tags=list(_pick(record, "tags", default=[]) or []),
    )


def normalize_bindings(records: Any) -> list[CharacterBinding]:
    """Normalize a list of binding records; a null body means no bindings."""
    if records is None:
        return []
    if not isinstance(records, list):
        raise TransportError(f"Malformed binding list: expected an array, got {records!r}")
    return [normalize_binding(r) for r in records]


def binding_to_record(binding: CharacterBinding, naming: str = NAMING_SNAKE) -> dict[str, Any]:
    if naming == NAMING_CAMEL:
        return {
            "characterName": binding.character_name,
            "referenceImagePath": binding.reference_image_path,
            "imageType": binding.image_type,
            "createdAt": binding.created_at,
            "bound": binding.bound,
            "tags": list(binding.tags),
        }
    return {
        "character_name": binding.character_name,
        "reference_image_path": binding.reference_image_path,
        "image_type": binding.image_type,
        "created_at": binding.created_at,
        "bound": binding.bound,
        "tags": list(binding.tags),
    }


# --- parsed prompts ---


def normalize_parsed_prompt(record: Any) -> ParsedPrompt:
    record = _require_mapping(record, "parsed prompt")
    segments = tuple(
        PromptSegment(
            type=str(_pick(s, "type", "segment_type", default="other")),
            content=str(_pick(s, "content", default="")),
            start_index=_int(_pick(s, "start_index", "startIndex", default=0)),
            end_index=_int(_pick(s, "end_index", "endIndex", default=0)),
        )
        for s in (_require_mapping(s, "segment") for s in record.get("segments") or [])
    )
    characters: list[CharacterRef] = []
    for c in record.get("characters") or []:
        c = _require_mapping(c, "character")
        name = str(_pick(c, "name", default=""))
        if name and all(existing.name != name for existing in characters):
            characters.append(CharacterRef(name=name, bound=bool(c.get("bound", False))))
    return ParsedPrompt(
        original=str(_pick(record, "original", default="")),
        segments=segments,
        characters=tuple(characters),
    )


def parsed_prompt_to_record(parsed: ParsedPrompt) -> dict[str, Any]:
    return {
        "original": parsed.original,
        "segments": [
            {
                "type": s.type,
                "content": s.content,
                "start_index": s.start_index,
                "end_index": s.end_index,
            }
            for s in parsed.segments
        ],
        "characters": [{"name": c.name, "bound": c.bound} for c in parsed.characters],
    }


# --- provider configuration ---


def _endpoint(record: Any) -> ProviderEndpoint:
    if record is None:
        return ProviderEndpoint()
    record = _require_mapping(record, "provider endpoint")
    return ProviderEndpoint(
        base_url=str(_pick(record, "base_url", "baseUrl", default="")),
        api_key=str(_pick(record, "api_key", "apiKey", default="")),
    )


def normalize_api_config(record: Any) -> APIConfig:
    """Build an APIConfig, accepting the legacy "jimeng" key for seedream."""
    if record is None:
        return APIConfig()
    record = _require_mapping(record, "API config")
    return APIConfig(
        seedream=_endpoint(_pick(record, MODEL_SEEDREAM, "jimeng")),
        banana_pro=_endpoint(_pick(record, MODEL_BANANA_PRO, "bananaPro")),
    )


def api_config_to_record(config: APIConfig, naming: str = NAMING_SNAKE) -> dict[str, Any]:
    if naming == NAMING_CAMEL:
        return {
            "seedream": {"baseUrl": config.seedream.base_url, "apiKey": config.seedream.api_key},
            "bananaPro": {
                "baseUrl": config.banana_pro.base_url,
                "apiKey": config.banana_pro.api_key,
            },
        }
    return {
        "seedream": {"base_url": config.seedream.base_url, "api_key": config.seedream.api_key},
        "banana_pro": {
            "base_url": config.banana_pro.base_url,
            "api_key": config.banana_pro.api_key,
        },
    }


# --- generation config, params and results ---


def _extras(record: Mapping[str, Any]) -> dict[str, Any]:
    return {snake: _pick(record, snake, camel) for snake, camel in _SEEDREAM_EXTRAS}


def _extras_to_record(obj: Any, naming: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for snake, camel in _SEEDREAM_EXTRAS:
        value = getattr(obj, snake)
        if value is not None:
            out[camel if naming == NAMING_CAMEL else snake] = value
    return out


def normalize_generation_config(record: Any) -> GenerationConfig:
    record = _require_mapping(record, "generation config")
    defaults = GenerationConfig()
    return GenerationConfig(
        model=str(_pick(record, "model", default=defaults.model)),
        width=_int(_pick(record, "width"), defaults.width),
        height=_int(_pick(record, "height"), defaults.height),
        count=_int(_pick(record, "count"), defaults.count),
        quality=str(_pick(record, "quality", default=defaults.quality)),
        **_extras(record),
    )


def generation_config_to_record(
    config: GenerationConfig, naming: str = NAMING_SNAKE
) -> dict[str, Any]:
    return {
        "model": config.model,
        "width": config.width,
        "height": config.height,
        "count": config.count,
        "quality": config.quality,
        **_extras_to_record(config, naming),
    }


def generation_params_to_record(params: ImageGenerationParams) -> dict[str, Any]:
    """Serialize a request. Both transports accept snake_case for this record."""
    return {
        "prompt": params.prompt,
        "model": params.model,
        "width": params.width,
        "height": params.height,
        "count": params.count,
        "quality": params.quality,
        "character_bindings": [
            {
                "character_name": b.character_name,
                "reference_image_path": b.reference_image_path,
                "image_type": b.image_type,
            }
            for b in params.character_bindings
        ],
        "images": list(params.images),
        **_extras_to_record(params, NAMING_SNAKE),
    }


def normalize_generation_params(record: Any) -> ImageGenerationParams:
    record = _require_mapping(record, "generation request")
    bindings = _pick(record, "character_bindings", "characterBindings", default=[])
    return ImageGenerationParams(
        prompt=str(_pick(record, "prompt", default="")),
        model=str(_pick(record, "model", default=MODEL_SEEDREAM)),
        width=_int(_pick(record, "width"), 1024),
        height=_int(_pick(record, "height"), 1024),
        count=_int(_pick(record, "count"), 1),
        quality=str(_pick(record, "quality", default="standard")),
        character_bindings=normalize_bindings(bindings),
        images=list(_pick(record, "images", default=[]) or []),
        **_extras(record),
    )


def normalize_result(record: Any) -> ImageGenerationResult:
    record = _require_mapping(record, "generation result")
    return ImageGenerationResult(
        success=bool(record.get("success", False)),
        images=[str(i) for i in record.get("images") or []],
        error=_pick(record, "error"),
        task_id=str(_pick(record, "task_id", "taskId", default="")),
    )


def result_to_record(result: ImageGenerationResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "images": list(result.images),
        "error": result.error,
        "task_id": result.task_id,
    }


__all__ = [
    "NAMING_CAMEL",
    "NAMING_SNAKE",
    "api_config_to_record",
    "binding_to_record",
    "generation_config_to_record",
    "generation_params_to_record",
    "normalize_api_config",
    "normalize_binding",
    "normalize_bindings",
    "normalize_generation_config",
    "normalize_generation_params",
    "normalize_parsed_prompt",
    "normalize_result",
    "parsed_prompt_to_record",
    "result_to_record",
]
