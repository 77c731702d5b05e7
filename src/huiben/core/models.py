"""
Domain types shared by the orchestrator and the embedded command host.

Records crossing a transport are plain dicts; converting between those and
the dataclasses below is the job of huiben.core.transport.adapter.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from huiben.utils.exceptions import ValidationError

MODEL_SEEDREAM = "seedream"
MODEL_BANANA_PRO = "banana_pro"
KNOWN_MODELS = (MODEL_SEEDREAM, MODEL_BANANA_PRO)
# Older stores and clients call the seedream provider "jimeng"
MODEL_ALIASES = {"jimeng": MODEL_SEEDREAM, "bananaPro": MODEL_BANANA_PRO}

QUALITIES = ("standard", "high", "ultra")

IMAGE_TYPE_PERSON = "person"
IMAGE_TYPE_SCENE = "scene"
IMAGE_TYPES = (IMAGE_TYPE_PERSON, IMAGE_TYPE_SCENE)
LEGACY_IMAGE_TYPES = {"人物": IMAGE_TYPE_PERSON, "场景": IMAGE_TYPE_SCENE}

SEGMENT_TYPES = (
    "scene",
    "action",
    "character",
    "background",
    "time",
    "weather",
    "style",
    "other",
)


def canonical_model(model: str) -> str:
    """Return the canonical provider id for model, or raise ValidationError."""
    model = MODEL_ALIASES.get(model, model)
    if model not in KNOWN_MODELS:
        raise ValidationError(
            f"Unknown model: {model!r}. Must be one of: {', '.join(KNOWN_MODELS)}.",
            field="model",
        )
    return model


def canonical_image_type(image_type: str) -> str:
    """Return "person" or "scene", accepting the legacy labels."""
    image_type = LEGACY_IMAGE_TYPES.get(image_type, image_type)
    if image_type not in IMAGE_TYPES:
        raise ValidationError(
            f"Unknown image type: {image_type!r}. Must be one of: {', '.join(IMAGE_TYPES)}.",
            field="image_type",
        )
    return image_type


def unique_tags(tags: Iterable[str]) -> list[str]:
    """Strip tags and drop blanks and repeats, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


@dataclass(frozen=True)
class PromptSegment:
    type: str
    content: str
    start_index: int
    end_index: int


@dataclass(frozen=True)
class CharacterRef:
    name: str
    bound: bool = False


@dataclass(frozen=True)
class ParsedPrompt:
    """Result of segmenting a prompt. Replaced wholesale on every parse."""

    original: str
    segments: tuple[PromptSegment, ...] = ()
    characters: tuple[CharacterRef, ...] = ()

    def character_names(self) -> list[str]:
        return [c.name for c in self.characters]

    def is_bound(self, name: str) -> bool:
        return any(c.name == name and c.bound for c in self.characters)

    def with_bound(self, bound_names: Iterable[str]) -> "ParsedPrompt":
        """Return a copy whose characters are bound exactly when named in bound_names."""
        names = set(bound_names)
        characters = tuple(CharacterRef(c.name, c.name in names) for c in self.characters)
        return replace(self, characters=characters)


@dataclass
class CharacterBinding:
    """Persisted association between a character name and a reference image."""

    character_name: str
    reference_image_path: str = ""
    image_type: str = IMAGE_TYPE_PERSON
    created_at: int = 0
    bound: bool = False
    tags: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tags = unique_tags(self.tags)

    @property
    def has_image(self) -> bool:
        return bool(self.reference_image_path)


@dataclass
class ProviderEndpoint:
    base_url: str = ""
    # Excluded from repr to avoid leaking secrets into logs
    api_key: str = field(default="", repr=False)


@dataclass
class APIConfig:
    """Endpoint and credential for each provider."""

    seedream: ProviderEndpoint = field(default_factory=ProviderEndpoint)
    banana_pro: ProviderEndpoint = field(default_factory=ProviderEndpoint)

    def endpoint(self, model: str) -> ProviderEndpoint:
        model = canonical_model(model)
        return self.seedream if model == MODEL_SEEDREAM else self.banana_pro

    def with_endpoint(self, model: str, endpoint: ProviderEndpoint) -> "APIConfig":
        model = canonical_model(model)
        return replace(self, **{model: endpoint})


@dataclass
class GenerationConfig:
    """
    Persisted generation defaults.

    width/height hold either pixel dimensions or, in older stores, a bare
    ratio such as 16x9; the translator normalizes both. size,
    sequential_image_generation, response_format and watermark only apply to
    the seedream provider and stay None otherwise.
    """

    model: str = MODEL_SEEDREAM
    width: int = 1024
    height: int = 1024
    count: int = 1
    quality: str = "standard"
    size: str | None = None
    sequential_image_generation: str | None = None
    response_format: str | None = None
    watermark: bool | None = None


@dataclass
class ImageGenerationParams:
    """A fully assembled generation request."""

    prompt: str
    model: str
    width: int
    height: int
    count: int = 1
    quality: str = "standard"
    character_bindings: list[CharacterBinding] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    size: str | None = None
    sequential_image_generation: str | None = None
    response_format: str | None = None
    watermark: bool | None = None


@dataclass
class ImageGenerationResult:
    """
    Outcome of a generation request.

    success=False is a partial result: the request reached the backend but
    the provider rejected it. It is reported, never raised.
    """

    success: bool
    images: list[str] = field(default_factory=list)
    error: str | None = None
    task_id: str = ""

    @property
    def partial(self) -> bool:
        return not self.success
