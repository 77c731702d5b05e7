"""
Generation parameter translation.

Turns the user's selection (model, plus either a seedream size or a banana_pro
aspect ratio and resolution tier) into concrete pixel dimensions and a
provider-ready ImageGenerationParams. Everything here is a pure function.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from huiben.core.models import (
    MODEL_SEEDREAM,
    QUALITIES,
    CharacterBinding,
    GenerationConfig,
    ImageGenerationParams,
    canonical_model,
)
from huiben.utils.exceptions import ValidationError

SEEDREAM_SIZES = ("1024x1024", "2048x2048", "4096x4096")

ASPECT_RATIOS: dict[str, tuple[int, int]] = {
    "1:1": (1, 1),
    "16:9": (16, 9),
    "9:16": (9, 16),
    "4:3": (4, 3),
    "3:4": (3, 4),
}

RESOLUTION_TIERS: dict[str, int] = {"1K": 1024, "2K": 2048, "4K": 4096}

DEFAULT_SIZE = "1024x1024"
DEFAULT_RATIO = "1:1"
DEFAULT_RESOLUTION = "2K"

# Reduced ratios with a term above this are treated as noise and become 1:1
MAX_RATIO_TERM = 20

SEEDREAM_DEFAULT_SEQUENTIAL = "disabled"
SEEDREAM_DEFAULT_RESPONSE_FORMAT = "url"


@dataclass(frozen=True)
class GenerationSelection:
    """What the user picked; only the fields for the chosen model matter."""

    model: str = MODEL_SEEDREAM
    size: str = DEFAULT_SIZE
    ratio: str = DEFAULT_RATIO
    resolution: str = DEFAULT_RESOLUTION


def _gcd(a: int, b: int) -> int:
    while b:
        a, b = b, a % b
    return a


def _round_div(numerator: int, denominator: int) -> int:
    """numerator / denominator rounded half up, for non-negative integers."""
    return (2 * numerator + denominator) // (2 * denominator)


def parse_size(size: str) -> tuple[int, int]:
    """Split a seedream size such as "2048x2048" into (width, height)."""
    if size not in SEEDREAM_SIZES:
        raise ValidationError(
            f"Unsupported size: {size!r}. Must be one of: {', '.join(SEEDREAM_SIZES)}.",
            field="size",
        )
    width, height = size.split("x")
    return int(width), int(height)


def parse_ratio(ratio: str) -> tuple[int, int]:
    """Parse "W:H" into positive integers."""
    parts = ratio.strip().split(":")
    if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
        raise ValidationError(
            f"Invalid aspect ratio: {ratio!r}. Use W:H, e.g. 16:9.", field="ratio"
        )
    w, h = int(parts[0]), int(parts[1])
    if w <= 0 or h <= 0:
        raise ValidationError(f"Aspect ratio terms must be positive: {ratio!r}.", field="ratio")
    return w, h


def ratio_label(ratio: tuple[int, int]) -> str:
    return f"{ratio[0]}:{ratio[1]}"


def dimensions_for_ratio(ratio: str, resolution: str) -> tuple[int, int]:
    """
    Pixel dimensions for a banana_pro ratio at a resolution tier.

    The longer side gets the tier's base length; the shorter side is scaled
    and rounded half up. 16:9 at 2K is 2048x1152, 9:16 at 1K is 576x1024.
    """
    if resolution not in RESOLUTION_TIERS:
        raise ValidationError(
            f"Unsupported resolution: {resolution!r}. "
            f"Must be one of: {', '.join(RESOLUTION_TIERS)}.",
            field="resolution",
        )
    base = RESOLUTION_TIERS[resolution]
    w, h = parse_ratio(ratio)
    if w >= h:
        return base, _round_div(base * h, w)
    return _round_div(base * w, h), base


def normalize_ratio(width: int, height: int) -> tuple[int, int]:
    """
    Reduce width:height to a small ratio.

    Equal terms give 1:1. Otherwise the pair is divided by its GCD; a standard
    ratio is adopted as is, and a reduced pair with a term above 20 falls back
    to 1:1. (1920, 1080) gives 16:9, (1, 37) gives 1:1, (5, 7) stays 5:7.
    """
    if width <= 0 or height <= 0 or width == height:
        return 1, 1
    divisor = _gcd(width, height)
    reduced = (width // divisor, height // divisor)
    if reduced in ASPECT_RATIOS.values():
        return reduced
    if reduced[0] > MAX_RATIO_TERM or reduced[1] > MAX_RATIO_TERM:
        return 1, 1
    return reduced


def resolution_for_dimensions(width: int, height: int) -> str:
    """Smallest tier whose base covers the longer side."""
    longest = max(width, height)
    for tier, base in RESOLUTION_TIERS.items():
        if longest <= base:
            return tier
    return "4K"


def dimensions_for_selection(selection: GenerationSelection) -> tuple[int, int]:
    model = canonical_model(selection.model)
    if model == MODEL_SEEDREAM:
        return parse_size(selection.size)
    return dimensions_for_ratio(selection.ratio, selection.resolution)


def selection_from_config(config: GenerationConfig) -> GenerationSelection:
    """
    Recover the user's selection from stored generation defaults.

    Stores written by older clients keep a bare ratio (e.g. 16x9) in
    width/height; those keep the default resolution tier.
    """
    model = canonical_model(config.model)
    size = config.size if config.size in SEEDREAM_SIZES else None
    if size is None:
        candidate = f"{config.width}x{config.height}"
        size = candidate if candidate in SEEDREAM_SIZES else DEFAULT_SIZE
    ratio = normalize_ratio(config.width, config.height)
    if max(config.width, config.height) <= MAX_RATIO_TERM:
        resolution = DEFAULT_RESOLUTION
    else:
        resolution = resolution_for_dimensions(config.width, config.height)
    return GenerationSelection(
        model=model, size=size, ratio=ratio_label(ratio), resolution=resolution
    )


def _check_count_and_quality(count: int, quality: str) -> None:
    if count < 1:
        raise ValidationError(f"count must be at least 1, got {count}.", field="count")
    if quality not in QUALITIES:
        raise ValidationError(
            f"Unknown quality: {quality!r}. Must be one of: {', '.join(QUALITIES)}.",
            field="quality",
        )


def config_from_selection(
    selection: GenerationSelection,
    count: int = 1,
    quality: str = "standard",
    watermark: bool | None = None,
    sequential_image_generation: str | None = None,
    response_format: str | None = None,
) -> GenerationConfig:
    """Generation defaults to persist for a selection."""
    _check_count_and_quality(count, quality)
    model = canonical_model(selection.model)
    width, height = dimensions_for_selection(selection)
    if model != MODEL_SEEDREAM:
        return GenerationConfig(
            model=model, width=width, height=height, count=count, quality=quality
        )
    return GenerationConfig(
        model=model,
        width=width,
        height=height,
        count=count,
        quality=quality,
        size=selection.size,
        sequential_image_generation=sequential_image_generation or SEEDREAM_DEFAULT_SEQUENTIAL,
        response_format=response_format or SEEDREAM_DEFAULT_RESPONSE_FORMAT,
        watermark=bool(watermark),
    )


def build_request(
    selection: GenerationSelection,
    prompt: str,
    bindings: Iterable[CharacterBinding] = (),
    count: int = 1,
    quality: str = "standard",
    watermark: bool | None = None,
    sequential_image_generation: str | None = None,
    response_format: str | None = None,
    images: Iterable[str] = (),
) -> ImageGenerationParams:
    """
    Assemble the request sent to generate_image.

    Only bindings with a reference path are included. The seedream-only
    fields are filled for seedream and left None for banana_pro.

    Raises:
        ValidationError: Empty prompt, unknown model or quality, count < 1,
            or a size/ratio/resolution the model does not offer
    """
    if not prompt or not prompt.strip():
        raise ValidationError("Prompt cannot be empty", field="prompt")
    config = config_from_selection(
        selection,
        count=count,
        quality=quality,
        watermark=watermark,
        sequential_image_generation=sequential_image_generation,
        response_format=response_format,
    )
    return ImageGenerationParams(
        prompt=prompt,
        model=config.model,
        width=config.width,
        height=config.height,
        count=config.count,
        quality=config.quality,
        character_bindings=[
            CharacterBinding(
                character_name=b.character_name,
                reference_image_path=b.reference_image_path,
                image_type=b.image_type,
                bound=True,
            )
            for b in bindings
            if b.has_image
        ],
        images=list(images),
        size=config.size,
        sequential_image_generation=config.sequential_image_generation,
        response_format=config.response_format,
        watermark=config.watermark,
    )


__all__ = [
    "ASPECT_RATIOS",
    "DEFAULT_RATIO",
    "DEFAULT_RESOLUTION",
    "DEFAULT_SIZE",
    "GenerationSelection",
    "RESOLUTION_TIERS",
    "SEEDREAM_SIZES",
    "build_request",
    "config_from_selection",
    "dimensions_for_ratio",
    "dimensions_for_selection",
    "normalize_ratio",
    "parse_ratio",
    "parse_size",
    "ratio_label",
    "resolution_for_dimensions",
    "selection_from_config",
]
