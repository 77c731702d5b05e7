"""
Application context: the state shared by the orchestrator's components.

One AppContext is owned by a Studio and handed to each component, which reads
and writes the fields it is responsible for. Writes are last-writer-wins;
nothing here runs concurrently.
"""

from dataclasses import dataclass, field
from typing import Any

from huiben.core.models import (
    APIConfig,
    CharacterBinding,
    GenerationConfig,
    ImageGenerationResult,
    ParsedPrompt,
)


@dataclass
class AppContext:
    api_config: APIConfig = field(default_factory=APIConfig)
    generation_config: GenerationConfig = field(default_factory=GenerationConfig)

    # Prompt and the bindings reconciled against it (name -> binding with a path)
    parsed_prompt: ParsedPrompt | None = None
    bindings: dict[str, CharacterBinding] = field(default_factory=dict)

    # Reference library view
    library: list[CharacterBinding] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    query: dict[str, Any] = field(default_factory=dict)

    # Generation state; progress is an approximation, not backend telemetry
    generating: bool = False
    progress: int = 0
    last_result: ImageGenerationResult | None = None
