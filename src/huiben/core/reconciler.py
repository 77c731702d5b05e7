"""
Binding reconciliation.

Merges the characters mentioned in a parsed prompt with the reference images
stored for them, and keeps that view current as the user binds and unbinds
characters. A character counts as bound exactly when the store holds a
binding with a non-empty reference path for its name.
"""

from collections.abc import Iterable
from pathlib import Path

from huiben.core.context import AppContext
from huiben.core.images import is_embedded_data, to_data_url
from huiben.core.models import (
    IMAGE_TYPE_PERSON,
    CharacterBinding,
    ParsedPrompt,
    canonical_image_type,
)
from huiben.core.transport import Dispatcher
from huiben.core.transport.adapter import normalize_parsed_prompt
from huiben.logging_config import get_logger, log_prompts
from huiben.utils.exceptions import ValidationError

logger = get_logger(__name__)


class BindingReconciler:
    """Keeps the parsed prompt and the character binding map in step."""

    def __init__(self, dispatcher: Dispatcher, context: AppContext) -> None:
        self.dispatcher = dispatcher
        self.context = context

    def parse(self, prompt: str) -> ParsedPrompt:
        """
        Segment prompt and reconcile its characters with stored bindings.

        Raises:
            ValidationError: If prompt is empty or whitespace
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty", field="prompt")
        if log_prompts():
            logger.info("Parsing prompt: %s", prompt)
        record = self.dispatcher.dispatch(
            "parse_prompt", {"prompt": prompt}, "/api/parse", {"prompt": prompt}
        )
        return self.reconcile(normalize_parsed_prompt(record))

    def fetch_bindings(self, names: Iterable[str]) -> list[CharacterBinding]:
        names = list(names)
        return self.dispatcher.dispatch_bindings(
            "get_bindings_for_prompt",
            {"characters": names},
            "/api/bindings/for-prompt",
            {"characters": ",".join(names)},
        )

    def all_bindings(self) -> list[CharacterBinding]:
        return self.dispatcher.dispatch_bindings("get_all_bindings", {}, "/api/bindings")

    def reconcile(self, parsed: ParsedPrompt) -> ParsedPrompt:
        """
        Mark parsed's characters bound or unbound from the store.

        Nothing is fetched when the prompt mentions no characters.
        """
        names = parsed.character_names()
        bindings: dict[str, CharacterBinding] = {}
        if names:
            for binding in self.fetch_bindings(names):
                if binding.character_name in names and binding.has_image:
                    bindings[binding.character_name] = binding
        reconciled = parsed.with_bound(bindings)
        self.context.parsed_prompt = reconciled
        self.context.bindings = bindings
        logger.info("Reconciled %d characters, %d bound", len(names), len(bindings))
        return reconciled

    def bind(
        self,
        character_name: str,
        image_source: str | Path | bytes,
        image_type: str = IMAGE_TYPE_PERSON,
    ) -> CharacterBinding:
        """
        Attach a reference image to a character.

        Raw bytes and data URLs are uploaded and stored by the backend; any
        other source is taken as the path of an existing image.
        """
        name = character_name.strip()
        if not name:
            raise ValidationError("Character name cannot be empty", field="character_name")
        image_type = canonical_image_type(image_type)

        if is_embedded_data(image_source):
            data_url = (
                image_source
                if isinstance(image_source, str)
                else to_data_url(bytes(image_source))  # type: ignore[arg-type]
            )
            binding = self.dispatcher.dispatch_binding(
                "save_reference_image",
                {"character_name": name, "image_data": data_url, "image_type": image_type},
                "/api/save-image",
                {"characterName": name, "imageData": data_url, "imageType": image_type},
            )
        else:
            path = str(image_source).strip()
            if not path:
                raise ValidationError("Reference image path cannot be empty", field="image")
            binding = self.dispatcher.dispatch_binding(
                "bind_character_reference",
                {"character_name": name, "reference_image_path": path, "image_type": image_type},
                "/api/bind",
                {"characterName": name, "referenceImagePath": path, "imageType": image_type},
            )

        if binding.has_image:
            self.context.bindings[name] = binding
        else:
            self.context.bindings.pop(name, None)
        self._refresh_prompt()
        logger.info("Bound %s (%s)", name, image_type)
        return binding

    def unbind(self, character_name: str) -> bool:
        """
        Clear a character's reference image in the store and locally.

        The stored record and its tags survive with an empty path, so the
        character can be re-bound later. Returns the store's answer: False
        when it had no record for the name.
        """
        name = character_name.strip()
        if not name:
            raise ValidationError("Character name cannot be empty", field="character_name")
        result = self.dispatcher.dispatch(
            "unbind_character", {"character_name": name}, "/api/unbind", {"characterName": name}
        )
        self.forget(name)
        logger.info("Unbound %s", name)
        return bool(result)

    def forget(self, character_name: str) -> None:
        """Drop a character from the local binding map without touching the store."""
        self.context.bindings.pop(character_name, None)
        self._refresh_prompt()

    def bound_bindings(self) -> list[CharacterBinding]:
        """Bindings for request assembly, in the order characters appear in the prompt."""
        parsed = self.context.parsed_prompt
        if parsed is None:
            return list(self.context.bindings.values())
        return [
            self.context.bindings[name]
            for name in parsed.character_names()
            if name in self.context.bindings
        ]

    def _refresh_prompt(self) -> None:
        parsed = self.context.parsed_prompt
        if parsed is not None:
            self.context.parsed_prompt = parsed.with_bound(self.context.bindings)
