"""
In-process command host for the embedded transport.

CommandHost is a name -> callable registry. LocalBackend implements the
whole embedded command surface over the file-backed stores and the image
providers; every command takes snake_case keyword arguments and returns
plain records (dicts, lists, strings, booleans) exactly as a remote host
would.
"""

import inspect
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import requests

from huiben.backend.parser import parse_prompt as parse_prompt_text
from huiben.backend.providers import get_registry
from huiben.backend.settings import (
    SettingsStore,
    default_api_config,
    default_generation_config,
)
from huiben.backend.store import BindingStore
from huiben.core.config import Config
from huiben.core.images import compress_for_upload, decode_image_payload, to_data_url
from huiben.core.models import (
    IMAGE_TYPE_PERSON,
    ImageGenerationParams,
    ImageGenerationResult,
    canonical_model,
)
from huiben.core.transport.adapter import (
    api_config_to_record,
    binding_to_record,
    generation_config_to_record,
    normalize_api_config,
    normalize_generation_config,
    normalize_generation_params,
    parsed_prompt_to_record,
    result_to_record,
)
from huiben.logging_config import get_logger
from huiben.utils.exceptions import (
    CommandError,
    HuibenError,
    ImageProcessingError,
    NetworkError,
    StoreError,
)

logger = get_logger(__name__)

Command = Callable[..., Any]


class CommandHost:
    """Registry of named commands."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, name: str, fn: Command) -> None:
        self._commands[name] = fn

    def commands(self) -> list[str]:
        return sorted(self._commands)

    def invoke(self, command: str, **kwargs: Any) -> Any:
        """
        Run command with keyword arguments.

        Raises:
            CommandError: Unknown command or arguments that do not fit it
        """
        fn = self._commands.get(command)
        if fn is None:
            raise CommandError(f"Unknown command: {command}", command=command)
        try:
            inspect.signature(fn).bind(**kwargs)
        except TypeError as e:
            raise CommandError(f"Bad arguments for {command}: {e}", command=command) from e
        return fn(**kwargs)


def _reference_hint(name: str, index: int) -> str:
    return f"[{name}: reference image {index}]"


class LocalBackend:
    """The embedded command surface, backed by files under config.data_dir."""

    def __init__(
        self,
        config: Config,
        store: BindingStore | None = None,
        settings: SettingsStore | None = None,
    ) -> None:
        self.config = config
        self.store = store or BindingStore(config.data_dir)
        self.settings = settings or SettingsStore(config.data_dir)

    # --- prompts and bindings ---

    def parse_prompt(self, prompt: str) -> dict[str, Any]:
        return parsed_prompt_to_record(parse_prompt_text(prompt))

    def get_bindings_for_prompt(self, characters: Iterable[str] | str) -> list[dict[str, Any]]:
        if isinstance(characters, str):
            characters = [c.strip() for c in characters.split(",") if c.strip()]
        return [binding_to_record(b) for b in self.store.get_for_names(characters)]

    def get_all_bindings(self) -> list[dict[str, Any]]:
        return [binding_to_record(b) for b in self.store.get_all()]

    def get_character_binding(self, character_name: str) -> dict[str, Any] | None:
        binding = self.store.get(character_name)
        return binding_to_record(binding) if binding is not None else None

    def save_reference_image(
        self, character_name: str, image_data: str, image_type: str = IMAGE_TYPE_PERSON
    ) -> dict[str, Any]:
        return binding_to_record(
            self.store.save_reference_image(character_name, image_data, image_type)
        )

    def bind_character_reference(
        self,
        character_name: str,
        reference_image_path: str,
        image_type: str = IMAGE_TYPE_PERSON,
    ) -> dict[str, Any]:
        return binding_to_record(
            self.store.bind(character_name, reference_image_path, image_type)
        )

    def unbind_character(self, character_name: str) -> bool:
        return self.store.unbind(character_name)

    # --- generation ---

    def _load_reference(self, path: str) -> str:
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise ImageProcessingError(
                f"Cannot read reference image: {e}", image_path=path
            ) from e
        data, mime = compress_for_upload(data, path)
        return to_data_url(data, mime)

    def _assemble(self, params: ImageGenerationParams) -> tuple[str, list[str]]:
        """Prompt with one hint per attached reference, plus the reference images."""
        images = list(params.images)
        hints: list[str] = []
        for binding in params.character_bindings:
            if not binding.has_image:
                continue
            images.append(self._load_reference(binding.reference_image_path))
            hints.append(_reference_hint(binding.character_name, len(images)))
        prompt = params.prompt
        if hints:
            prompt = f"{prompt}\n" + " ".join(hints)
        return prompt, images

    def generate_image(self, params: Any) -> dict[str, Any]:
        """
        Generate images for a request record.

        Every HuibenError is reported as an unsuccessful result rather than
        raised.
        """
        task_id = f"task_{int(time.time() * 1000)}"
        try:
            request = normalize_generation_params(params)
            model = canonical_model(request.model)
            provider = get_registry().get(model)
            if provider is None:
                raise CommandError(f"No provider registered for {model}", command="generate_image")
            endpoint = self.settings.load_api_config().endpoint(model)
            prompt, images = self._assemble(request)
            urls = provider.generate(
                prompt,
                request,
                endpoint,
                images,
                self.config.generation_timeout,
                debug=self.config.debug_api,
            )
            result = ImageGenerationResult(success=True, images=urls, task_id=task_id)
        except HuibenError as e:
            logger.info("Generation %s failed: %s", task_id, e)
            result = ImageGenerationResult(success=False, error=str(e), task_id=task_id)
        return result_to_record(result)

    # --- settings ---

    def save_api_config(self, config: Any) -> bool:
        self.settings.save_api_config(normalize_api_config(config))
        return True

    def load_api_config(self) -> dict[str, Any]:
        return api_config_to_record(self.settings.load_api_config())

    def get_default_api_config(self) -> dict[str, Any]:
        return api_config_to_record(default_api_config())

    def save_generation_config(self, config: Any) -> bool:
        self.settings.save_generation_config(normalize_generation_config(config))
        return True

    def load_generation_config(self) -> dict[str, Any]:
        return generation_config_to_record(self.settings.load_generation_config())

    def get_default_generation_config(self) -> dict[str, Any]:
        return generation_config_to_record(default_generation_config())

    def test_api_connection(
        self, model: str, base_url: str | None = None, api_key: str | None = None
    ) -> bool:
        """Check a provider endpoint; missing credentials come from the stored config."""
        model = canonical_model(model)
        endpoint = default_api_config().endpoint(model)
        try:
            endpoint = self.settings.load_api_config().endpoint(model)
        except StoreError:
            logger.debug("No stored API config; testing with defaults")
        if base_url:
            endpoint.base_url = base_url
        if api_key:
            endpoint.api_key = api_key
        provider = get_registry().get(model)
        if provider is None:
            raise CommandError(f"No provider registered for {model}", command="test_api_connection")
        return provider.test_connection(endpoint, self.config.connection_test_timeout)

    # --- reference library ---

    def get_reference_images(self, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        query = query or {}
        tags = query.get("tags")
        if isinstance(tags, str):
            tags = [t for t in tags.split(",") if t.strip()]
        matches = self.store.query(
            image_type=query.get("image_type") or query.get("imageType"),
            search=query.get("search"),
            tags=tags,
        )
        return [binding_to_record(b) for b in matches]

    def search_reference_images(self, keyword: str) -> list[dict[str, Any]]:
        return [binding_to_record(b) for b in self.store.query(search=keyword)]

    def get_references_by_type(self, image_type: str) -> list[dict[str, Any]]:
        return [binding_to_record(b) for b in self.store.query(image_type=image_type)]

    def add_tag_to_reference(self, character_name: str, tag: str) -> dict[str, Any]:
        return binding_to_record(self.store.add_tag(character_name, tag))

    def remove_tag_from_reference(self, character_name: str, tag: str) -> dict[str, Any]:
        return binding_to_record(self.store.remove_tag(character_name, tag))

    def get_all_tags(self) -> list[str]:
        return self.store.all_tags()

    def delete_reference_image(self, character_name: str) -> bool:
        return self.store.delete(character_name)

    # --- export ---

    def save_image_to_file(self, image_url: str, file_path: str) -> str:
        """Write a data URL, remote URL or local file to file_path; returns the path."""
        if image_url.startswith("data:"):
            data, _ = decode_image_payload(image_url)
        elif image_url.startswith(("http://", "https://")):
            try:
                response = requests.get(image_url, timeout=self.config.request_timeout)
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                raise NetworkError(f"Failed to download {image_url}: {e}", original_error=e) from e
            data = response.content
        else:
            source = image_url
            if source.startswith("file://"):
                source = unquote(source[len("file://") :])
            try:
                data = Path(source).read_bytes()
            except OSError as e:
                raise ImageProcessingError(f"Cannot read image: {e}", image_path=source) from e
        target = Path(file_path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Wrote %d bytes to %s", len(data), target)
        return str(target)

    def register_all(self, host: CommandHost) -> CommandHost:
        for name in (
            "parse_prompt",
            "get_bindings_for_prompt",
            "get_all_bindings",
            "get_character_binding",
            "save_reference_image",
            "bind_character_reference",
            "unbind_character",
            "generate_image",
            "save_api_config",
            "load_api_config",
            "get_default_api_config",
            "save_generation_config",
            "load_generation_config",
            "get_default_generation_config",
            "test_api_connection",
            "get_reference_images",
            "search_reference_images",
            "get_references_by_type",
            "add_tag_to_reference",
            "remove_tag_from_reference",
            "get_all_tags",
            "delete_reference_image",
            "save_image_to_file",
        ):
            host.register(name, getattr(self, name))
        return host


def create_local_host(config: Config) -> CommandHost:
    """Command host serving the full embedded surface from config.data_dir."""
    host = LocalBackend(config).register_all(CommandHost())
    logger.debug("Local command host ready with %d commands", len(host.commands()))
    return host
