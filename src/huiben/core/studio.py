"""
Studio: the interactive orchestrator.

Owns the AppContext and wires the configuration gateway, binding reconciler,
reference library and export handler to one dispatcher. Every user-facing
operation runs under an error guard: a HuibenError becomes exactly one
notice, is kept in last_error, and the operation returns its fallback value.
Programming errors are not caught.
"""

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

from huiben.core.config import Config, get_config
from huiben.core.context import AppContext
from huiben.core.export import Downloader, ExportHandler, Opener, SaveDialog
from huiben.core.gateway import ConfigurationGateway
from huiben.core.images import image_url
from huiben.core.library import ReferenceLibrary, build_query
from huiben.core.models import (
    IMAGE_TYPE_PERSON,
    APIConfig,
    CharacterBinding,
    GenerationConfig,
    ImageGenerationResult,
    ParsedPrompt,
)
from huiben.core.progress import run_with_simulated_progress
from huiben.core.reconciler import BindingReconciler
from huiben.core.transport import Dispatcher, create_dispatcher
from huiben.core.transport.adapter import generation_params_to_record, normalize_result
from huiben.core.translator import (
    GenerationSelection,
    build_request,
    config_from_selection,
    selection_from_config,
)
from huiben.logging_config import get_logger
from huiben.utils.exceptions import HuibenError

logger = get_logger(__name__)

T = TypeVar("T")

NOTICE_ERROR = "error"
NOTICE_WARNING = "warning"
NOTICE_INFO = "info"
NOTICE_SUCCESS = "success"

# (level, message)
Notify = Callable[[str, str], None]

_NOTICE_LOG_LEVELS = {
    NOTICE_ERROR: logger.error,
    NOTICE_WARNING: logger.warning,
    NOTICE_INFO: logger.info,
    NOTICE_SUCCESS: logger.info,
}


def _log_notice(level: str, message: str) -> None:
    _NOTICE_LOG_LEVELS.get(level, logger.info)(message)


class Studio:
    """Application controller shared by the CLI and embedding front ends."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        config: Config | None = None,
        notify: Notify | None = None,
        save_dialog: SaveDialog | None = None,
        downloader: Downloader | None = None,
        opener: Opener | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.config = config or get_config()
        self.notify = notify or _log_notice
        self.context = AppContext()
        self.gateway = ConfigurationGateway(dispatcher, self.context)
        self.reconciler = BindingReconciler(dispatcher, self.context)
        self.library = ReferenceLibrary(dispatcher, self.context, self.reconciler)
        self.exporter = ExportHandler(
            dispatcher,
            save_dialog=save_dialog,
            downloader=downloader,
            opener=opener,
            timeout=self.config.request_timeout,
        )
        self.last_error: HuibenError | None = None
        self.progress_listener: Callable[[int], None] | None = None

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> "Studio":
        """Build a Studio with the dispatcher config describes."""
        config.validate()
        return cls(create_dispatcher(config), config=config, **kwargs)

    # --- guard ---

    def _fail(self, action: str, error: HuibenError) -> None:
        self.last_error = error
        logger.debug("%s failed", action, exc_info=error)
        self.notify(NOTICE_ERROR, f"{action} failed: {error}")

    def _run(self, action: str, fn: Callable[[], T], fallback: Any = None) -> Any:
        self.last_error = None
        try:
            return fn()
        except HuibenError as e:
            self._fail(action, e)
            return fallback

    # --- startup and configuration ---

    def startup(self) -> bool:
        """
        Load provider and generation configuration.

        Missing stored configuration is not an error: the backend defaults
        are used instead. Returns False only when the defaults are also
        unavailable.
        """
        self.last_error = None
        try:
            self.gateway.load_api_config()
        except HuibenError as e:
            logger.info("No stored API config (%s); using defaults", e)
            defaults = self._run("Loading default API config", self.gateway.default_api_config)
            self.context.api_config = defaults or APIConfig()
        if self.last_error is not None:
            return False
        try:
            self.gateway.load_generation_config()
        except HuibenError as e:
            logger.info("No stored generation config (%s); using defaults", e)
            defaults = self._run(
                "Loading default generation config", self.gateway.default_generation_config
            )
            self.context.generation_config = defaults or GenerationConfig()
        return self.last_error is None

    def save_api_config(self, config: APIConfig) -> bool:
        ok = self._run("Saving API config", lambda: self.gateway.save_api_config(config), False)
        if ok:
            self.notify(NOTICE_SUCCESS, "API configuration saved")
        return bool(ok)

    def reset_api_config(self) -> bool:
        defaults = self._run("Loading default API config", self.gateway.default_api_config)
        if defaults is None:
            return False
        return self.save_api_config(defaults)

    def test_connection(
        self, provider: str, base_url: str | None = None, api_key: str | None = None
    ) -> bool:
        """Test a provider endpoint, defaulting to the configured one."""

        def check() -> bool:
            endpoint = self.context.api_config.endpoint(provider)
            return self.gateway.test_connection(
                provider,
                base_url if base_url is not None else endpoint.base_url,
                api_key if api_key is not None else endpoint.api_key,
            )

        ok = self._run(f"Connection test for {provider}", check, False)
        if ok:
            self.notify(NOTICE_SUCCESS, f"{provider} is reachable")
        return bool(ok)

    def current_selection(self) -> GenerationSelection:
        return selection_from_config(self.context.generation_config)

    def save_generation_defaults(
        self,
        selection: GenerationSelection,
        count: int = 1,
        quality: str = "standard",
        watermark: bool | None = None,
    ) -> bool:
        def save() -> bool:
            config = config_from_selection(
                selection, count=count, quality=quality, watermark=watermark
            )
            return self.gateway.save_generation_config(config)

        return bool(self._run("Saving generation defaults", save, False))

    # --- prompt and bindings ---

    def parse(self, prompt: str) -> ParsedPrompt | None:
        return self._run("Parsing prompt", lambda: self.reconciler.parse(prompt))

    def bind(
        self,
        character_name: str,
        image_source: str | Path | bytes,
        image_type: str = IMAGE_TYPE_PERSON,
    ) -> CharacterBinding | None:
        binding = self._run(
            f"Binding {character_name}",
            lambda: self.reconciler.bind(character_name, image_source, image_type),
        )
        if binding is not None:
            self.notify(NOTICE_SUCCESS, f"Bound reference image to {binding.character_name}")
        return binding

    def unbind(self, character_name: str) -> bool:
        return bool(
            self._run(
                f"Unbinding {character_name}", lambda: self.reconciler.unbind(character_name), False
            )
        )

    # --- generation ---

    def _on_progress(self, value: int) -> None:
        self.context.progress = value
        if self.progress_listener is not None:
            self.progress_listener(value)

    def generate(
        self,
        prompt: str | None = None,
        selection: GenerationSelection | None = None,
        count: int | None = None,
        quality: str | None = None,
        watermark: bool | None = None,
    ) -> ImageGenerationResult | None:
        """
        Generate images for prompt (or the last parsed prompt).

        A prompt that differs from the last parsed one is parsed and
        reconciled first. A provider rejection comes back as a result with
        success=False and produces a notice; transport failures return None.
        """
        self.last_error = None
        self.context.generating = True
        self.context.progress = 0
        try:
            parsed = self.context.parsed_prompt
            if prompt is not None and (parsed is None or parsed.original != prompt):
                parsed = self.reconciler.parse(prompt)
            defaults = self.context.generation_config
            params = build_request(
                selection or self.current_selection(),
                parsed.original if parsed is not None else "",
                self.reconciler.bound_bindings(),
                count=count if count is not None else defaults.count,
                quality=quality or defaults.quality,
                watermark=watermark if watermark is not None else defaults.watermark,
                sequential_image_generation=defaults.sequential_image_generation,
                response_format=defaults.response_format,
            )
            record = generation_params_to_record(params)
            logger.info(
                "Generating model=%s size=%dx%d count=%d bindings=%d",
                params.model,
                params.width,
                params.height,
                params.count,
                len(params.character_bindings),
            )

            def call() -> Any:
                return self.dispatcher.dispatch(
                    "generate_image",
                    {"params": record},
                    "/api/generate",
                    record,
                    timeout=self.config.generation_timeout,
                )

            raw = run_with_simulated_progress(
                call, self._on_progress, self.config.progress_interval
            )
            result = normalize_result(raw)
            self.context.last_result = result
            if result.success:
                self.notify(NOTICE_SUCCESS, f"Generated {len(result.images)} image(s)")
            else:
                self.notify(NOTICE_ERROR, f"Generation failed: {result.error or 'unknown error'}")
            return result
        except HuibenError as e:
            self._fail("Generation", e)
            return None
        finally:
            self.context.generating = False

    # --- export ---

    def export(self, source: str) -> str | None:
        return self._run("Saving image", lambda: self.exporter.save_generated_image(source))

    def export_all(self, result: ImageGenerationResult | None = None) -> list[str]:
        """Export every image of result (default: the last result); stops at the first failure."""
        result = result or self.context.last_result
        saved: list[str] = []
        for source in result.images if result is not None else []:
            path = self.export(source)
            if self.last_error is not None:
                break
            if path is not None:
                saved.append(path)
        return saved

    # --- reference library ---

    def browse_library(
        self,
        filter_type: str | None = None,
        search_text: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[CharacterBinding]:
        def browse() -> list[CharacterBinding]:
            return self.library.apply(build_query(filter_type, search_text, tags))

        return self._run("Loading reference library", browse, [])

    def search_library(self, keyword: str) -> list[CharacterBinding]:
        return self._run("Searching reference library", lambda: self.library.search(keyword), [])

    def all_tags(self) -> list[str]:
        return self._run("Loading tags", self.library.all_tags, [])

    def add_tag(self, character_name: str, tag: str) -> bool:
        done = self._run(
            f"Tagging {character_name}", lambda: self.library.add_tag(character_name, tag)
        )
        return done is not None

    def remove_tag(self, character_name: str, tag: str) -> bool:
        done = self._run(
            f"Untagging {character_name}", lambda: self.library.remove_tag(character_name, tag)
        )
        return done is not None

    def delete_reference(self, character_name: str) -> bool:
        done = self._run(
            f"Deleting {character_name}", lambda: self.library.delete(character_name)
        )
        if done is not None:
            self.notify(NOTICE_SUCCESS, f"Deleted reference image for {character_name}")
        return done is not None

    def image_url(self, path: str) -> str:
        return image_url(path, embedded=self.dispatcher.is_embedded(), config=self.config)
