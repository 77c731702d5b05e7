"""
Click command definitions for the huiben CLI.

This module contains the Click command group and all CLI commands
(parse, bind, unbind, generate, library, config).
"""

import sys
from dataclasses import dataclass
from pathlib import Path

import click

from huiben import (
    Config,
    GenerationSelection,
    ImageProcessingError,
    Studio,
    ValidationError,
    __version__,
)
from huiben.cli import progress
from huiben.cli.handlers import exit_on_failure, run_with_error_handling
from huiben.cli.utils import EXIT_API_OR_NETWORK
from huiben.core.config import KNOWN_TRANSPORTS
from huiben.core.export import SaveDialog, directory_downloader
from huiben.core.models import (
    IMAGE_TYPE_PERSON,
    IMAGE_TYPES,
    QUALITIES,
    ProviderEndpoint,
    canonical_model,
)
from huiben.core.studio import NOTICE_ERROR, NOTICE_SUCCESS, NOTICE_WARNING, Notify
from huiben.logging_config import configure_logging, get_verbosity_from_env


@dataclass
class CliState:
    """Global options shared by every command."""

    transport: str | None = None
    server_url: str | None = None
    quiet: bool = False


def _notifier(quiet: bool) -> Notify:
    def notify(level: str, message: str) -> None:
        if level == NOTICE_ERROR:
            if quiet:
                click.echo(message, err=True)
            else:
                progress.print_error(message)
        elif quiet:
            return
        elif level == NOTICE_SUCCESS:
            progress.print_success(message)
        elif level == NOTICE_WARNING:
            progress.print_warning(message)
        else:
            progress.print_info(message)

    return notify


def _load_config(state: CliState) -> Config:
    config = Config.from_env()
    if state.transport is not None:
        config.set_transport(state.transport)
    if state.server_url is not None:
        config.server_url = state.server_url
    return config


def _open_studio(state: CliState, config: Config | None = None, **kwargs: object) -> Studio:
    """Build a Studio for the global options and load its configuration."""
    studio = Studio.from_config(
        config or _load_config(state), notify=_notifier(state.quiet), **kwargs
    )
    studio.startup()
    exit_on_failure(studio)
    return studio


@click.group(
    help=f"""Picture-book image generation with per-character reference images.

\b
Version: {__version__}
Write prompts with @name mentions, bind a reference image to each name,
then generate with the seedream or banana_pro provider.
"""
)
@click.version_option(
    version=__version__,
    package_name="huiben",
    message="%(prog)s %(version)s",
)
@click.option(
    "--transport",
    type=click.Choice(KNOWN_TRANSPORTS, case_sensitive=False),
    default=None,
    help="Backend transport (default from HUIBEN_TRANSPORT, else embedded).",
)
@click.option(
    "--server-url",
    default=None,
    help="Networked server origin for the http transport (default from HUIBEN_SERVER_URL).",
)
@click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help="Increase verbosity: -v also show prompts, -vv show request detail.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Minimize messages; only print results or errors.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    transport: str | None,
    server_url: str | None,
    verbose_count: int,
    quiet: bool,
) -> None:
    ctx.color = True
    # CLI flags override HUIBEN_VERBOSITY
    verbose_level = min(verbose_count, 2) if verbose_count > 0 else get_verbosity_from_env()
    configure_logging(verbose_level=verbose_level, quiet=quiet)
    ctx.obj = CliState(transport=transport, server_url=server_url, quiet=quiet)


@cli.command()
@click.argument("prompt")
@click.pass_obj
def parse(state: CliState, prompt: str) -> None:
    """Split PROMPT into segments and show which @characters are bound."""

    def do_parse() -> None:
        studio = _open_studio(state)
        parsed = studio.parse(prompt)
        exit_on_failure(studio)
        if state.quiet:
            for ref in parsed.characters:
                click.echo(f"{ref.name}\t{'bound' if ref.bound else 'unbound'}")
        else:
            progress.print_parsed_prompt(parsed)

    run_with_error_handling(do_parse, quiet=state.quiet)


@cli.command()
@click.argument("name")
@click.argument("image")
@click.option(
    "--type",
    "image_type",
    type=click.Choice(IMAGE_TYPES, case_sensitive=False),
    default=IMAGE_TYPE_PERSON,
    show_default=True,
    help="Kind of reference image.",
)
@click.option(
    "--upload",
    is_flag=True,
    help="Send the file contents to the backend instead of binding by path.",
)
@click.pass_obj
def bind(state: CliState, name: str, image: str, image_type: str, upload: bool) -> None:
    """Bind reference IMAGE (a file path) to character NAME."""

    def do_bind() -> None:
        local = Path(image).expanduser()
        source: str | bytes
        if upload:
            try:
                source = local.read_bytes()
            except OSError as e:
                raise ImageProcessingError(
                    f"Cannot read image: {e}", image_path=str(local)
                ) from e
        else:
            # Paths the backend cannot see are passed through unchanged
            source = str(local.resolve()) if local.exists() else image
        studio = _open_studio(state)
        binding = studio.bind(name, source, image_type)
        exit_on_failure(studio)
        click.echo(binding.reference_image_path)

    run_with_error_handling(do_bind, quiet=state.quiet)


@cli.command()
@click.argument("name")
@click.pass_obj
def unbind(state: CliState, name: str) -> None:
    """Remove the reference image bound to character NAME."""

    def do_unbind() -> None:
        studio = _open_studio(state)
        removed = studio.unbind(name)
        exit_on_failure(studio)
        if state.quiet:
            return
        if removed:
            progress.print_success(f"Unbound {name}")
        else:
            progress.print_warning(f"No binding for {name}")

    run_with_error_handling(do_unbind, quiet=state.quiet)


def _save_dialog(out_dir: Path, ask: bool) -> SaveDialog:
    def choose(filename: str) -> str | None:
        default = str(out_dir / filename)
        if not ask:
            return default
        answer = click.prompt(
            "Save as (- to skip)", default=default, show_default=True, err=True
        ).strip()
        return None if answer in ("", "-") else answer

    return choose


def _open_url(url: str, filename: str) -> None:
    progress.print_warning(f"Could not download {filename}; opening {url}")
    click.launch(url)


@cli.command()
@click.argument("prompt")
@click.option(
    "--model",
    "-m",
    default=None,
    help="Provider: seedream or banana_pro (default from stored generation config).",
)
@click.option("--size", default=None, help="seedream output size, e.g. 2048x2048.")
@click.option("--ratio", default=None, help="banana_pro aspect ratio, e.g. 16:9.")
@click.option("--resolution", default=None, help="banana_pro resolution tier: 1K, 2K or 4K.")
@click.option("--count", "-n", type=int, default=None, help="Number of images to request.")
@click.option(
    "--quality",
    type=click.Choice(QUALITIES, case_sensitive=False),
    default=None,
    help="Quality level (default from stored generation config).",
)
@click.option(
    "--watermark/--no-watermark",
    default=None,
    help="Ask seedream to watermark the output.",
)
@click.option(
    "--out",
    "-o",
    "out_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for generated images (default from HUIBEN_DOWNLOAD_DIR, else .).",
)
@click.option("--ask", is_flag=True, help="Ask where to save each image.")
@click.option(
    "--save-defaults",
    is_flag=True,
    help="Store these generation settings as the new defaults.",
)
@click.pass_obj
def generate(
    state: CliState,
    prompt: str,
    model: str | None,
    size: str | None,
    ratio: str | None,
    resolution: str | None,
    count: int | None,
    quality: str | None,
    watermark: bool | None,
    out_dir: Path | None,
    ask: bool,
    save_defaults: bool,
) -> None:
    """Generate images for PROMPT using the bound character references."""

    def do_generate() -> None:
        # 1. Config and studio
        config = _load_config(state)
        target = out_dir or config.download_dir
        studio = _open_studio(
            state,
            config,
            save_dialog=_save_dialog(target, ask),
            downloader=directory_downloader(target),
            opener=_open_url,
        )

        # 2. Selection: explicit options over stored defaults
        base = studio.current_selection()
        selection = GenerationSelection(
            model=canonical_model(model) if model else base.model,
            size=size or base.size,
            ratio=ratio or base.ratio,
            resolution=(resolution or base.resolution).upper(),
        )
        defaults = studio.context.generation_config
        count_eff = count if count is not None else defaults.count
        quality_eff = quality or defaults.quality

        # 3. Parse and reconcile
        parsed = studio.parse(prompt)
        exit_on_failure(studio)
        unbound = [ref.name for ref in parsed.characters if not ref.bound]
        if unbound and not state.quiet:
            progress.print_warning(f"No reference image bound for: {', '.join(unbound)}")
        references = len(studio.reconciler.bound_bindings())

        if save_defaults:
            studio.save_generation_defaults(
                selection, count=count_eff, quality=quality_eff, watermark=watermark
            )
            exit_on_failure(studio)

        # 4. Generate
        if state.quiet:
            result = studio.generate(prompt, selection, count_eff, quality_eff, watermark)
        else:
            with progress.generation_progress(selection.model, references) as update:
                studio.progress_listener = update
                result = studio.generate(prompt, selection, count_eff, quality_eff, watermark)
            studio.progress_listener = None
        exit_on_failure(studio)
        if result is None or not result.success:
            sys.exit(EXIT_API_OR_NETWORK)

        # 5. Export
        saved = studio.export_all(result)
        exit_on_failure(studio)
        if not state.quiet:
            progress.print_success_result(
                saved=saved,
                result=result,
                model_used=selection.model,
                prompt_used=prompt,
                references=references,
            )
        # Paths to stdout for scriptability
        for path in saved:
            click.echo(path)

    run_with_error_handling(do_generate, quiet=state.quiet)


@cli.group()
def library() -> None:
    """Browse, tag and delete stored reference images."""


@library.command("list")
@click.option(
    "--type",
    "image_type",
    type=click.Choice(IMAGE_TYPES, case_sensitive=False),
    default=None,
    help="Only images of this type.",
)
@click.option("--search", "-s", default=None, help="Match name or tag (case-insensitive).")
@click.option("--tag", "-t", "tags", multiple=True, help="Require this tag (repeatable).")
@click.pass_obj
def library_list(
    state: CliState, image_type: str | None, search: str | None, tags: tuple[str, ...]
) -> None:
    """List reference images matching the filters."""

    def do_list() -> None:
        studio = _open_studio(state)
        images = studio.browse_library(image_type, search, tags)
        exit_on_failure(studio)
        if state.quiet:
            for b in images:
                click.echo(f"{b.character_name}\t{b.reference_image_path}")
        else:
            progress.print_library(images)

    run_with_error_handling(do_list, quiet=state.quiet)


@library.command("tags")
@click.pass_obj
def library_tags(state: CliState) -> None:
    """List every tag in use."""

    def do_tags() -> None:
        studio = _open_studio(state)
        tags = studio.all_tags()
        exit_on_failure(studio)
        for tag in tags:
            click.echo(tag)

    run_with_error_handling(do_tags, quiet=state.quiet)


@library.command("tag")
@click.argument("name")
@click.argument("tag")
@click.pass_obj
def library_tag(state: CliState, name: str, tag: str) -> None:
    """Add TAG to the reference image of NAME."""

    def do_tag() -> None:
        studio = _open_studio(state)
        studio.add_tag(name, tag)
        exit_on_failure(studio)
        if not state.quiet:
            progress.print_success(f"Tagged {name} with {tag!r}")

    run_with_error_handling(do_tag, quiet=state.quiet)


@library.command("untag")
@click.argument("name")
@click.argument("tag")
@click.pass_obj
def library_untag(state: CliState, name: str, tag: str) -> None:
    """Remove TAG from the reference image of NAME."""

    def do_untag() -> None:
        studio = _open_studio(state)
        studio.remove_tag(name, tag)
        exit_on_failure(studio)
        if not state.quiet:
            progress.print_success(f"Removed tag {tag!r} from {name}")

    run_with_error_handling(do_untag, quiet=state.quiet)


@library.command("delete")
@click.argument("name")
@click.confirmation_option(prompt="Delete this reference image and its binding?")
@click.pass_obj
def library_delete(state: CliState, name: str) -> None:
    """Delete the reference image of NAME and its binding record."""

    def do_delete() -> None:
        studio = _open_studio(state)
        studio.delete_reference(name)
        exit_on_failure(studio)

    run_with_error_handling(do_delete, quiet=state.quiet)


@cli.group("config")
def config_group() -> None:
    """Show, change and test provider configuration."""


@config_group.command("show")
@click.pass_obj
def config_show(state: CliState) -> None:
    """Show provider endpoints (keys masked) and generation defaults."""

    def do_show() -> None:
        studio = _open_studio(state)
        progress.print_api_config(studio.context.api_config, studio.context.generation_config)

    run_with_error_handling(do_show, quiet=state.quiet)


@config_group.command("set")
@click.argument("provider")
@click.option("--base-url", default=None, help="Provider API origin.")
@click.option("--api-key", default=None, help="Provider API key.")
@click.pass_obj
def config_set(
    state: CliState, provider: str, base_url: str | None, api_key: str | None
) -> None:
    """Change the base URL and/or API key of PROVIDER."""

    def do_set() -> None:
        if base_url is None and api_key is None:
            raise ValidationError("Give --base-url and/or --api-key.", field="provider")
        studio = _open_studio(state)
        current = studio.context.api_config.endpoint(provider)
        updated = studio.context.api_config.with_endpoint(
            provider,
            ProviderEndpoint(
                base_url=base_url if base_url is not None else current.base_url,
                api_key=api_key if api_key is not None else current.api_key,
            ),
        )
        studio.save_api_config(updated)
        exit_on_failure(studio)

    run_with_error_handling(do_set, quiet=state.quiet)


@config_group.command("test")
@click.argument("provider")
@click.pass_obj
def config_test(state: CliState, provider: str) -> None:
    """Check that the configured PROVIDER endpoint answers."""

    def do_test() -> None:
        studio = _open_studio(state)
        studio.test_connection(provider)
        exit_on_failure(studio)

    run_with_error_handling(do_test, quiet=state.quiet)


@config_group.command("reset")
@click.pass_obj
def config_reset(state: CliState) -> None:
    """Replace the provider configuration with the backend defaults."""

    def do_reset() -> None:
        studio = _open_studio(state)
        studio.reset_api_config()
        exit_on_failure(studio)

    run_with_error_handling(do_reset, quiet=state.quiet)


def main() -> None:
    """Entry point for the huiben console script."""
    cli()


__all__ = ["cli", "main"]
