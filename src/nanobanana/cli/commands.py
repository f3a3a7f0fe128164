"""
Click command definitions for the nanobanana CLI.

This module contains the Click command group and all CLI commands
(generate, parse, elements, history, ui).
"""

import base64
import json
import os
from pathlib import Path

import click

from nanobanana import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_QUALITY,
    QUALITIES,
    Config,
    ElementStore,
    GeneratedImage,
    HistoryStore,
    NotFoundError,
    ValidationError,
    __version__,
    get_resolution,
    normalize_handle,
    parse_prompt_for_elements,
    process_reference_image,
    run_generation,
    validate_prompt,
)
from nanobanana.cli import progress
from nanobanana.cli.handlers import (
    cancel_check,
    run_with_error_handling,
    sigint_cancellation,
)
from nanobanana.cli.utils import default_output_path, setup_logging
from nanobanana.core.providers import KNOWN_IMAGE_PROVIDERS
from nanobanana.logging_config import configure_logging, get_verbosity_from_env

_ASPECT_RATIO_VALUES = [value for value, _label in ASPECT_RATIOS]

_user_option = click.option(
    "--user",
    "user_id",
    default=None,
    help="Owner id for element lookups (default: NANOBANANA_USER_ID or 'local').",
)
_quiet_option = click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Minimize progress messages; only print results or errors.",
)
_verbose_option = click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help="Increase verbosity: -v also show prompts, -vv show API/store detail.",
)


@click.group(
    help=f"""Generate images from prompts that reference saved @handle elements.

\b
Version: {__version__}
"""
)
@click.version_option(version=__version__, package_name="nanobanana")
@click.pass_context
def cli(ctx: click.Context) -> None:
    ctx.color = True


@cli.command()
@click.option(
    "--prompt",
    "-p",
    required=True,
    help="Text description of the image; mention saved elements as @handle.",
)
@click.option(
    "--aspect-ratio",
    "-a",
    type=click.Choice(_ASPECT_RATIO_VALUES),
    default=DEFAULT_ASPECT_RATIO,
    show_default=True,
    help="Output aspect ratio.",
)
@click.option(
    "--quality",
    type=click.Choice(list(QUALITIES)),
    default=DEFAULT_QUALITY,
    show_default=True,
    help="Output quality tier (sets the pixel size).",
)
@click.option(
    "--image",
    "-i",
    "images",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Extra reference image, sent after element images. Repeatable.",
)
@click.option(
    "--out",
    "-o",
    type=click.Path(path_type=Path),
    help="Output file path (default: saved under the upload directory).",
)
@_user_option
@click.option(
    "--provider",
    type=click.Choice(list(KNOWN_IMAGE_PROVIDERS), case_sensitive=False),
    default=None,
    help="Image generation provider (default from config).",
)
@click.option("--model", "-m", help="Image model ID (default from config).")
@click.option("--api-key", help="API key for the selected provider (overrides environment).")
@click.option("--no-history", is_flag=True, help="Do not record the image in history.")
@click.option(
    "--debug-api",
    is_flag=True,
    help="Log raw API request payload and response (image data truncated) for debugging.",
)
@_quiet_option
@_verbose_option
def generate(
    prompt: str,
    aspect_ratio: str,
    quality: str,
    images: tuple[Path, ...],
    out: Path | None,
    user_id: str | None,
    provider: str | None,
    model: str | None,
    api_key: str | None,
    no_history: bool,
    debug_api: bool,
    quiet: bool,
    verbose_count: int,
) -> None:
    """Generate an image from a prompt, resolving @handles to saved elements."""
    setup_logging(verbose_count, quiet)

    def do_generate() -> None:
        config = Config.from_env()
        provider_eff = (provider or config.default_image_provider).lower()
        config.default_image_provider = provider_eff
        if api_key is not None:
            config.set_api_key(api_key, provider=provider_eff)
        if debug_api:
            config.debug_api = True
        config.validate()

        validate_prompt(prompt)

        uploaded = [process_reference_image(path, config=config)[0] for path in images]
        owner = user_id or config.user_id
        store = ElementStore.from_config(config)
        history = None if no_history else HistoryStore.from_config(config)
        resolution = get_resolution(aspect_ratio, quality)

        gen_kw: dict = {
            "model": model,
            "provider": provider_eff,
            "config": config,
            "cancel_check": cancel_check,
            "save": out is None,
        }
        run_kw: dict = {
            "user_id": owner,
            "element_store": store,
            "uploaded_images": uploaded,
            "history": history,
        }
        if not quiet:
            parsed = parse_prompt_for_elements(prompt)
            with progress.generation_progress(
                model=model or config.default_image_model,
                resolution=resolution,
                input_image_count=len(parsed.references) + len(uploaded),
            ):
                outcome = run_generation(prompt, aspect_ratio, quality, **run_kw, **gen_kw)
        else:
            outcome = run_generation(prompt, aspect_ratio, quality, **run_kw, **gen_kw)

        result = outcome.result
        skipped = len(outcome.parsed.references) - (len(outcome.input_images) - len(uploaded))
        if skipped and not quiet:
            progress.print_warning(
                f"{skipped} handle(s) had no saved element and were sent without an image."
            )

        if out is not None:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(result.image_data)
            out_path = out
        else:
            assert result.saved_path is not None
            out_path = result.saved_path

        if quiet:
            click.echo(str(out_path))
        else:
            progress.print_success_result(
                output_path=out_path,
                generation_time=result.generation_time,
                model_used=result.model_used,
                resolution=result.resolution,
                prompt_used=result.prompt_used,
                input_image_count=result.input_image_count,
                original_prompt=prompt,
            )
            # Also print path to stdout for scriptability
            click.echo(str(out_path))

    with sigint_cancellation():
        run_with_error_handling(do_generate, quiet=quiet)


@cli.command()
@click.argument("prompt")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON on stdout.")
def parse(prompt: str, as_json: bool) -> None:
    """Show how a prompt's @handles are rewritten to reference placeholders."""
    parsed = parse_prompt_for_elements(prompt)
    if as_json:
        click.echo(json.dumps(parsed.as_dict(), indent=2))
        return
    progress.print_parsed_prompt(parsed)
    click.echo(parsed.cleaned_prompt)


@cli.group()
def elements() -> None:
    """Manage saved @handle elements."""


@elements.command("list")
@_user_option
@click.option("--json", "as_json", is_flag=True, help="Print elements as JSON on stdout.")
def elements_list(user_id: str | None, as_json: bool) -> None:
    """List saved elements, newest first."""

    def do_list() -> None:
        config = Config.from_env()
        store = ElementStore.from_config(config)
        items = store.list(user_id or config.user_id)
        if as_json:
            payload = [
                {
                    "id": e.id,
                    "handle": e.handle,
                    "image_url": e.image_url,
                    "created_at": e.created_at.isoformat(),
                }
                for e in items
            ]
            click.echo(json.dumps(payload, indent=2))
        else:
            progress.print_elements_table(items)

    run_with_error_handling(do_list)


@elements.command("add")
@click.argument("handle")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_user_option
@click.option("--imgbb-key", help="imgbb API key (overrides IMGBB_API_KEY).")
@_quiet_option
@_verbose_option
def elements_add(
    handle: str,
    image: Path,
    user_id: str | None,
    imgbb_key: str | None,
    quiet: bool,
    verbose_count: int,
) -> None:
    """Save IMAGE as an element under HANDLE ("@" optional)."""
    setup_logging(verbose_count, quiet)

    def do_add() -> None:
        config = Config.from_env()
        if imgbb_key is not None:
            config.set_imgbb_api_key(imgbb_key)
        normalized = normalize_handle(handle)
        encoded, _digest = process_reference_image(image, config=config)
        store = ElementStore.from_config(config)
        owner = user_id or config.user_id
        if quiet:
            element = store.create(owner, normalized, encoded)
            click.echo(element.id)
            return
        with progress.upload_progress(normalized):
            element = store.create(owner, normalized, encoded)
        progress.print_success(f"Saved {element.handle} -> {element.image_url}")
        click.echo(element.id)

    run_with_error_handling(do_add, quiet=quiet)


@elements.command("delete")
@click.argument("element_id")
@_user_option
def elements_delete(element_id: str, user_id: str | None) -> None:
    """Delete the element with ELEMENT_ID."""

    def do_delete() -> None:
        config = Config.from_env()
        ElementStore.from_config(config).delete(user_id or config.user_id, element_id)
        progress.print_success(f"Deleted element {element_id}")

    run_with_error_handling(do_delete)


def _find_history_entry(store: HistoryStore, id_prefix: str) -> GeneratedImage:
    matches = [entry for entry in store.get() if entry.id.startswith(id_prefix)]
    if not matches:
        raise NotFoundError(f"No history entry with id {id_prefix!r}", record_id=id_prefix)
    if len(matches) > 1:
        raise ValidationError(
            f"Id prefix {id_prefix!r} matches {len(matches)} entries; use more characters.",
            field="id",
        )
    return matches[0]


@cli.group()
def history() -> None:
    """Browse and manage generation history."""


@history.command("list")
@click.option("--limit", "-n", type=int, default=None, help="Show at most N entries.")
def history_list(limit: int | None) -> None:
    """List generated images, newest first."""

    def do_list() -> None:
        entries = HistoryStore.from_config(Config.from_env()).get()
        if limit is not None:
            entries = entries[:limit]
        progress.print_history_table(entries)

    run_with_error_handling(do_list)


@history.command("export")
@click.argument("image_id")
@click.argument("out", type=click.Path(dir_okay=False, path_type=Path), required=False)
def history_export(image_id: str, out: Path | None) -> None:
    """Write the history image IMAGE_ID (or a unique id prefix) to OUT."""

    def do_export() -> None:
        entry = _find_history_entry(HistoryStore.from_config(Config.from_env()), image_id)
        out_path = out or Path(default_output_path("png"))
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(base64.b64decode(entry.base64))
        click.echo(str(out_path))

    run_with_error_handling(do_export)


@history.command("delete")
@click.argument("image_id")
def history_delete(image_id: str) -> None:
    """Remove IMAGE_ID (or a unique id prefix) from history."""

    def do_delete() -> None:
        store = HistoryStore.from_config(Config.from_env())
        entry = _find_history_entry(store, image_id)
        store.delete(entry.id)
        progress.print_success(f"Deleted history entry {entry.id}")

    run_with_error_handling(do_delete)


@history.command("clear")
@click.confirmation_option(prompt="Delete all generation history?")
def history_clear() -> None:
    """Delete all history entries."""

    def do_clear() -> None:
        HistoryStore.from_config(Config.from_env()).clear()
        progress.print_success("History cleared")

    run_with_error_handling(do_clear)


@cli.command()
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    envvar="NANOBANANA_UI_PORT",
    help="Port for the Gradio server (default: 7860 or NANOBANANA_UI_PORT).",
)
@click.option(
    "--host",
    "host",
    type=str,
    default=None,
    envvar="NANOBANANA_UI_HOST",
    help="Host to bind (default: 127.0.0.1 or NANOBANANA_UI_HOST). Use 0.0.0.0 for LAN.",
)
@click.option(
    "--share",
    is_flag=True,
    default=None,
    help="Create a public share link (e.g. gradio.live).",
)
@click.option(
    "--debug-api",
    is_flag=True,
    help="Log raw API request/response (image data truncated) when generating from the UI.",
)
def ui(port: int | None, host: str | None, share: bool | None, debug_api: bool) -> None:
    """Launch the Gradio web UI for image generation."""
    from nanobanana.ui.gradio_app import launch as launch_ui

    # Apply logging verbosity from env so UI logs respect NANOBANANA_VERBOSITY
    configure_logging(verbose_level=get_verbosity_from_env(), quiet=False)

    if debug_api:
        os.environ["NANOBANANA_DEBUG_API"] = "1"

    # Resolve env for share: env var "1" or "true" => True
    share_val = share
    if share_val is None:
        env_share = os.environ.get("NANOBANANA_UI_SHARE", "").lower()
        share_val = env_share in ("1", "true", "yes")
    launch_ui(server_name=host, server_port=port, share=share_val)


def main() -> None:
    """Entry point for the nanobanana console script."""
    cli()


__all__ = ["cli", "main", "generate", "parse", "elements", "history", "ui"]
