"""
Gradio web UI for nanobanana.

Generate tab: prompt with @handles, aspect ratio and quality, extra reference
uploads, generate with progress and cancellation, history gallery.
Elements tab: save an image under a handle, list and delete saved elements.
Uses only the public API: from nanobanana import ...
"""

import argparse
import base64
import importlib.resources
import io
import os
import threading
from collections.abc import Generator
from typing import Any, cast

import gradio as gr
import yaml
from PIL import Image

from nanobanana import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_QUALITY,
    QUALITIES,
    APIError,
    CancellationError,
    Config,
    ConfigurationError,
    ElementStore,
    HistoryStore,
    ImageProcessingError,
    NanobananaError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    ValidationError,
    __version__,
    format_relative_time,
    normalize_handle,
    parse_prompt_for_elements,
    process_reference_image,
    run_generation,
)
from nanobanana.core.providers import KNOWN_IMAGE_PROVIDERS
from nanobanana.logging_config import get_logger, log_prompt

logger = get_logger(__name__)

# Default server port; overridable via NANOBANANA_UI_PORT
DEFAULT_UI_PORT = 7860
DEFAULT_UI_HOST = "127.0.0.1"

PAGE_TITLE = "nanobanana – image generation"

ELEMENT_TABLE_HEADERS = ["ID", "Handle", "Image URL", "Created"]

# Shared queue so generate/stop/element updates run serially
_UI_CONCURRENCY_ID = "nanobanana_ui"

# Cancellation for the in-flight generation; set by the Stop button
_cancel_event = threading.Event()


def _load_ui_models() -> tuple[dict[str, list[str]], str, str]:
    """
    Load image model lists from ui_models.yaml in the package.

    Returns (models_by_provider, default_provider, default_model). The configured
    default model is listed first for the configured default provider.
    """
    try:
        with (
            importlib.resources.files("nanobanana")
            .joinpath("ui_models.yaml")
            .open(encoding="utf-8") as f
        ):
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        data = {}

    config = Config.from_env()
    default_provider = config.default_image_provider
    if default_provider not in KNOWN_IMAGE_PROVIDERS:
        default_provider = data.get("default_provider") or KNOWN_IMAGE_PROVIDERS[0]

    models_by_provider: dict[str, list[str]] = {}
    for provider_id in KNOWN_IMAGE_PROVIDERS:
        section = data.get(provider_id) or {}
        models = [str(m) for m in section.get("models") or []]
        preferred = section.get("default_model")
        if provider_id == default_provider:
            preferred = config.default_image_model
        if preferred:
            models = [preferred] + [m for m in models if m != preferred]
        models_by_provider[provider_id] = models

    defaults = models_by_provider.get(default_provider) or [config.default_image_model]
    return models_by_provider, default_provider, defaults[0]


def _exception_to_message(exc: BaseException) -> str:
    """Map library and known exceptions to a short user-facing message (same as CLI)."""
    if isinstance(exc, ValidationError):
        msg = exc.args[0] if exc.args else "Validation failed."
        if getattr(exc, "field", None):
            msg = f"{msg} (field: {exc.field})"
        return msg
    if isinstance(exc, ConfigurationError):
        return exc.args[0] if exc.args else "Invalid configuration."
    if isinstance(exc, ImageProcessingError):
        return exc.args[0] if exc.args else "Image processing failed."
    if isinstance(exc, NotFoundError):
        return exc.args[0] if exc.args else "Not found."
    if isinstance(exc, CancellationError):
        return "Cancelled."
    if isinstance(exc, (APIError, NetworkError, RequestTimeoutError)):
        return exc.args[0] if exc.args else "API or network error."
    if isinstance(exc, NanobananaError):
        return exc.args[0] if exc.args else "An error occurred."
    return str(exc) if exc.args else "An unexpected error occurred."


def _format_status(message: str, status_type: str = "info") -> str:
    """
    Format a status message with color and icon.

    Args:
        message: The status message text.
        status_type: One of "info", "success", "error", "warning", "idle".

    Returns:
        HTML-formatted status string ("" for idle).
    """
    if status_type == "success":
        icon, color, bg_color = "✅", "#10b981", "#d1fae5"
    elif status_type == "error":
        icon, color, bg_color = "❌", "#ef4444", "#fee2e2"
    elif status_type == "warning":
        icon, color, bg_color = "⚠️", "#f59e0b", "#fef3c7"
    elif status_type == "info":
        icon, color, bg_color = "ℹ️", "#3b82f6", "#dbeafe"
    else:
        return ""

    return f"""<div style="padding: 12px 16px; border-radius: 8px; background-color: {bg_color}; border-left: 4px solid {color}; margin: 8px 0;">
    <span style="font-size: 16px; margin-right: 8px;">{icon}</span>
    <span style="color: {color}; font-weight: 500;">{message}</span>
</div>"""


def _upload_paths(value: Any) -> list[str]:
    """Normalize a gr.File(file_count="multiple") value to a list of paths."""
    if not value:
        return []
    items = value if isinstance(value, list) else [value]
    paths: list[str] = []
    for item in items:
        if isinstance(item, str):
            paths.append(item)
        elif isinstance(item, dict) and item.get("path"):
            paths.append(str(item["path"]))
        elif getattr(item, "name", None):
            paths.append(str(item.name))
    return paths


def _history_gallery_items(history: HistoryStore) -> list[tuple[Image.Image, str]]:
    """Gallery items (image, caption), newest first."""
    items: list[tuple[Image.Image, str]] = []
    for entry in history.get():
        try:
            image = Image.open(io.BytesIO(base64.b64decode(entry.base64))).copy()
        except (ValueError, OSError):
            logger.warning("Skipping unreadable history image id=%s", entry.id)
            continue
        caption = f"{format_relative_time(entry.created_at)} · {entry.resolution}"
        items.append((image, caption))
    return items


def _element_rows(store: ElementStore, user_id: str) -> list[list[str]]:
    return [
        [e.id, e.handle, e.image_url, e.created_at.strftime("%Y-%m-%d %H:%M")]
        for e in store.list(user_id)
    ]


def _reference_preview(prompt: str, store: ElementStore | None, user_id: str) -> str:
    """Markdown listing the handles in a prompt and whether each has a saved element."""
    parsed = parse_prompt_for_elements(prompt or "")
    if not parsed.references:
        return ""
    lines = []
    for ref in parsed.references:
        found = store is not None and store.handle_exists(user_id, ref.handle)
        marker = "" if found else " _(no saved element, sent without image)_"
        lines.append(f"- `{ref.handle}` → Reference Image {ref.ref_index}{marker}")
    return "\n".join(lines)


def _run_generate_stream(
    prompt: str,
    aspect_ratio: str,
    quality: str,
    uploads: Any,
    provider: str | None,
    model: str | None,
    cancel_check: Any | None = None,
) -> Generator[tuple[str, str | None, bool, bool, Any], None, None]:
    """
    Generate flow for the UI.

    Yields (status_html, image_path, generate_enabled, stop_enabled, gallery_update).
    """
    no_gallery_change = gr.update()
    if not prompt or not prompt.strip():
        yield (
            _format_status("Enter a prompt to generate.", "warning"),
            None,
            True,
            False,
            no_gallery_change,
        )
        return
    logger.info("Generate requested")
    log_prompt(logger, "Prompt", prompt)

    config = Config.from_env()
    if provider:
        config.default_image_provider = provider
    try:
        config.validate()
        uploaded = [
            process_reference_image(path, config=config)[0] for path in _upload_paths(uploads)
        ]
    except (ConfigurationError, ValidationError, ImageProcessingError, FileNotFoundError) as e:
        yield (
            _format_status(_exception_to_message(e), "error"),
            None,
            True,
            False,
            no_gallery_change,
        )
        return

    yield (_format_status("Generating…", "info"), None, False, True, no_gallery_change)

    history = HistoryStore.from_config(config)
    try:
        outcome = run_generation(
            prompt,
            aspect_ratio,
            quality,
            user_id=config.user_id,
            element_store=ElementStore.from_config(config),
            uploaded_images=uploaded,
            history=history,
            model=model or None,
            provider=provider or None,
            config=config,
            cancel_check=cancel_check,
        )
    except NanobananaError as e:
        yield (
            _format_status(_exception_to_message(e), "error"),
            None,
            True,
            False,
            no_gallery_change,
        )
        return

    result = outcome.result
    message = f"Done in {result.generation_time:.1f}s ({result.resolution})"
    skipped = len(outcome.parsed.references) - (len(outcome.input_images) - len(uploaded))
    status_type = "success"
    if skipped:
        message += f"; {skipped} handle(s) had no saved element"
        status_type = "warning"
    image_path = str(result.saved_path) if result.saved_path else None
    yield (
        _format_status(message, status_type),
        image_path,
        True,
        False,
        _history_gallery_items(history),
    )


def _generate_click_handler(
    prompt: str,
    aspect_ratio: str,
    quality: str,
    uploads: Any,
    provider: str | None,
    model: str | None,
) -> Generator[tuple[Any, ...], None, None]:
    """Generate button logic: clear cancel, run stream, yield updates. Used by UI and tests."""
    logger.debug("Generate clicked")
    _cancel_event.clear()
    try:
        for status_msg, img_path, gen_on, stop_on, gallery in _run_generate_stream(
            prompt,
            aspect_ratio,
            quality,
            uploads,
            provider,
            model,
            cancel_check=lambda: _cancel_event.is_set(),
        ):
            yield (
                status_msg,
                img_path,
                gr.update(interactive=gen_on),
                gr.update(interactive=stop_on),
                gallery,
            )
    except Exception as e:
        logger.exception("Generate failed")
        yield (
            _format_status(_exception_to_message(e), "error"),
            None,
            gr.update(interactive=True),
            gr.update(interactive=False),
            gr.update(),
        )


def _stop_click_handler() -> tuple[Any, Any, Any]:
    """Stop button logic: set cancel event, restore button states."""
    _cancel_event.set()
    return (
        _format_status("Stopped.", "info"),
        gr.update(interactive=True),
        gr.update(interactive=False),
    )


def _prompt_change_handler(text: str) -> tuple[Any, str]:
    """Enable Generate when the prompt is non-empty and preview its @handles."""
    enabled = bool(text and text.strip())
    preview = ""
    if enabled:
        config = Config.from_env()
        try:
            store = ElementStore.from_config(config)
        except OSError:
            store = None
        preview = _reference_preview(text, store, config.user_id)
    return gr.update(interactive=enabled), preview


def _provider_change_handler(provider: str) -> Any:
    """Swap the model list when the provider changes."""
    models_by_provider, _default_provider, _default_model = _load_ui_models()
    models = models_by_provider.get(provider) or []
    return gr.update(choices=models, value=models[0] if models else None)


def _clear_history_handler() -> tuple[str, list[Any]]:
    HistoryStore.from_config(Config.from_env()).clear()
    return _format_status("History cleared.", "info"), []


def _add_element_handler(handle: str, image_path: str | None) -> tuple[str, Any, Any, Any]:
    """
    Save an uploaded image under a handle.

    Returns (status_html, element_rows, handle_box_update, image_update).
    """
    config = Config.from_env()
    try:
        store = ElementStore.from_config(config)
        normalized = normalize_handle(handle)
        if not image_path:
            raise ValidationError("Please select an image", field="image")
        encoded, _digest = process_reference_image(image_path, config=config)
        element = store.create(config.user_id, normalized, encoded)
    except (NanobananaError, FileNotFoundError) as e:
        return (
            _format_status(_exception_to_message(e), "error"),
            gr.update(),
            gr.update(),
            gr.update(),
        )
    message = f"Saved {element.handle}. Mention it in a prompt to use the image."
    if "-" in element.handle:
        message += " Note: prompts only match handles up to the first '-'."
    return (
        _format_status(message, "success"),
        _element_rows(store, config.user_id),
        gr.update(value=""),
        gr.update(value=None),
    )


def _delete_element_handler(element_id: str) -> tuple[str, Any]:
    config = Config.from_env()
    store = ElementStore.from_config(config)
    try:
        store.delete(config.user_id, (element_id or "").strip())
    except NotFoundError as e:
        return _format_status(_exception_to_message(e), "error"), gr.update()
    return _format_status("Element deleted.", "info"), _element_rows(store, config.user_id)


def _element_select_handler(evt: gr.SelectData, rows: Any) -> str:
    """Clicking a table row fills the delete box with that element's id."""
    row_index = evt.index[0] if isinstance(evt.index, (list, tuple)) else evt.index
    try:
        if hasattr(rows, "iloc"):
            return str(rows.iloc[row_index, 0])
        return str(rows[row_index][0])
    except (IndexError, KeyError, TypeError):
        return ""


def _initial_state() -> tuple[list[Any], list[list[str]]]:
    """History gallery items and element rows shown when the page loads."""
    config = Config.from_env()
    try:
        gallery = _history_gallery_items(HistoryStore.from_config(config))
        rows = _element_rows(ElementStore.from_config(config), config.user_id)
    except OSError as e:
        logger.warning("Could not load local data: %s", e)
        return [], []
    return gallery, rows


def _build_blocks() -> gr.Blocks:
    """Build the Gradio Blocks layout and wire handlers."""
    models_by_provider, default_provider, default_model = _load_ui_models()
    header_html = f"""
<div style="text-align: center; margin: 10px 0 20px 0;">
    <h1 style="margin: 0;">🍌 nanobanana</h1>
    <p style="color: #6b7280; margin: 5px 0 0 0;">
        Mention saved elements as <code>@handle</code>; they become "Reference Image N".
    </p>
</div>
"""

    with gr.Blocks(title=PAGE_TITLE) as app:
        gr.HTML(header_html)
        status_html = gr.HTML(value="", visible=True)

        with gr.Tabs():
            with gr.Tab("Generate"):
                with gr.Row():
                    with gr.Column(scale=2):
                        prompt_tb = gr.Textbox(
                            label="Prompt",
                            placeholder="e.g. @Riley riding a bike next to @Bike",
                            lines=4,
                        )
                        references_md = gr.Markdown(value="")
                    with gr.Column(scale=1):
                        uploads = gr.File(
                            label="Extra reference images",
                            file_count="multiple",
                            file_types=["image"],
                            type="filepath",
                        )
                with gr.Row():
                    aspect_dd = gr.Dropdown(
                        label="Aspect ratio",
                        choices=[(label, value) for value, label in ASPECT_RATIOS],
                        value=DEFAULT_ASPECT_RATIO,
                    )
                    quality_dd = gr.Dropdown(
                        label="Quality",
                        choices=list(QUALITIES),
                        value=DEFAULT_QUALITY,
                    )
                    provider_dd = gr.Dropdown(
                        label="Provider",
                        choices=list(KNOWN_IMAGE_PROVIDERS),
                        value=default_provider,
                    )
                    model_dd = gr.Dropdown(
                        label="Model",
                        choices=models_by_provider.get(default_provider) or [default_model],
                        value=default_model,
                        allow_custom_value=True,
                    )
                with gr.Row():
                    generate_btn = gr.Button("Generate", variant="primary", interactive=False)
                    stop_btn = gr.Button("Stop", interactive=False)
                out_image = gr.Image(label="Output", type="filepath", height="60vh")

                with gr.Row():
                    gr.Markdown("### History")
                    clear_history_btn = gr.Button("Clear history", size="sm")
                history_gallery = gr.Gallery(label="History", columns=4, height="auto")

            with gr.Tab("Elements"):
                with gr.Row():
                    with gr.Column():
                        handle_tb = gr.Textbox(label="Handle", placeholder="@Riley")
                        element_image = gr.Image(label="Element image", type="filepath")
                        add_element_btn = gr.Button("Save element", variant="primary")
                    with gr.Column():
                        elements_df = gr.Dataframe(
                            headers=ELEMENT_TABLE_HEADERS,
                            label="Saved elements",
                            interactive=False,
                        )
                        delete_id_tb = gr.Textbox(
                            label="Element ID to delete", placeholder="Click a row or paste an ID"
                        )
                        delete_element_btn = gr.Button("Delete element", variant="stop")

        gen_ev = generate_btn.click(
            fn=_generate_click_handler,
            inputs=[prompt_tb, aspect_dd, quality_dd, uploads, provider_dd, model_dd],
            outputs=[status_html, out_image, generate_btn, stop_btn, history_gallery],
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        stop_btn.click(
            fn=_stop_click_handler,
            inputs=[],
            outputs=[status_html, generate_btn, stop_btn],
            cancels=[gen_ev],
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        prompt_tb.change(
            fn=_prompt_change_handler,
            inputs=[prompt_tb],
            outputs=[generate_btn, references_md],
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        provider_dd.change(
            fn=_provider_change_handler,
            inputs=[provider_dd],
            outputs=[model_dd],
        )
        clear_history_btn.click(
            fn=_clear_history_handler,
            inputs=[],
            outputs=[status_html, history_gallery],
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        add_element_btn.click(
            fn=_add_element_handler,
            inputs=[handle_tb, element_image],
            outputs=[status_html, elements_df, handle_tb, element_image],
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        elements_df.select(
            fn=_element_select_handler,
            inputs=[elements_df],
            outputs=[delete_id_tb],
        )
        delete_element_btn.click(
            fn=_delete_element_handler,
            inputs=[delete_id_tb],
            outputs=[status_html, elements_df],
            concurrency_id=_UI_CONCURRENCY_ID,
        )
        app.load(fn=_initial_state, inputs=[], outputs=[history_gallery, elements_df])

        gr.HTML(f"""
<div style="text-align: center; margin: 40px 0 20px 0; padding-top: 20px; border-top: 1px solid #e5e7eb;">
    <p style="font-size: 0.9em; color: #9ca3af; margin: 0;">nanobanana v{__version__}</p>
</div>
""")

    return cast(gr.Blocks, app)


def launch(
    server_name: str | None = None,
    server_port: int | None = None,
    share: bool = False,
) -> None:
    """
    Build the Gradio app and launch the server.

    Args:
        server_name: Host to bind (default: NANOBANANA_UI_HOST or 127.0.0.1).
        server_port: Port (default: NANOBANANA_UI_PORT or 7860).
        share: If True, create a public share link (e.g. gradio.live).
    """
    host = server_name or os.getenv("NANOBANANA_UI_HOST", DEFAULT_UI_HOST)
    port = server_port
    if port is None:
        try:
            port = int(os.getenv("NANOBANANA_UI_PORT", str(DEFAULT_UI_PORT)))
        except ValueError:
            port = DEFAULT_UI_PORT
    print(f"nanobanana ui is starting (v{__version__}) on http://{host}:{port}...")
    app = _build_blocks()
    app.launch(server_name=host, server_port=port, share=share, inbrowser=True)


def main() -> None:
    """Entry point for the nanobanana-ui console script. Parses --port, --host, --share."""
    parser = argparse.ArgumentParser(
        description="Launch the nanobanana Gradio web UI for image generation.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        metavar="PORT",
        help=f"Port to bind (default: NANOBANANA_UI_PORT or {DEFAULT_UI_PORT}).",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        metavar="HOST",
        help=f"Host to bind (default: NANOBANANA_UI_HOST or {DEFAULT_UI_HOST}).",
    )
    parser.add_argument(
        "--share",
        action="store_true",
        default=None,
        help="Create a public share link (e.g. gradio.live). Overrides NANOBANANA_UI_SHARE.",
    )
    args = parser.parse_args()
    share_val = args.share
    if share_val is None:
        env_share = os.environ.get("NANOBANANA_UI_SHARE", "").lower()
        share_val = env_share in ("1", "true", "yes")
    launch(server_name=args.host, server_port=args.port, share=share_val)


if __name__ == "__main__":
    main()
