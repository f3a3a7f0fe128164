"""Unit tests for the nanobanana CLI."""

import base64
import json
import signal
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner, Result
from PIL import Image

from nanobanana.cli import cli
from nanobanana.cli.handlers import (
    cancel_check,
    handle_sigint,
    map_exception_to_exit,
    sigint_cancellation,
)
from nanobanana.cli.utils import (
    EXIT_API_OR_NETWORK,
    EXIT_CANCELLED,
    EXIT_VALIDATION_OR_CONFIG,
    default_output_path,
    short_id,
)
from nanobanana.core.history import HistoryStore
from nanobanana.core.image_gen import GenerationResult
from nanobanana.core.pipeline import GenerationOutcome
from nanobanana.core.prompt import parse_prompt_for_elements
from nanobanana.utils.exceptions import (
    APIError,
    CancellationError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    ValidationError,
)

RUN_GENERATION = "nanobanana.cli.commands.run_generation"


def _invoke(*args: str) -> Result:
    return CliRunner().invoke(cli, list(args))


def _outcome(prompt: str, saved_path: Path | None = None, input_images=None) -> GenerationOutcome:
    parsed = parse_prompt_for_elements(prompt)
    result = GenerationResult(
        image=Image.new("RGB", (2, 2), color=(255, 0, 0)),
        _format="png",
        generation_time=1.5,
        model_used="google/gemini-3-pro-image",
        prompt_used=parsed.cleaned_prompt,
        resolution="1376x768",
        input_image_count=len(input_images or []),
        base64="",
        saved_path=saved_path,
    )
    return GenerationOutcome(result=result, parsed=parsed, input_images=list(input_images or []))


def _write_png(path: Path, size=(64, 64)) -> Path:
    Image.new("RGB", size, color=(0, 200, 0)).save(path, format="PNG")
    return path


@pytest.mark.unit
class TestGenerateCommand:
    def test_required_prompt(self, env_data_dir):
        result = _invoke("generate")
        assert result.exit_code != 0
        assert "prompt" in result.output.lower()

    def test_writes_out_file(self, env_data_dir, tmp_path):
        out_file = tmp_path / "out.png"
        with patch(RUN_GENERATION, return_value=_outcome("a cat")) as mock_run:
            result = _invoke("generate", "-p", "a cat", "--out", str(out_file), "-q")
        assert result.exit_code == 0, result.output
        assert str(out_file) in result.output
        assert out_file.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
        args, kwargs = mock_run.call_args
        assert args == ("a cat", "16:9", "standard")
        assert kwargs["user_id"] == "tester"
        assert kwargs["provider"] == "together"
        assert kwargs["save"] is False
        assert kwargs["uploaded_images"] == []
        assert isinstance(kwargs["history"], HistoryStore)

    def test_default_output_is_saved_path(self, env_data_dir, tmp_path):
        saved = tmp_path / "upload" / "abc.png"
        with patch(RUN_GENERATION, return_value=_outcome("a cat", saved_path=saved)) as mock_run:
            result = _invoke("generate", "-p", "a cat", "-a", "1:1", "--quality", "high")
        assert result.exit_code == 0, result.output
        assert str(saved) in result.output
        args, kwargs = mock_run.call_args
        assert args == ("a cat", "1:1", "high")
        assert kwargs["save"] is True

    def test_options_forwarded(self, env_data_dir, tmp_path):
        image = _write_png(tmp_path / "ref.png")
        with patch(RUN_GENERATION, return_value=_outcome("x", saved_path=tmp_path / "o.png")) as m:
            result = _invoke(
                "generate",
                "-p",
                "x",
                "-i",
                str(image),
                "--user",
                "riley",
                "--model",
                "m/x",
                "--no-history",
                "-q",
            )
        assert result.exit_code == 0, result.output
        kwargs = m.call_args[1]
        assert kwargs["user_id"] == "riley"
        assert kwargs["model"] == "m/x"
        assert kwargs["history"] is None
        assert len(kwargs["uploaded_images"]) == 1
        assert base64.b64decode(kwargs["uploaded_images"][0])[:2] == b"\xff\xd8"

    def test_warns_on_skipped_handles(self, env_data_dir, tmp_path):
        outcome = _outcome("@Ghost at sea", saved_path=tmp_path / "o.png")
        with patch(RUN_GENERATION, return_value=outcome):
            result = _invoke("generate", "-p", "@Ghost at sea")
        assert result.exit_code == 0, result.output
        assert "no saved element" in result.output

    def test_invalid_aspect_ratio_rejected_by_click(self, env_data_dir):
        result = _invoke("generate", "-p", "a cat", "-a", "2:1")
        assert result.exit_code == 2

    def test_missing_api_key_exit_2(self, env_data_dir, monkeypatch):
        monkeypatch.delenv("TOGETHER_API_KEY")
        with patch(RUN_GENERATION) as mock_run:
            result = _invoke("generate", "-p", "a cat")
        assert result.exit_code == EXIT_VALIDATION_OR_CONFIG
        mock_run.assert_not_called()

    def test_api_key_option(self, env_data_dir, monkeypatch, tmp_path):
        monkeypatch.delenv("TOGETHER_API_KEY")
        with patch(RUN_GENERATION, return_value=_outcome("a", saved_path=tmp_path / "o.png")) as m:
            result = _invoke("generate", "-p", "a", "--api-key", "tk-cli", "-q")
        assert result.exit_code == 0, result.output
        assert m.call_args[1]["config"].together_api_key == "tk-cli"

    @pytest.mark.parametrize(
        "exc,code",
        [
            (ValidationError("bad", field="prompt"), EXIT_VALIDATION_OR_CONFIG),
            (APIError("boom", status_code=500), EXIT_API_OR_NETWORK),
            (NetworkError("offline"), EXIT_API_OR_NETWORK),
            (CancellationError("stop"), EXIT_CANCELLED),
        ],
    )
    def test_error_exit_codes(self, env_data_dir, exc, code):
        with patch(RUN_GENERATION, side_effect=exc):
            result = _invoke("generate", "-p", "a cat", "-q")
        assert result.exit_code == code


@pytest.mark.unit
class TestParseCommand:
    def test_plain(self):
        result = _invoke("parse", "@Riley meets @Max")
        assert result.exit_code == 0
        assert "Reference Image 1 meets Reference Image 2" in result.output

    def test_json(self):
        result = _invoke("parse", "--json", "@Riley and @Riley")
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "cleaned_prompt": "Reference Image 1 and Reference Image 1",
            "references": [{"handle": "@Riley", "ref_index": 1}],
        }


@pytest.mark.unit
class TestElementsCommands:
    UPLOAD = "nanobanana.core.elements.upload_to_imgbb"

    def test_add_list_delete(self, env_data_dir, tmp_path):
        image = _write_png(tmp_path / "riley.png")
        with patch(self.UPLOAD, return_value="https://i.ibb.co/riley.png") as mock_upload:
            added = _invoke("elements", "add", "Riley", str(image), "-q")
        assert added.exit_code == 0, added.output
        element_id = added.output.strip().splitlines()[-1]
        mock_upload.assert_called_once()

        listed = _invoke("elements", "list", "--json")
        assert listed.exit_code == 0
        items = json.loads(listed.output)
        assert [(i["id"], i["handle"], i["image_url"]) for i in items] == [
            (element_id, "@Riley", "https://i.ibb.co/riley.png")
        ]

        assert json.loads(_invoke("elements", "list", "--json", "--user", "x").output) == []

        deleted = _invoke("elements", "delete", element_id)
        assert deleted.exit_code == 0
        assert json.loads(_invoke("elements", "list", "--json").output) == []

    def test_add_duplicate(self, env_data_dir, tmp_path):
        image = _write_png(tmp_path / "a.png")
        with patch(self.UPLOAD, return_value="https://i.ibb.co/a.png"):
            assert _invoke("elements", "add", "@a", str(image), "-q").exit_code == 0
            result = _invoke("elements", "add", "@a", str(image), "-q")
        assert result.exit_code == EXIT_VALIDATION_OR_CONFIG
        assert "already exists" in result.output

    def test_add_invalid_handle(self, env_data_dir, tmp_path):
        image = _write_png(tmp_path / "a.png")
        with patch(self.UPLOAD) as mock_upload:
            result = _invoke("elements", "add", "bad handle", str(image), "-q")
        assert result.exit_code == EXIT_VALIDATION_OR_CONFIG
        mock_upload.assert_not_called()

    def test_delete_unknown(self, env_data_dir):
        result = _invoke("elements", "delete", "nope")
        assert result.exit_code == EXIT_VALIDATION_OR_CONFIG
        assert "not found" in result.output.lower()

    def test_list_empty_table(self, env_data_dir):
        result = _invoke("elements", "list")
        assert result.exit_code == 0


@pytest.mark.unit
class TestHistoryCommands:
    @pytest.fixture
    def history(self, env_data_dir) -> HistoryStore:
        return HistoryStore(env_data_dir / "storage.json")

    def test_list(self, history):
        history.save("AAAA", prompt="a sunny beach", resolution="1376x768")
        result = _invoke("history", "list")
        assert result.exit_code == 0
        assert "sunny beach" in result.output

    def test_export_by_prefix(self, history, png_b64, tmp_path):
        entry = history.save(png_b64, prompt="p", resolution="1x1")
        out_file = tmp_path / "export.png"
        result = _invoke("history", "export", short_id(entry.id), str(out_file))
        assert result.exit_code == 0, result.output
        assert out_file.read_bytes() == base64.b64decode(png_b64)

    def test_delete(self, history):
        keep = history.save("A", prompt="keep", resolution="1x1")
        drop = history.save("B", prompt="drop", resolution="1x1")
        result = _invoke("history", "delete", drop.id)
        assert result.exit_code == 0
        assert [e.id for e in history.get()] == [keep.id]

    def test_delete_unknown(self, history):
        result = _invoke("history", "delete", "nope")
        assert result.exit_code == EXIT_VALIDATION_OR_CONFIG

    def test_ambiguous_prefix(self, history):
        history.save("A", prompt="a", resolution="1x1")
        history.save("B", prompt="b", resolution="1x1")
        result = _invoke("history", "delete", "")
        assert result.exit_code == EXIT_VALIDATION_OR_CONFIG
        assert len(history.get()) == 2

    def test_clear_requires_confirmation(self, history):
        history.save("A", prompt="a", resolution="1x1")
        aborted = CliRunner().invoke(cli, ["history", "clear"], input="n\n")
        assert aborted.exit_code != 0
        assert len(history.get()) == 1
        assert _invoke("history", "clear", "--yes").exit_code == 0
        assert history.get() == []


@pytest.mark.unit
class TestUiCommand:
    def test_launch_args(self, monkeypatch):
        monkeypatch.delenv("NANOBANANA_UI_SHARE", raising=False)
        with patch("nanobanana.ui.gradio_app.launch") as mock_launch:
            result = _invoke("ui", "--port", "7999", "--host", "0.0.0.0")
        assert result.exit_code == 0, result.output
        mock_launch.assert_called_once_with(server_name="0.0.0.0", server_port=7999, share=False)


@pytest.mark.unit
class TestExitMapping:
    @pytest.mark.parametrize(
        "exc,code",
        [
            (ValidationError("v"), EXIT_VALIDATION_OR_CONFIG),
            (ConfigurationError("c"), EXIT_VALIDATION_OR_CONFIG),
            (NotFoundError("n"), EXIT_VALIDATION_OR_CONFIG),
            (FileNotFoundError("f"), EXIT_VALIDATION_OR_CONFIG),
            (CancellationError("x"), EXIT_CANCELLED),
            (RequestTimeoutError("t"), EXIT_API_OR_NETWORK),
            (RuntimeError("r"), EXIT_API_OR_NETWORK),
        ],
    )
    def test_codes(self, exc, code):
        assert map_exception_to_exit(exc)[0] == code

    def test_validation_message_includes_field(self):
        assert map_exception_to_exit(ValidationError("bad", field="prompt"))[1] == (
            "bad (field: prompt)"
        )


@pytest.mark.unit
class TestCliUtils:
    def test_default_output_path(self):
        path = default_output_path("png")
        assert path.startswith("nanobanana_")
        assert path.endswith(".png")

    def test_short_id(self):
        assert short_id("1234abcd-0000-1111") == "1234abcd"

    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert "version" in result.output.lower()


@pytest.mark.unit
class TestSigintCancellation:
    def test_handler_installed_and_restored(self):
        before = signal.getsignal(signal.SIGINT)
        with sigint_cancellation():
            assert signal.getsignal(signal.SIGINT) is handle_sigint
            assert cancel_check() is False
            handle_sigint(signal.SIGINT, None)
            assert cancel_check() is True
        assert signal.getsignal(signal.SIGINT) is before

    def test_entering_resets_previous_cancel(self):
        handle_sigint(signal.SIGINT, None)
        with sigint_cancellation():
            assert cancel_check() is False
