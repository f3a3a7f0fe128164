"""
Pytest configuration: default runs most tests; use --run-slow to include slow tests.
"""

import base64
import io
from pathlib import Path

import pytest
from PIL import Image

from nanobanana.core.config import Config


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (live Together/OpenRouter/imgbb calls). Default: skip them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow", False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test; run with --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def make_png(
    size: tuple[int, int] = (64, 64), color: tuple[int, int, int] = (200, 30, 30)
) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_b64() -> str:
    """Base64 of a small red PNG."""
    return base64.b64encode(make_png()).decode("ascii")


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with dummy keys and all local storage under tmp_path."""
    return Config(
        together_api_key="tk-test",
        openrouter_api_key="sk-test",
        imgbb_api_key="imgbb-test",
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def env_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point Config.from_env() at tmp_path with dummy API keys."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("NANOBANANA_DATA_DIR", str(data_dir))
    monkeypatch.setenv("TOGETHER_API_KEY", "tk-test")
    monkeypatch.setenv("IMGBB_API_KEY", "imgbb-test")
    monkeypatch.setenv("NANOBANANA_USER_ID", "tester")
    monkeypatch.delenv("NANOBANANA_DEFAULT_PROVIDER", raising=False)
    monkeypatch.delenv("NANOBANANA_DEFAULT_MODEL", raising=False)
    monkeypatch.delenv("NANOBANANA_UPLOAD_DIR", raising=False)
    return data_dir
