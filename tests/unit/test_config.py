"""Unit tests for config."""

from pathlib import Path

import pytest

from nanobanana.core.config import (
    DEFAULT_HISTORY_MAX_ITEMS,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_IMAGE_PROVIDER,
    DEFAULT_TOGETHER_BASE_URL,
    DEFAULT_USER_ID,
    Config,
    get_config,
    set_config,
)
from nanobanana.utils.exceptions import ConfigurationError

_ENV_VARS = (
    "TOGETHER_API_KEY",
    "OPENROUTER_API_KEY",
    "IMGBB_API_KEY",
    "TOGETHER_BASE_URL",
    "NANOBANANA_DEFAULT_PROVIDER",
    "NANOBANANA_DEFAULT_MODEL",
    "NANOBANANA_DATA_DIR",
    "NANOBANANA_UPLOAD_DIR",
    "NANOBANANA_USER_ID",
    "NANOBANANA_HISTORY_MAX",
    "NANOBANANA_DEBUG_API",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestConfigValidate:
    def test_defaults(self):
        c = Config()
        assert c.default_image_provider == DEFAULT_IMAGE_PROVIDER == "together"
        assert c.default_image_model == DEFAULT_IMAGE_MODEL
        assert c.history_max_items == DEFAULT_HISTORY_MAX_ITEMS == 50

    def test_together_key_required(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Config(together_api_key="").validate()
        assert "TOGETHER_API_KEY" in str(exc_info.value)

    def test_validate_sets_validated(self):
        c = Config(together_api_key="tk")
        c.validate()
        assert c.is_valid() is True

    def test_openrouter_key_required(self):
        c = Config(default_image_provider="openrouter")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "OpenRouter API key" in str(exc_info.value)

    def test_openrouter_key_prefix(self):
        c = Config(default_image_provider="openrouter", openrouter_api_key="invalid")
        with pytest.raises(ConfigurationError) as exc_info:
            c.validate()
        assert "sk-" in str(exc_info.value)

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Config(default_image_provider="midjourney").validate()
        assert "midjourney" in str(exc_info.value)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"history_max_items": 0},
            {"min_image_pixels": 0},
            {"min_image_pixels": 10, "max_image_pixels": 5},
            {"user_id": ""},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            Config(together_api_key="tk", **kwargs).validate()

    def test_repr_does_not_contain_api_keys(self):
        r = repr(Config(together_api_key="tk-secret", imgbb_api_key="ib-secret"))
        assert "tk-secret" not in r
        assert "ib-secret" not in r


@pytest.mark.unit
class TestConfigPaths:
    def test_derived_paths(self, tmp_path):
        c = Config(data_dir=tmp_path)
        assert c.elements_db_path == tmp_path / "elements.sqlite"
        assert c.history_path == tmp_path / "storage.json"
        assert c.resolved_upload_dir == tmp_path / "upload"

    def test_explicit_upload_dir(self, tmp_path):
        c = Config(data_dir=tmp_path, upload_dir=tmp_path / "public")
        assert c.resolved_upload_dir == tmp_path / "public"


@pytest.mark.unit
class TestConfigSetters:
    def test_set_api_key_for_default_provider(self):
        c = Config(together_api_key="tk")
        c.validate()
        c.set_api_key("new")
        assert c.together_api_key == "new"
        assert c.is_valid() is False

    def test_set_api_key_for_named_provider(self):
        c = Config()
        c.set_api_key("sk-x", provider="openrouter")
        assert c.openrouter_api_key == "sk-x"
        assert c.api_key_for("openrouter") == "sk-x"
        assert c.api_key_for("other") == ""

    def test_set_api_key_errors(self):
        with pytest.raises(ConfigurationError):
            Config().set_api_key("")
        with pytest.raises(ConfigurationError):
            Config().set_api_key("k", provider="nope")

    def test_set_imgbb_and_model(self):
        c = Config()
        c.set_imgbb_api_key("ib")
        c.set_image_model("m/x")
        assert c.imgbb_api_key == "ib"
        assert c.default_image_model == "m/x"
        with pytest.raises(ConfigurationError):
            c.set_image_model("")
        with pytest.raises(ConfigurationError):
            c.set_imgbb_api_key("")


@pytest.mark.unit
class TestConfigFromEnv:
    def test_defaults_without_env(self, clean_env):
        c = Config.from_env()
        assert c.together_api_key == ""
        assert c.together_base_url == DEFAULT_TOGETHER_BASE_URL
        assert c.user_id == DEFAULT_USER_ID
        assert c.upload_dir is None
        assert c.debug_api is False

    def test_reads_env(self, clean_env, tmp_path):
        clean_env.setenv("TOGETHER_API_KEY", "tk-env")
        clean_env.setenv("IMGBB_API_KEY", "ib-env")
        clean_env.setenv("NANOBANANA_DEFAULT_PROVIDER", "openrouter")
        clean_env.setenv("NANOBANANA_DEFAULT_MODEL", "custom/model")
        clean_env.setenv("NANOBANANA_DATA_DIR", str(tmp_path))
        clean_env.setenv("NANOBANANA_UPLOAD_DIR", str(tmp_path / "up"))
        clean_env.setenv("NANOBANANA_USER_ID", "riley")
        clean_env.setenv("NANOBANANA_HISTORY_MAX", "10")
        clean_env.setenv("NANOBANANA_DEBUG_API", "yes")
        c = Config.from_env()
        assert c.together_api_key == "tk-env"
        assert c.imgbb_api_key == "ib-env"
        assert c.default_image_provider == "openrouter"
        assert c.default_image_model == "custom/model"
        assert c.data_dir == Path(tmp_path)
        assert c.resolved_upload_dir == tmp_path / "up"
        assert c.user_id == "riley"
        assert c.history_max_items == 10
        assert c.debug_api is True

    def test_bad_integer(self, clean_env):
        clean_env.setenv("NANOBANANA_HISTORY_MAX", "lots")
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_env()
        assert "NANOBANANA_HISTORY_MAX" in str(exc_info.value)


@pytest.mark.unit
class TestGlobalConfig:
    def test_set_then_get(self):
        previous = get_config()
        custom = Config(together_api_key="tk-global")
        try:
            set_config(custom)
            assert get_config() is custom
        finally:
            set_config(previous)
