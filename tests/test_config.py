"""Tests for configuration manager."""

import tempfile
from pathlib import Path

import pytest  # type: ignore[import-not-found]
import yaml  # type: ignore[import-untyped]

from kimai.core.config import ConfigManager


@pytest.fixture
def temp_config_path():
    """Create a temporary config file path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "config.yml"


class TestConfigManager:
    """Test ConfigManager."""

    def test_initialization_creates_default_config(self, temp_config_path: Path) -> None:
        assert not temp_config_path.exists()

        config = ConfigManager(temp_config_path)

        assert temp_config_path.exists()
        assert config.get("version") == "1.0"
        assert config.get("general.data_dir") == "~/.kimai/data"
        assert config.get("timesheet.mode") == "default"
        assert config.get("timesheet.active_entries.hard_limit") == 1
        assert config.get("invoice.number_format") == "{Y}/{cy,3}"

    def test_load_existing_config_merges_defaults(self, temp_config_path: Path) -> None:
        config_data = {
            "version": "1.0",
            "timesheet": {"mode": "punch", "rules": {"allow_future_times": False}},
        }
        with open(temp_config_path, "w") as f:
            yaml.dump(config_data, f)

        config = ConfigManager(temp_config_path)

        assert config.get("timesheet.mode") == "punch"
        assert config.get("timesheet.rules.allow_future_times") is False
        # untouched defaults survive the merge
        assert config.get("timesheet.rules.allow_zero_duration") is False
        assert config.get("quick_entry.minimum_rows") == 3

    def test_get_with_default(self, temp_config_path: Path) -> None:
        config = ConfigManager(temp_config_path)

        assert config.get("nonexistent.key", "fallback") == "fallback"
        assert config.get("general.timezone.deeper", "x") == "x"

    def test_set_persists_value(self, temp_config_path: Path) -> None:
        config = ConfigManager(temp_config_path)
        config.set("timesheet.mode", "duration")

        reloaded = ConfigManager(temp_config_path)
        assert reloaded.get("timesheet.mode") == "duration"

    def test_set_invalid_value_is_rolled_back(self, temp_config_path: Path) -> None:
        config = ConfigManager(temp_config_path)

        with pytest.raises(ValueError):
            config.set("timesheet.mode", "stopwatch")

        assert config.get("timesheet.mode") == "default"

    def test_invalid_file_is_backed_up(self, temp_config_path: Path) -> None:
        with open(temp_config_path, "w") as f:
            yaml.dump({"version": "1.0", "api": {"port": "not-a-port"}}, f)

        with pytest.raises(ValueError, match="backed up"):
            ConfigManager(temp_config_path)

        assert temp_config_path.with_suffix(".yml.backup").exists()
        assert ConfigManager(temp_config_path).get("api.port") == 8000

    def test_reset(self, temp_config_path: Path) -> None:
        config = ConfigManager(temp_config_path)
        config.set("api.enabled", True)

        config.reset()

        assert config.get("api.enabled") is False

    def test_get_all_keys(self, temp_config_path: Path) -> None:
        keys = ConfigManager(temp_config_path).get_all_keys()

        assert "general.data_dir" in keys
        assert "timesheet.rules.allow_zero_duration" in keys
        assert "timesheet" not in keys

    def test_get_path_expands_home(self, temp_config_path: Path) -> None:
        path = ConfigManager(temp_config_path).get_path("plugins.directory")

        assert path.is_absolute()
        assert path.name == "plugins"

    def test_ensure_api_secret_key(self, temp_config_path: Path) -> None:
        config = ConfigManager(temp_config_path)

        key = config.ensure_api_secret_key()

        assert len(key) > 20
        assert config.ensure_api_secret_key() == key
        assert ConfigManager(temp_config_path).get("api.authentication.secret_key") == key

    def test_environment_selects_config_file(self, temp_config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KIMAI_CONFIG", str(temp_config_path))

        config = ConfigManager()

        assert config.config_path == temp_config_path
        assert temp_config_path.exists()
