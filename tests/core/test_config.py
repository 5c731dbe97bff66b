"""Tests for layered YAML configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from unhedged_tools.core.config import ConfigError, ConfigLoader

EXPECTED_WINDOW = 10


class TestConfigLoader:
    """Test suite for ConfigLoader."""

    def test_load_packaged_defaults(self) -> None:
        """Test the packaged settings file is loaded by default."""
        loader = ConfigLoader()
        assert loader.get("betting.window_minutes") == EXPECTED_WINDOW
        assert loader.get("timezone") == "UTC"

    def test_get_with_dot_notation(self, tmp_path: Path) -> None:
        """Test nested values are reachable with dot notation."""
        (tmp_path / "settings.yaml").write_text("""
betting:
  window_minutes: 5
  fallback_asset: ETH
""")
        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("betting.window_minutes") == 5
        assert loader.get("betting.fallback_asset") == "ETH"

    def test_get_with_default(self, tmp_path: Path) -> None:
        """Test a missing key returns the default."""
        (tmp_path / "settings.yaml").write_text("betting: {}")
        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("betting.nope", "fallback") == "fallback"
        assert loader.get("betting.window_minutes.deeper", 1) == 1

    def test_env_var_substitution(self, tmp_path: Path) -> None:
        """Test whole and embedded variable references are substituted."""
        (tmp_path / "settings.yaml").write_text("""
timezone: ${TEST_TZ}
label: bot-${TEST_NAME:quest}-v1
proxies:
  - ${TEST_PROXY:http://localhost:8080}
""")
        with patch.dict(os.environ, {"TEST_TZ": "Europe/London"}):
            loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("timezone") == "Europe/London"
        assert loader.get("label") == "bot-quest-v1"
        assert loader.get("proxies") == ["http://localhost:8080"]

    def test_missing_env_var_without_default(self, tmp_path: Path) -> None:
        """Test an unset variable without a default is an error."""
        (tmp_path / "settings.yaml").write_text("timezone: ${TEST_UNSET_TZ}")
        with pytest.raises(ConfigError, match="TEST_UNSET_TZ"):
            ConfigLoader(config_dir=tmp_path)

    def test_local_and_override_layers(self, tmp_path: Path) -> None:
        """Test local settings and the override file are deep-merged in order."""
        (tmp_path / "settings.yaml").write_text("""
betting:
  window_minutes: 10
  cooldown_seconds: 2.5
polling:
  no_market_seconds: 60
""")
        (tmp_path / "settings.local.yaml").write_text("""
betting:
  window_minutes: 8
""")
        override = tmp_path / "mine.yaml"
        override.write_text("""
betting:
  cooldown_seconds: 1
""")
        loader = ConfigLoader(config_dir=tmp_path, override_file=override)
        assert loader.section("betting") == {"window_minutes": 8, "cooldown_seconds": 1}
        assert loader.get("polling.no_market_seconds") == 60

    def test_missing_override_file(self, tmp_path: Path) -> None:
        """Test a missing override file is an error."""
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader(config_dir=tmp_path, override_file=tmp_path / "missing.yaml")

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """Test a YAML file that is not a mapping is rejected."""
        (tmp_path / "settings.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader(config_dir=tmp_path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test malformed YAML is reported as a config error."""
        (tmp_path / "settings.yaml").write_text("betting: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigLoader(config_dir=tmp_path)

    def test_section_must_be_mapping(self, tmp_path: Path) -> None:
        """Test section() rejects scalar values and defaults to empty."""
        (tmp_path / "settings.yaml").write_text("betting: 3")
        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.section("polling") == {}
        with pytest.raises(ConfigError, match="betting"):
            loader.section("betting")
