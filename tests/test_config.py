"""
Tests for YAML configuration loading.
"""

from __future__ import annotations

import pytest

from montage_spline.config import (
    DEFAULT_CONFIG_PATH,
    get_config_path,
    get_default_config,
    load_config,
    load_config_safe,
    save_config,
)


class TestLoadConfig:
    """Tests for loading with fallback to defaults."""

    def test_default_values(self) -> None:
        """Test the built-in defaults."""
        cfg = load_config()
        assert cfg["interpolation"]["degree"] == 2
        assert cfg["interpolation"]["method"] == "3d"
        assert cfg["parallel"]["chunk_frames"] == 256
        assert cfg["io"]["output_extension"] == "npz"
        assert cfg["solver"]["max_condition_number"] == pytest.approx(1.0e12)

    def test_shipped_file_matches_defaults(self) -> None:
        """Test that configs/default_interp.yaml equals the built-in defaults."""
        if not DEFAULT_CONFIG_PATH.exists():
            pytest.skip("configs/ not available in this installation")
        cfg, errors = load_config_safe(DEFAULT_CONFIG_PATH)
        assert errors == []
        assert cfg == get_default_config()

    def test_missing_file_falls_back(self, tmp_path) -> None:
        """Test that a missing file falls back to defaults with an error."""
        cfg, errors = load_config_safe(tmp_path / "missing.yaml")
        assert cfg == get_default_config()
        assert "not found" in errors[0]

    def test_partial_file_merged_with_defaults(self, tmp_path) -> None:
        """Test that missing keys are filled from the defaults."""
        path = tmp_path / "partial.yaml"
        path.write_text("parallel:\n  workers: 3\n", encoding="utf-8")

        cfg = load_config(path)

        assert cfg["parallel"]["workers"] == 3
        assert cfg["parallel"]["chunk_frames"] == 256
        assert cfg["interpolation"]["degree"] == 2

    @pytest.mark.parametrize(
        "content, message",
        [
            ("", "empty"),
            ("- just\n- a list\n", "mapping"),
            ("interpolation: [unclosed\n", "YAML parse error"),
        ],
    )
    def test_unusable_files_fall_back(self, tmp_path, content: str, message: str) -> None:
        """Test that empty, non-mapping or broken files fall back to defaults."""
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")

        cfg, errors = load_config_safe(path)

        assert cfg == get_default_config()
        assert message in errors[0]

    def test_defaults_are_fresh_copies(self) -> None:
        """Test that editing returned defaults never leaks into the next call."""
        cfg = get_default_config()
        cfg["parallel"]["workers"] = 99
        assert get_default_config()["parallel"]["workers"] == 0

    def test_save_then_load(self, tmp_path) -> None:
        """Test that a saved config loads back equal, parent folders created."""
        cfg = get_default_config()
        cfg["interpolation"]["method"] = "spherical"
        path = tmp_path / "nested" / "saved.yaml"

        save_config(cfg, path)

        assert load_config(path) == cfg

    def test_config_path_adds_extension(self) -> None:
        """Test that .yaml is appended only when missing."""
        assert get_config_path("custom").name == "custom.yaml"
        assert get_config_path("custom.yaml").name == "custom.yaml"
