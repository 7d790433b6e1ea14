"""Tests for loading analysis settings from project files."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from classlens.config import DEFAULT_EXCLUDE_PREFIXES, AnalysisConfig, load_config


class TestLoadConfig:
    def test_defaults_without_files(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config == AnalysisConfig()
        assert config.max_call_depth == 5
        assert config.exclude_prefixes == DEFAULT_EXCLUDE_PREFIXES

    def test_classlens_toml(self, tmp_path: Path) -> None:
        (tmp_path / ".classlens.toml").write_text(
            "[classlens]\n"
            "workers = 3\n"
            "max-call-depth = 7\n"
            'exclude_prefixes = ["java.", "org.springframework."]\n'
            "include_private_methods = false\n"
            "\n"
            "[classlens.extra_annotations]\n"
            'service = ["com.acme.UseCase"]\n'
        )
        config = load_config(tmp_path)
        assert config.workers == 3
        assert config.max_call_depth == 7
        assert config.exclude_prefixes == ("java.", "org.springframework.")
        assert config.include_private_methods is False
        assert config.extra_annotations == {"SERVICE": ("com.acme.UseCase",)}

    def test_pyproject_fallback(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "demo"\n\n[tool.classlens]\ntimeout = 2.5\n'
        )
        assert load_config(tmp_path).timeout == 2.5

    def test_classlens_toml_wins(self, tmp_path: Path) -> None:
        (tmp_path / ".classlens.toml").write_text("[classlens]\nworkers = 2\n")
        (tmp_path / "pyproject.toml").write_text("[tool.classlens]\nworkers = 4\n")
        assert load_config(tmp_path).workers == 2

    def test_unknown_keys_are_warned_about(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_path / ".classlens.toml").write_text("[classlens]\ncolour = 'blue'\nworkers = 2\n")
        with caplog.at_level(logging.WARNING, logger="classlens"):
            config = load_config(tmp_path)
        assert config.workers == 2
        assert "colour" in caplog.text

    def test_malformed_file_falls_back(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_path / ".classlens.toml").write_text("[classlens\nworkers = ")
        with caplog.at_level(logging.WARNING, logger="classlens"):
            config = load_config(tmp_path)
        assert config == AnalysisConfig()
        assert "Could not read" in caplog.text


class TestAnalysisConfig:
    def test_with_overrides_ignores_none(self) -> None:
        base = AnalysisConfig(workers=4)
        assert base.with_overrides(workers=None, timeout=None) is base
        changed = base.with_overrides(workers=1, max_call_depth=None)
        assert changed.workers == 1
        assert changed.max_call_depth == base.max_call_depth

    def test_is_excluded(self) -> None:
        config = AnalysisConfig()
        assert config.is_excluded("java.util.List")
        assert config.is_excluded("kotlin.Unit")
        assert not config.is_excluded("com.acme.Java")
