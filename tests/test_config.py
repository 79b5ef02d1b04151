"""Tests for configuration loading and persistence."""

from pathlib import Path

import pytest

from codecanon import config


@pytest.mark.parametrize("name,expected", [
    ("Shape.java", "java"),
    ("inventory.py", "python"),
    ("stubs.pyi", "python"),
    ("cart.JS", "javascript"),
    ("component.jsx", "javascript"),
    ("wallet.ts", "typescript"),
    ("notes.txt", ""),
    ("Makefile", ""),
])
def test_language_for_path(name, expected):
    assert config.language_for_path(Path(name)) == expected


def test_defaults_when_no_file():
    assert not config.CONFIG_FILE.exists()
    assert config.load_full_config() == {}
    assert config.load_analysis_config() == config.DEFAULT_ANALYSIS_CONFIG


def test_save_preserves_other_sections():
    config.CONFIG_FILE.parent.mkdir(parents=True)
    config.CONFIG_FILE.write_text('[llm]\nprovider = "ollama"\n')

    assert config.save_analysis_config(workers=8, similarity_threshold=0.5) is True

    full = config.load_full_config()
    assert full["llm"] == {"provider": "ollama"}
    analysis = config.load_analysis_config()
    assert analysis["workers"] == 8
    assert analysis["similarity_threshold"] == 0.5
    assert analysis["languages"] == config.DEFAULT_ANALYSIS_CONFIG["languages"]


def test_save_rejects_unknown_keys():
    with pytest.raises(ValueError, match="colour"):
        config.save_analysis_config(colour="blue")


def test_corrupt_file_is_ignored():
    config.CONFIG_FILE.parent.mkdir(parents=True)
    config.CONFIG_FILE.write_text("[analysis\nworkers = ")
    assert config.load_full_config() == {}


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CODECANON_WORKERS", "6")
    monkeypatch.setenv("CODECANON_SIMILARITY_THRESHOLD", "1.7")
    assert config._env_int("CODECANON_WORKERS", 4) == 6
    assert config._env_float("CODECANON_SIMILARITY_THRESHOLD", 0.7) == 1.0

    monkeypatch.setenv("CODECANON_WORKERS", "many")
    assert config._env_int("CODECANON_WORKERS", 4) == 4
    monkeypatch.delenv("CODECANON_SIMILARITY_THRESHOLD")
    assert config._env_float("CODECANON_SIMILARITY_THRESHOLD", 0.7) == 0.7
