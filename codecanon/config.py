"""Configuration for codecanon: environment variables over an optional TOML file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import toml

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("CODECANON_HOME", str(Path.home() / ".codecanon"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_ANALYSIS_CONFIG: Dict[str, Any] = {
    "workers": 4,
    "similarity_threshold": 0.7,
    "languages": ["java", "javascript", "typescript", "python"],
}

# File extension -> language tag understood by the stock adapters
LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".java": "java",
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections), or ``{}`` when absent/unreadable."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", CONFIG_FILE, exc)
        return {}


def load_analysis_config() -> Dict[str, Any]:
    """Return the ``[analysis]`` section merged over the defaults."""
    merged = dict(DEFAULT_ANALYSIS_CONFIG)
    merged.update(load_full_config().get("analysis", {}))
    return merged


def save_analysis_config(**values: Any) -> bool:
    """Update keys of the ``[analysis]`` section, preserving other sections.

    Returns:
        True if saved successfully, False otherwise
    """
    unknown = set(values) - set(DEFAULT_ANALYSIS_CONFIG)
    if unknown:
        raise ValueError(f"Unknown analysis setting(s): {', '.join(sorted(unknown))}")
    config = load_full_config()
    config.setdefault("analysis", {}).update(values)
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", CONFIG_FILE, exc)
        return False


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return min(1.0, max(0.0, float(raw)))
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


_analysis_config = load_analysis_config()

MAX_WORKERS: int = _env_int("CODECANON_WORKERS", int(_analysis_config["workers"]))
SIMILARITY_THRESHOLD: float = _env_float(
    "CODECANON_SIMILARITY_THRESHOLD", float(_analysis_config["similarity_threshold"])
)
ENABLED_LANGUAGES: List[str] = [str(lang).lower() for lang in _analysis_config["languages"]]


def language_for_path(path: Path) -> str:
    """Infer a language tag from a file extension (``""`` when unknown)."""
    return LANGUAGE_BY_EXTENSION.get(path.suffix.lower(), "")
