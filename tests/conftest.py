"""Pytest configuration and fixtures for codecanon tests."""

import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Generator

import pytest

from codecanon.dispatcher import MultiLanguageDispatcher, default_adapters
from codecanon.models import NodeKind, ParseResult

SAMPLE_DIR = Path(__file__).parent / "fixtures" / "sample_code"


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Keep every test away from the user's ~/.codecanon/config.toml."""
    monkeypatch.setattr("codecanon.config.BASE_DIR", tmp_path / ".codecanon")
    monkeypatch.setattr("codecanon.config.CONFIG_FILE", tmp_path / ".codecanon" / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor, None, None]:
    """A private parse pool, torn down after the test."""
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="codecanon-test")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def dispatcher(executor: ThreadPoolExecutor) -> MultiLanguageDispatcher:
    return MultiLanguageDispatcher(default_adapters(executor))


@pytest.fixture
def parse(dispatcher: MultiLanguageDispatcher) -> Callable[..., ParseResult]:
    """Parse source synchronously through the stock dispatcher."""

    def _parse(source: str, language: str, file_path: str = "sample") -> ParseResult:
        return dispatcher.parse(source, language, file_path).result(timeout=30)

    return _parse


@pytest.fixture
def sample_code_path() -> Path:
    """Directory with one sample source file per supported language."""
    return SAMPLE_DIR


@pytest.fixture
def sample_java_code() -> str:
    return (SAMPLE_DIR / "ShapeRegistry.java").read_text()


@pytest.fixture
def sample_python_code() -> str:
    return (SAMPLE_DIR / "inventory.py").read_text()


@pytest.fixture
def sample_javascript_code() -> str:
    return (SAMPLE_DIR / "cart.js").read_text()


@pytest.fixture
def sample_typescript_code() -> str:
    return (SAMPLE_DIR / "wallet.ts").read_text()


def member(node, name, kind=None):
    """First direct child called *name* (optionally of *kind*); fails the test when absent."""
    for child in node.children:
        if child.name == name and (kind is None or child.kind is kind):
            return child
    raise AssertionError(f"{node!r} has no child {name!r}")


def method(node, name):
    return member(node, name, NodeKind.METHOD)
