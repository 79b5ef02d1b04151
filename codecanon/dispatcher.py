"""Routes parse requests to the adapter registered for a language tag."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .adapter import IncrementalFidelity, LanguageAdapter
from .java_adapter import JavaAdapter
from .javascript_adapter import JavaScriptAdapter
from .models import CanonicalNode, ParseError, ParseResult, SourceLocation
from .python_adapter import PythonAdapter
from .workers import completed

logger = logging.getLogger(__name__)


def default_adapters(executor: Optional[Executor] = None) -> List[LanguageAdapter]:
    """The stock Java, Python and JavaScript/TypeScript adapters."""
    return [
        JavaAdapter(executor),
        PythonAdapter(executor),
        JavaScriptAdapter(executor),
    ]


class MultiLanguageDispatcher(LanguageAdapter):
    """A :class:`LanguageAdapter` that delegates by language tag.

    Tags are case-insensitive. Registration may happen at any time, also
    while parses are in flight; a request sees the adapter registered when
    it was dispatched.
    """

    def __init__(self, adapters: Optional[Iterable[LanguageAdapter]] = None) -> None:
        self._adapters: Dict[str, LanguageAdapter] = {}
        self._lock = threading.Lock()
        for adapter in adapters if adapters is not None else default_adapters():
            for language in adapter.supported_languages():
                self.add_adapter(language, adapter)

    @classmethod
    def with_defaults(cls, executor: Optional[Executor] = None) -> "MultiLanguageDispatcher":
        adapters = default_adapters(executor)
        enabled = set(config.ENABLED_LANGUAGES)
        dispatcher = cls(adapters=[])
        for adapter in adapters:
            for language in adapter.supported_languages():
                if language in enabled:
                    dispatcher.add_adapter(language, adapter)
        return dispatcher

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_adapter(self, language: str, adapter: LanguageAdapter) -> None:
        """Register *adapter* for *language*, replacing any previous one."""
        tag = language.lower()
        with self._lock:
            previous = self._adapters.get(tag)
            self._adapters = {**self._adapters, tag: adapter}
        if previous is not None and previous is not adapter:
            logger.info("Replaced adapter for %s: %s -> %s", tag, type(previous).__name__, type(adapter).__name__)
        else:
            logger.debug("Registered %s for %s", type(adapter).__name__, tag)

    def remove_adapter(self, language: str) -> Optional[LanguageAdapter]:
        tag = language.lower()
        with self._lock:
            adapters = dict(self._adapters)
            removed = adapters.pop(tag, None)
            self._adapters = adapters
        if removed is not None:
            logger.debug("Removed adapter for %s", tag)
        return removed

    def adapter_for(self, language: str) -> Optional[LanguageAdapter]:
        if not language:
            return None
        return self._adapters.get(language.lower())

    def supports_language(self, language: str) -> bool:
        return self.adapter_for(language) is not None

    def supported_languages(self) -> List[str]:
        return sorted(self._adapters)

    def incremental_fidelity(self, language: str) -> Optional[IncrementalFidelity]:  # type: ignore[override]
        adapter = self.adapter_for(language)
        return adapter.incremental_fidelity(language) if adapter is not None else None

    def statistics(self) -> Dict[str, str]:
        """Map each registered tag to the type name of its adapter."""
        return {tag: type(adapter).__name__ for tag, adapter in sorted(self._adapters.items())}

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def parse(self, source_code: str, language: str, file_path: str) -> "Future[ParseResult]":
        adapter = self.adapter_for(language)
        if adapter is None:
            logger.warning("No adapter registered for language: %s", language)
            return completed(ParseResult.failure(
                language, file_path,
                [ParseError(f"Unsupported language: {language}", SourceLocation.at(file_path, 1, 1))],
            ))
        future = adapter.parse(source_code, language, file_path)
        future.add_done_callback(lambda f: _log_outcome(f, language, file_path))
        return future

    def incremental_parse(
        self,
        existing_tree: Optional[CanonicalNode],
        changed_text: str,
        language: str,
    ) -> "Future[ParseResult]":
        adapter = self.adapter_for(language)
        if adapter is None:
            logger.warning("No adapter registered for incremental parsing of: %s", language)
            file_path = existing_tree.location.file_path if existing_tree is not None else "unknown"
            return completed(ParseResult.failure(
                language, file_path,
                [ParseError(
                    f"Unsupported language for incremental parsing: {language}",
                    SourceLocation.at(file_path, 1, 1),
                )],
            ))
        return adapter.incremental_parse(existing_tree, changed_text, language)

    def validate_syntax(self, source_code: str, language: str) -> "Future[bool]":
        adapter = self.adapter_for(language)
        if adapter is None:
            return completed(False)
        return adapter.validate_syntax(source_code, language)

    def parse_many(self, requests: Iterable[Tuple[str, str, str]]) -> List["Future[ParseResult]"]:
        """Dispatch ``(source, language, file_path)`` triples at once; futures come back in order."""
        return [self.parse(source, language, file_path) for source, language, file_path in requests]

    def parse_files(self, paths: Sequence[Path], language: Optional[str] = None) -> List["Future[ParseResult]"]:
        """Read and dispatch *paths*; unreadable files resolve to failures."""
        futures: List[Future] = []
        for path in paths:
            lang = language or config.language_for_path(path) or path.suffix.lstrip(".")
            try:
                source = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Could not read %s: %s", path, exc)
                futures.append(completed(ParseResult.failure(
                    lang, str(path),
                    [ParseError(f"Could not read file: {exc}", SourceLocation.at(str(path), 1, 1), code="io-error")],
                )))
                continue
            futures.append(self.parse(source, lang, str(path)))
        return futures


def _log_outcome(future: "Future[ParseResult]", language: str, file_path: str) -> None:
    if future.cancelled():
        logger.debug("Parse of %s cancelled", file_path)
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Adapter for %s raised while parsing %s: %s", language, file_path, exc)
        return
    result = future.result()
    if result.successful:
        logger.debug("Parsed %s as %s in %.1fms", file_path, language, result.elapsed_ms)
    else:
        logger.debug("Parse of %s as %s failed with %d error(s)", file_path, language, len(result.errors))
