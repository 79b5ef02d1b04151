"""Caller-facing facade bundling the dispatcher, pattern detector and similarity scorer."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from . import config
from .dependencies import DependencyGraph, DependencyGraphBuilder
from .dispatcher import MultiLanguageDispatcher
from .models import CanonicalNode, CodePattern, NodeKind, ParseResult
from .patterns import PatternDetector
from .similarity import SimilarityScorer
from .workers import shutdown_executor

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Everything :meth:`CodeAnalyzer.analyze_file` learns about one file."""

    path: Path
    result: ParseResult
    patterns: List[CodePattern] = field(default_factory=list)
    # "Owner.method" -> cyclomatic complexity
    complexity: Dict[str, int] = field(default_factory=dict)

    @property
    def successful(self) -> bool:
        return self.result.successful


def method_complexity(root: CanonicalNode) -> Dict[str, int]:
    """Collect ``cyclomaticComplexity`` of every method, keyed by qualified name."""
    complexity: Dict[str, int] = {}
    stack: List[Tuple[CanonicalNode, str]] = [(root, "")]
    while stack:
        node, prefix = stack.pop()
        if node.kind is NodeKind.METHOD:
            key = f"{prefix}.{node.name}" if prefix else node.name
            complexity[key] = int(node.attribute("cyclomaticComplexity", 1))
            continue
        scope = prefix
        if node.kind is NodeKind.CLASS:
            scope = f"{prefix}.{node.name}" if prefix else node.name
        stack.extend((child, scope) for child in reversed(node.children))
    return complexity


def methods_of(root: CanonicalNode) -> List[CanonicalNode]:
    return [n for n in root.walk() if n.kind is NodeKind.METHOD]


class CodeAnalyzer:
    """Parse, detect patterns, score similarity and link dependencies through one object.

    Use as a context manager (or call :meth:`close`) so the shared parse
    pool is torn down deterministically.
    """

    def __init__(
        self,
        dispatcher: Optional[MultiLanguageDispatcher] = None,
        detector: Optional[PatternDetector] = None,
        scorer: Optional[SimilarityScorer] = None,
        executor: Optional[Executor] = None,
    ):
        self.dispatcher = dispatcher or MultiLanguageDispatcher.with_defaults(executor)
        self.detector = detector or PatternDetector()
        self.scorer = scorer or SimilarityScorer()
        self.dependencies = DependencyGraphBuilder(executor)
        self._owns_pool = executor is None

    # -- parsing ---------------------------------------------------------

    def parse(self, source_code: str, language: str, file_path: str) -> "Future[ParseResult]":
        return self.dispatcher.parse(source_code, language, file_path)

    def incremental_parse(
        self,
        existing_tree: Optional[CanonicalNode],
        changed_text: str,
        language: str,
    ) -> "Future[ParseResult]":
        return self.dispatcher.incremental_parse(existing_tree, changed_text, language)

    def validate_syntax(self, source_code: str, language: str) -> "Future[bool]":
        return self.dispatcher.validate_syntax(source_code, language)

    def supports_language(self, language: str) -> bool:
        return self.dispatcher.supports_language(language)

    def supported_languages(self) -> List[str]:
        return self.dispatcher.supported_languages()

    # -- analysis --------------------------------------------------------

    def detect_patterns(self, node: CanonicalNode, language: str) -> List[CodePattern]:
        return self.detector.detect_patterns(node, language)

    def similarity(self, a: CanonicalNode, b: CanonicalNode) -> float:
        return self.scorer.similarity(a, b)

    def find_similar(
        self,
        target: CanonicalNode,
        corpus: Sequence[CanonicalNode],
        threshold: Optional[float] = None,
    ) -> List[Tuple[CanonicalNode, float]]:
        if threshold is None:
            threshold = config.SIMILARITY_THRESHOLD
        return self.scorer.find_similar(target, corpus, threshold)

    def build_dependency_graph(self, roots: Sequence[CanonicalNode]) -> "Future[DependencyGraph]":
        return self.dependencies.build_async(roots)

    def analyze_file(self, path: Path, language: Optional[str] = None) -> AnalysisReport:
        """Parse *path* and run pattern detection over the whole tree."""
        path = Path(path)
        result = self.dispatcher.parse_files([path], language)[0].result()
        report = AnalysisReport(path=path, result=result)
        if not result.successful or result.root is None:
            logger.info("Skipping analysis of %s: parse failed with %d error(s)", path, len(result.errors))
            return report
        report.patterns = self.detector.detect_patterns_in_tree(result.root, result.language)
        report.complexity = method_complexity(result.root)
        return report

    # -- lifecycle -------------------------------------------------------

    def close(self) -> None:
        if self._owns_pool:
            shutdown_executor()

    def __enter__(self) -> "CodeAnalyzer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
