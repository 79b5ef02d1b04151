"""codecanon: canonical syntax trees for Java, Python and JavaScript/TypeScript."""

from .adapter import IncrementalFidelity, LanguageAdapter, TreeSitterAdapter
from .analyzer import AnalysisReport, CodeAnalyzer
from .dependencies import DependencyGraph, DependencyGraphBuilder, Edge
from .dispatcher import MultiLanguageDispatcher, default_adapters
from .models import (
    CanonicalNode,
    CodePattern,
    NodeKind,
    ParseError,
    ParseResult,
    ParseWarning,
    PatternCategory,
    SourceLocation,
)
from .patterns import MatcherRegistry, MatchResult, PatternDetector
from .similarity import SimilarityScorer

__version__ = "0.1.0"

__all__ = [
    "AnalysisReport",
    "CanonicalNode",
    "CodeAnalyzer",
    "CodePattern",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "Edge",
    "IncrementalFidelity",
    "LanguageAdapter",
    "MatchResult",
    "MatcherRegistry",
    "MultiLanguageDispatcher",
    "NodeKind",
    "ParseError",
    "ParseResult",
    "ParseWarning",
    "PatternCategory",
    "PatternDetector",
    "SimilarityScorer",
    "SourceLocation",
    "TreeSitterAdapter",
    "default_adapters",
]
