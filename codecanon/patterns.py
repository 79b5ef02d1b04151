"""Heuristic design-pattern, anti-pattern and code-pattern detection over canonical trees."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from .models import CanonicalNode, CodePattern, NodeKind, PatternCategory

logger = logging.getLogger(__name__)


class MatchResult(NamedTuple):
    matched: bool
    confidence: float


NO_MATCH = MatchResult(False, 0.0)

Matcher = Callable[[CanonicalNode, str], MatchResult]

# Thresholds
GOD_CLASS_METHOD_LIMIT = 20
LONG_METHOD_STATEMENT_LIMIT = 30

PATTERN_CATEGORIES: Dict[str, PatternCategory] = {
    "Singleton": PatternCategory.DESIGN_PATTERN,
    "Factory": PatternCategory.DESIGN_PATTERN,
    "Observer": PatternCategory.DESIGN_PATTERN,
    "Builder": PatternCategory.DESIGN_PATTERN,
    "Strategy": PatternCategory.DESIGN_PATTERN,
    "GodClass": PatternCategory.ANTI_PATTERN,
    "LongMethod": PatternCategory.ANTI_PATTERN,
}

PATTERN_DESCRIPTIONS: Dict[str, str] = {
    "Singleton": "Ensures a class has only one instance and provides global access",
    "Factory": "Creates objects without specifying their concrete classes",
    "Observer": "Defines a one-to-many dependency between objects",
    "Builder": "Constructs complex objects step by step",
    "Strategy": "Defines a family of algorithms and makes them interchangeable",
    "NullCheck": "Checks for null values before using objects",
    "LoopPattern": "Iterates over collections or performs repetitive operations",
    "ExceptionHandling": "Handles exceptions and error conditions",
    "ResourceManagement": "Manages system resources like files or connections",
    "GodClass": "A class that knows too much or does too much",
    "LongMethod": "A method that is too long and does too many things",
}

NULL_LITERALS = frozenset({"null", "None", "undefined", "nil"})
COMPARISON_EXPRESSIONS = frozenset({"binary", "comparison_operator", "instanceof"})
NULL_GUARD_CALLS = frozenset({"requireNonNull", "isNull", "nonNull"})
LOOP_STATEMENTS = frozenset({"for", "enhanced_for", "for_in", "while", "do"})
TRY_STATEMENTS = frozenset({"try", "try_with_resources"})
RESOURCE_STATEMENTS = frozenset({"try_with_resources", "with"})


def category_for(name: str) -> PatternCategory:
    return PATTERN_CATEGORIES.get(name, PatternCategory.CODE_PATTERN)


def description_for(name: str) -> str:
    return PATTERN_DESCRIPTIONS.get(name, f"Code pattern: {name}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _type_name(value: Optional[str]) -> str:
    return (value or "").split("<", 1)[0].strip()


def _methods(node: CanonicalNode) -> List[CanonicalNode]:
    return node.children_of_kind(NodeKind.METHOD)


def _descendants(node: CanonicalNode) -> Iterator[CanonicalNode]:
    walker = node.walk()
    next(walker)
    return walker


def _statement_types(node: CanonicalNode) -> set:
    return {
        n.attribute("statementType")
        for n in _descendants(node)
        if n.kind is NodeKind.STATEMENT
    }


def _references(node: CanonicalNode, name: str) -> bool:
    return any(n.kind is NodeKind.EXPRESSION and n.name == name for n in _descendants(node))


# ---------------------------------------------------------------------------
# Design patterns
# ---------------------------------------------------------------------------

def match_singleton(node: CanonicalNode, language: str) -> MatchResult:
    """Private same-named constructor plus a static member of the class's own type."""
    if node.kind is not NodeKind.CLASS:
        return NO_MATCH
    class_name = node.name

    private_constructor = any(
        m.name == class_name and "private" in m.modifiers for m in _methods(node)
    )
    if not private_constructor:
        return NO_MATCH

    for member in node.children:
        if "static" not in member.modifiers:
            continue
        if member.kind is NodeKind.VARIABLE and (
            _type_name(member.attribute("type")) == class_name or _references(member, class_name)
        ):
            return MatchResult(True, 0.8)
        if member.kind is NodeKind.METHOD and _type_name(member.attribute("returnType")) == class_name:
            return MatchResult(True, 0.8)
    return NO_MATCH


def match_factory(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind not in (NodeKind.CLASS, NodeKind.MODULE):
        return NO_MATCH
    for method in _methods(node):
        lowered = method.name.lower()
        if "create" in lowered or "factory" in lowered:
            return MatchResult(True, 0.7)
    return NO_MATCH


def match_builder(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.CLASS:
        return NO_MATCH
    for method in _methods(node):
        if method.name == "build" or (method.name == "builder" and "static" in method.modifiers):
            return MatchResult(True, 0.75)
    return NO_MATCH


def match_observer(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.CLASS:
        return NO_MATCH
    names = [node.name.lower()] + [m.name.lower() for m in _methods(node)]
    if any("observer" in name or "listener" in name for name in names):
        return MatchResult(True, 0.6)
    return NO_MATCH


def match_strategy(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.CLASS:
        return NO_MATCH
    if "strategy" in node.name.lower() or node.attribute("typeKind") == "interface":
        return MatchResult(True, 0.6)
    return NO_MATCH


# ---------------------------------------------------------------------------
# Code patterns (method bodies)
# ---------------------------------------------------------------------------

def match_null_check(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.METHOD:
        return NO_MATCH
    for n in _descendants(node):
        if n.kind is not NodeKind.EXPRESSION:
            continue
        if n.name in NULL_GUARD_CALLS:
            return MatchResult(True, 0.9)
        if n.attribute("expressionType") in COMPARISON_EXPRESSIONS and any(
            c.attribute("literalValue") in NULL_LITERALS for c in n.children
        ):
            return MatchResult(True, 0.9)
    return NO_MATCH


def match_loop(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.METHOD:
        return NO_MATCH
    if _statement_types(node) & LOOP_STATEMENTS:
        return MatchResult(True, 0.95)
    return NO_MATCH


def match_exception_handling(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.METHOD:
        return NO_MATCH
    if _statement_types(node) & TRY_STATEMENTS:
        return MatchResult(True, 0.9)
    return NO_MATCH


def match_resource_management(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is not NodeKind.METHOD:
        return NO_MATCH
    statements = _statement_types(node)
    if statements & RESOURCE_STATEMENTS:
        return MatchResult(True, 0.8)
    if "try" in statements and _references(node, "close"):
        return MatchResult(True, 0.8)
    return NO_MATCH


# ---------------------------------------------------------------------------
# Anti-patterns
# ---------------------------------------------------------------------------

def match_god_class(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is NodeKind.CLASS and len(_methods(node)) > GOD_CLASS_METHOD_LIMIT:
        return MatchResult(True, 0.7)
    return NO_MATCH


def match_long_method(node: CanonicalNode, language: str) -> MatchResult:
    if node.kind is NodeKind.METHOD and len(node.children) > LONG_METHOD_STATEMENT_LIMIT:
        return MatchResult(True, 0.8)
    return NO_MATCH


# ---------------------------------------------------------------------------
# Registry and detector
# ---------------------------------------------------------------------------

class MatcherRegistry:
    """Named matchers, evaluated independently and in registration order."""

    def __init__(self, matchers: Optional[Dict[str, Matcher]] = None) -> None:
        self._matchers: Dict[str, Matcher] = dict(matchers or {})

    def register(self, name: str, matcher: Matcher) -> None:
        self._matchers[name] = matcher

    def unregister(self, name: str) -> Optional[Matcher]:
        return self._matchers.pop(name, None)

    def names(self) -> List[str]:
        return list(self._matchers)

    def items(self) -> List[Tuple[str, Matcher]]:
        return list(self._matchers.items())

    def __contains__(self, name: object) -> bool:
        return name in self._matchers

    def __len__(self) -> int:
        return len(self._matchers)


def default_registry() -> MatcherRegistry:
    return MatcherRegistry({
        "Singleton": match_singleton,
        "Factory": match_factory,
        "Observer": match_observer,
        "Builder": match_builder,
        "Strategy": match_strategy,
        "NullCheck": match_null_check,
        "LoopPattern": match_loop,
        "ExceptionHandling": match_exception_handling,
        "ResourceManagement": match_resource_management,
        "GodClass": match_god_class,
        "LongMethod": match_long_method,
    })


class PatternDetector:
    """Run every registered matcher on a node and report one finding per match."""

    def __init__(self, registry: Optional[MatcherRegistry] = None):
        self.registry = registry if registry is not None else default_registry()

    def detect_patterns(self, node: CanonicalNode, language: str) -> List[CodePattern]:
        findings: List[CodePattern] = []
        for name, matcher in self.registry.items():
            try:
                result = matcher(node, language)
            except Exception as exc:
                logger.warning("Matcher %s failed on %r: %s", name, node, exc)
                continue
            if not result.matched:
                continue
            findings.append(CodePattern(
                name=name,
                category=category_for(name),
                description=description_for(name),
                location=node.location,
                confidence=result.confidence,
                examples=(node.name,) if node.name else (),
            ))
        return findings

    def detect_patterns_in_tree(self, root: CanonicalNode, language: str) -> List[CodePattern]:
        """Apply :meth:`detect_patterns` to every node of *root* in pre-order."""
        findings: List[CodePattern] = []
        for node in root.walk():
            findings.extend(self.detect_patterns(node, language))
        return findings
