"""Structural, lexical and semantic similarity between canonical nodes.

Scores are advisory: any failure while scoring is logged and reported as
``0.0`` so one bad node never aborts a batch comparison.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .models import CanonicalNode, NodeKind

logger = logging.getLogger(__name__)

STRUCTURAL_WEIGHT = 0.4
LEXICAL_WEIGHT = 0.3
SEMANTIC_WEIGHT = 0.3
CROSS_TYPE_PENALTY = 0.5
UNKNOWN_TYPE_SCORE = 0.5

LEXICAL_KINDS = frozenset({NodeKind.CLASS, NodeKind.METHOD, NodeKind.VARIABLE})

_TOKEN_SPLIT = re.compile(r"\W+")


def _ratio(a: int, b: int) -> float:
    """``1 - |a-b| / max(a,b)``, 1.0 when both are zero."""
    if a == 0 and b == 0:
        return 1.0
    return 1.0 - abs(a - b) / max(a, b)


def tokenize(text: str) -> Set[str]:
    return {token for token in _TOKEN_SPLIT.split(text.lower()) if token}


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    if not set_a and not set_b:
        return 1.0
    return len(set_a & set_b) / len(set_a | set_b)


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit insert/delete/substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j], current[j - 1], previous[j - 1]))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a.lower(), b.lower()) / longest


def _known_type(value: Optional[str]) -> Optional[str]:
    if not value or value == "unknown":
        return None
    return value


def _type_match(a: Optional[str], b: Optional[str]) -> float:
    a, b = _known_type(a), _known_type(b)
    if a is None or b is None:
        return UNKNOWN_TYPE_SCORE
    return 1.0 if a == b else 0.0


class SimilarityScorer:
    """Weighted similarity between two canonical nodes, always within [0, 1]."""

    def similarity(self, a: CanonicalNode, b: CanonicalNode) -> float:
        try:
            if a is b or a.structurally_equal(b):
                return 1.0
            if a.kind is not b.kind:
                return self._cross_type(a, b)

            structural = self.structural(a, b)
            lexical = self.lexical(a, b)
            semantic = self.semantic(a, b)
            overall = (
                structural * STRUCTURAL_WEIGHT
                + lexical * LEXICAL_WEIGHT
                + semantic * SEMANTIC_WEIGHT
            )
            logger.debug(
                "Similarity %s/%s: structural=%.3f lexical=%.3f semantic=%.3f overall=%.3f",
                a.kind.value, b.kind.value, structural, lexical, semantic, overall,
            )
            return min(1.0, max(0.0, overall))
        except Exception as exc:
            logger.error("Failed to calculate similarity: %s", exc)
            return 0.0

    def find_similar(
        self,
        target: CanonicalNode,
        corpus: Sequence[CanonicalNode],
        threshold: float,
    ) -> List[Tuple[CanonicalNode, float]]:
        """Corpus members scoring at least *threshold*, best first.

        *target* itself (by identity) is skipped; equal scores keep corpus order.
        """
        scored = []
        for candidate in corpus:
            if candidate is target:
                continue
            score = self.similarity(target, candidate)
            if score >= threshold:
                scored.append((candidate, score))
        return sorted(scored, key=lambda pair: pair[1], reverse=True)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def structural(self, a: CanonicalNode, b: CanonicalNode) -> float:
        depth = _ratio(a.depth(), b.depth())
        children = _ratio(len(a.children), len(b.children))
        shape = self._shape(a, b)
        return (depth + children + shape) / 3.0

    @staticmethod
    def _shape(a: CanonicalNode, b: CanonicalNode) -> float:
        kinds_a = Counter(n.kind for n in a.walk())
        kinds_b = Counter(n.kind for n in b.walk())
        union = set(kinds_a) | set(kinds_b)
        if not union:
            return 1.0
        return sum(_ratio(kinds_a[k], kinds_b[k]) for k in union) / len(union)

    def lexical(self, a: CanonicalNode, b: CanonicalNode) -> float:
        return jaccard(tokenize(self.text_content(a)), tokenize(self.text_content(b)))

    @staticmethod
    def text_content(node: CanonicalNode) -> str:
        """Names of the class, method and variable declarations in the subtree.

        Statement and expression names (``if``, ``return``, ``binary``) are left out.
        """
        return " ".join(n.name for n in node.walk() if n.name and n.kind in LEXICAL_KINDS)

    def semantic(self, a: CanonicalNode, b: CanonicalNode) -> float:
        if a.kind is NodeKind.CLASS:
            methods = jaccard(
                (m.name for m in a.children_of_kind(NodeKind.METHOD)),
                (m.name for m in b.children_of_kind(NodeKind.METHOD)),
            )
            fields = jaccard(
                (v.name for v in a.children_of_kind(NodeKind.VARIABLE)),
                (v.name for v in b.children_of_kind(NodeKind.VARIABLE)),
            )
            return (name_similarity(a.name, b.name) + methods + fields) / 3.0
        if a.kind is NodeKind.METHOD:
            params = jaccard(
                (p.get("type", "") for p in a.pair_list("parameters")),
                (p.get("type", "") for p in b.pair_list("parameters")),
            )
            returns = _type_match(a.attribute("returnType"), b.attribute("returnType"))
            return (name_similarity(a.name, b.name) + params + returns) / 3.0
        if a.kind is NodeKind.VARIABLE:
            declared = _type_match(a.attribute("type"), b.attribute("type"))
            return (name_similarity(a.name, b.name) + declared) / 2.0
        return jaccard(tokenize(a.render()), tokenize(b.render()))

    def _cross_type(self, a: CanonicalNode, b: CanonicalNode) -> float:
        children = _ratio(len(a.children), len(b.children))
        return (self.lexical(a, b) + children) / 2.0 * CROSS_TYPE_PENALTY
