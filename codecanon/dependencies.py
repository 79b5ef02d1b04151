"""Name-level dependency graph built from canonical trees.

Declarations (modules, classes, methods, variables) are the graph nodes.
Edges point at what a declaration names: imports, supertypes, declared
types, thrown exceptions, called functions and accessed members.  A target
that matches a declaration in the same graph is resolved to that
declaration's node id; the rest stay symbolic (``type:Widget``,
``call:print``).
"""

from __future__ import annotations

import logging
import re
from collections import deque
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .models import CanonicalNode, NodeKind
from .workers import get_executor

logger = logging.getLogger(__name__)

DECLARATION_KINDS = frozenset({NodeKind.MODULE, NodeKind.CLASS, NodeKind.METHOD, NodeKind.VARIABLE})

# Built-in type names that never produce a dependency
PRIMITIVE_TYPES = frozenset({
    # Java
    "int", "long", "short", "byte", "float", "double", "boolean", "char", "void",
    "String", "Object",
    # Python
    "str", "bool", "bytes", "None", "object",
    # JavaScript / TypeScript
    "number", "string", "any", "unknown", "undefined", "null", "never", "bigint", "symbol",
})

# edge_type -> prefix of the symbolic target
TARGET_PREFIXES: Dict[str, str] = {
    "imports": "import",
    "extends": "class",
    "implements": "interface",
    "uses_type": "type",
    "throws": "exception",
    "calls": "call",
    "accesses": "field",
}

# Edge types resolved against declarations of these kinds, first match wins
_RESOLVE_KINDS: Dict[str, Tuple[NodeKind, ...]] = {
    "extends": (NodeKind.CLASS,),
    "implements": (NodeKind.CLASS,),
    "uses_type": (NodeKind.CLASS,),
    "throws": (NodeKind.CLASS,),
    # Python and JavaScript construct objects by calling the class
    "calls": (NodeKind.METHOD, NodeKind.CLASS),
}

_TYPE_CUT = re.compile(r"[<\[(|&]")


@dataclass
class Edge:
    src: str
    dst: str
    edge_type: str


def node_id(node: CanonicalNode) -> str:
    """``Kind:name@location``, unique per declaration within one graph."""
    return f"{node.kind.value}:{node.name or 'anonymous'}@{node.location}"


def type_name(text: Optional[str]) -> str:
    """``List<Shape>`` -> ``List``; ``String...`` -> ``String``; ``"Node"`` -> ``Node``."""
    name = _TYPE_CUT.split((text or "").strip().strip("'\""), 1)[0].strip()
    return name.rstrip(".?").strip()


def _is_dependency_type(name: str) -> bool:
    return bool(name) and name not in PRIMITIVE_TYPES


@dataclass
class DependencyGraph:
    """Declarations keyed by :func:`node_id` and the edges between them."""

    nodes: Dict[str, CanonicalNode] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)

    def __post_init__(self) -> None:
        # src -> ordered set of dst
        self._adjacency: Dict[str, Dict[str, None]] = {nid: {} for nid in self.nodes}
        for edge in self.edges:
            self._adjacency.setdefault(edge.src, {})[edge.dst] = None

    def node_ids(self) -> List[str]:
        return list(self.nodes)

    def node(self, node_id: str) -> Optional[CanonicalNode]:
        return self.nodes.get(node_id)

    def find(self, name: str, kind: Optional[NodeKind] = None) -> List[str]:
        """Ids of declarations called *name*, in registration order."""
        return [
            nid for nid, node in self.nodes.items()
            if node.name == name and (kind is None or node.kind is kind)
        ]

    def dependencies(self, node_id: str) -> List[str]:
        return list(self._adjacency.get(node_id, ()))

    def dependents(self, node_id: str) -> List[str]:
        return [src for src, targets in self._adjacency.items() if node_id in targets]

    def edges_from(self, node_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.src == node_id]

    def has_path(self, src: str, dst: str) -> bool:
        if src == dst:
            return True
        seen = {src}
        queue = deque([src])
        while queue:
            current = queue.popleft()
            for nxt in self._adjacency.get(current, ()):
                if nxt == dst:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return False

    def circular_dependencies(self) -> List[List[str]]:
        """Every cycle closed by a back edge during a depth-first sweep."""
        cycles: List[List[str]] = []
        visited: Set[str] = set()
        for start in self.nodes:
            if start in visited:
                continue
            visited.add(start)
            path = [start]
            on_path = {start}
            pending = [iter(self._adjacency.get(start, ()))]
            while pending:
                nxt = next(pending[-1], None)
                if nxt is None:
                    pending.pop()
                    on_path.discard(path.pop())
                    continue
                if nxt in on_path:
                    cycles.append(path[path.index(nxt):])
                elif nxt not in visited:
                    visited.add(nxt)
                    path.append(nxt)
                    on_path.add(nxt)
                    pending.append(iter(self._adjacency.get(nxt, ())))
        return cycles

    def statistics(self) -> Dict[str, Any]:
        counts = [len(targets) for targets in self._adjacency.values()]
        return {
            "node_count": len(self.nodes),
            "edge_count": len(self.edges),
            "average_dependencies": sum(counts) / len(counts) if counts else 0.0,
            "max_dependencies": max(counts, default=0),
            "circular_dependencies": len(self.circular_dependencies()),
        }


class DependencyGraphBuilder:
    """Collect declarations from canonical trees and link what they reference."""

    def __init__(self, executor: Optional[Executor] = None):
        self._executor = executor

    def build(self, roots: Iterable[CanonicalNode]) -> DependencyGraph:
        nodes: Dict[str, CanonicalNode] = {}
        edges: List[Edge] = []
        for root in roots:
            for node in root.walk():
                if node.kind not in DECLARATION_KINDS:
                    continue
                nid = node_id(node)
                if nid in nodes:
                    continue
                nodes[nid] = node
                edges.extend(
                    Edge(nid, f"{TARGET_PREFIXES[edge_type]}:{name}", edge_type)
                    for edge_type, name in _references(node)
                )

        graph = DependencyGraph(nodes, _resolve_targets(nodes, edges))
        logger.debug("Built dependency graph with %d nodes and %d edges", len(nodes), len(graph.edges))
        return graph

    def build_async(self, roots: Iterable[CanonicalNode]) -> "Future[DependencyGraph]":
        return (self._executor or get_executor()).submit(self.build, list(roots))


def _references(node: CanonicalNode) -> List[Tuple[str, str]]:
    """(edge_type, target name) pairs named by one declaration, de-duplicated in order."""
    found: Dict[Tuple[str, str], None] = {}

    def add(edge_type: str, name: str) -> None:
        if name:
            found[(edge_type, name)] = None

    def add_type(edge_type: str, text: Optional[str]) -> None:
        name = type_name(text)
        if _is_dependency_type(name):
            add(edge_type, name)

    if node.kind is NodeKind.MODULE:
        for name in node.string_list("imports"):
            add("imports", name)

    elif node.kind is NodeKind.CLASS:
        superclass = node.attribute("superclass")
        add_type("extends", superclass)
        for base in node.string_list("supertypes"):
            if base != superclass:
                add_type("extends", base)
        for interface in node.string_list("interfaces"):
            add_type("implements", interface)
        for child in node.children_of_kind(NodeKind.VARIABLE):
            add_type("uses_type", child.attribute("type"))
        for child in node.children_of_kind(NodeKind.METHOD):
            _signature_types(child, add_type)

    elif node.kind is NodeKind.METHOD:
        _signature_types(node, add_type)
        for exception in node.string_list("throws"):
            add_type("throws", exception)
        for edge_type, name in _body_references(node):
            add(edge_type, name)

    return list(found)


def _signature_types(method: CanonicalNode, add_type) -> None:
    add_type("uses_type", method.attribute("returnType"))
    for param in method.pair_list("parameters"):
        add_type("uses_type", param.get("type"))


def _body_references(method: CanonicalNode) -> Iterable[Tuple[str, str]]:
    """Calls and member accesses in a method body; nested declarations are skipped."""
    stack: List[Tuple[CanonicalNode, Optional[CanonicalNode]]] = [
        (child, method) for child in reversed(method.children)
    ]
    while stack:
        node, parent = stack.pop()
        if node.kind in DECLARATION_KINDS:
            continue
        callee = node.attribute("callee")
        if callee:
            yield "calls", type_name(callee) or callee
        member = node.attribute("member")
        # The function part of ``obj.save()`` is reported as the call only
        if member and not (parent is not None and parent.attribute("callee") == member):
            yield "accesses", member
        stack.extend((child, node) for child in reversed(node.children))


def _resolve_targets(nodes: Dict[str, CanonicalNode], edges: List[Edge]) -> List[Edge]:
    """Point symbolic targets at matching declarations; drop self references."""
    by_name: Dict[Tuple[NodeKind, str], str] = {}
    for nid, node in nodes.items():
        by_name.setdefault((node.kind, node.name), nid)

    resolved: Dict[Tuple[str, str, str], Edge] = {}
    for edge in edges:
        dst = edge.dst
        name = dst.split(":", 1)[1].rsplit(".", 1)[-1]
        for kind in _RESOLVE_KINDS.get(edge.edge_type, ()):
            if (kind, name) in by_name:
                dst = by_name[(kind, name)]
                break
        if dst == edge.src:
            continue
        resolved.setdefault((edge.src, dst, edge.edge_type), Edge(edge.src, dst, edge.edge_type))
    return list(resolved.values())
