"""Canonical, language-agnostic syntax tree and the result types built on it."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

# ---------------------------------------------------------------------------
# Source locations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceLocation:
    """A 1-based point or range inside a source file."""

    file_path: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def __post_init__(self) -> None:
        if min(self.start_line, self.start_column, self.end_line, self.end_column) < 1:
            raise ValueError("Line and column numbers are 1-based")
        if (self.end_line, self.end_column) < (self.start_line, self.start_column):
            raise ValueError("Location end precedes its start")

    @classmethod
    def at(cls, file_path: str, line: int = 1, column: int = 1) -> "SourceLocation":
        return cls(file_path, line, column, line, column)

    @classmethod
    def range(
        cls,
        file_path: str,
        start_line: int,
        start_column: int,
        end_line: int,
        end_column: int,
    ) -> "SourceLocation":
        return cls(file_path, start_line, start_column, end_line, end_column)

    @property
    def is_point(self) -> bool:
        return (self.start_line, self.start_column) == (self.end_line, self.end_column)

    @property
    def is_multi_line(self) -> bool:
        return self.end_line > self.start_line

    @property
    def line_span(self) -> int:
        return self.end_line - self.start_line + 1

    def contains(self, other: "SourceLocation") -> bool:
        if self.file_path != other.file_path:
            return False
        return (
            (self.start_line, self.start_column) <= (other.start_line, other.start_column)
            and (other.end_line, other.end_column) <= (self.end_line, self.end_column)
        )

    def overlaps(self, other: "SourceLocation") -> bool:
        if self.file_path != other.file_path:
            return False
        return not (
            (self.end_line, self.end_column) < (other.start_line, other.start_column)
            or (other.end_line, other.end_column) < (self.start_line, self.start_column)
        )

    def span_to(self, other: "SourceLocation") -> "SourceLocation":
        """Return the smallest location covering both *self* and *other*."""
        if self.file_path != other.file_path:
            raise ValueError("Cannot span locations in different files")
        start = min((self.start_line, self.start_column), (other.start_line, other.start_column))
        end = max((self.end_line, self.end_column), (other.end_line, other.end_column))
        return SourceLocation(self.file_path, start[0], start[1], end[0], end[1])

    def __str__(self) -> str:
        if self.is_point:
            return f"{self.file_path}:{self.start_line}:{self.start_column}"
        return (
            f"{self.file_path}:{self.start_line}:{self.start_column}"
            f"-{self.end_line}:{self.end_column}"
        )


# ---------------------------------------------------------------------------
# Canonical nodes
# ---------------------------------------------------------------------------


class NodeKind(str, Enum):
    MODULE = "Module"
    CLASS = "Class"
    METHOD = "Method"
    VARIABLE = "Variable"
    STATEMENT = "Statement"
    EXPRESSION = "Expression"
    OTHER = "Other"


# Closed set of attribute value shapes. Lists are stored as tuples and maps
# as read-only proxies so the tree never aliases parser state.
AttributeValue = Union[str, bool, int, Tuple[str, ...], Tuple[Mapping[str, str], ...]]
AttributeInput = Union[str, bool, int, Iterable[str], Iterable[Mapping[str, str]]]


def _freeze_attribute(key: str, value: Any) -> AttributeValue:
    if isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, (list, tuple)):
        items = list(value)
        if all(isinstance(item, str) for item in items):
            return tuple(items)
        if all(isinstance(item, MappingABC) for item in items):
            frozen = []
            for item in items:
                if not all(isinstance(k, str) and isinstance(v, str) for k, v in item.items()):
                    raise TypeError(f"Attribute '{key}' maps must be str -> str")
                frozen.append(MappingProxyType(dict(item)))
            return tuple(frozen)
    raise TypeError(
        f"Attribute '{key}' has unsupported value type {type(value).__name__}; "
        "expected str, bool, int, list of str or list of str->str maps"
    )


def _freeze_attributes(attributes: Optional[Mapping[str, AttributeInput]]) -> Mapping[str, AttributeValue]:
    frozen: Dict[str, AttributeValue] = {}
    for key, value in (attributes or {}).items():
        if not isinstance(key, str):
            raise TypeError("Attribute keys must be strings")
        frozen[key] = _freeze_attribute(key, value)
    return MappingProxyType(frozen)


@dataclass(frozen=True, eq=False)
class CanonicalNode:
    """One node of the canonical tree.

    Nodes are immutable and compared by identity. Use
    :meth:`structurally_equal` when content equality is wanted.
    """

    kind: NodeKind
    name: str
    location: SourceLocation
    children: Tuple["CanonicalNode", ...] = ()
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        children = tuple(self.children)
        for child in children:
            if not isinstance(child, CanonicalNode):
                raise TypeError(f"Child of {self.kind.value} '{self.name}' is not a CanonicalNode")
        if len({id(child) for child in children}) != len(children):
            raise ValueError(f"{self.kind.value} '{self.name}' lists the same child twice")
        for child in children:
            if child._owned:
                raise ValueError(
                    f"{child.kind.value} '{child.name}' already belongs to another node"
                )
        object.__setattr__(self, "children", children)
        object.__setattr__(self, "attributes", _freeze_attributes(self.attributes))
        object.__setattr__(self, "_owned", False)
        for child in children:
            object.__setattr__(child, "_owned", True)

    # -- attribute access -------------------------------------------------

    def attribute(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def has_attribute(self, key: str) -> bool:
        return key in self.attributes

    def string_list(self, key: str) -> List[str]:
        value = self.attributes.get(key, ())
        return [item for item in value if isinstance(item, str)] if isinstance(value, tuple) else []

    def pair_list(self, key: str) -> List[Dict[str, str]]:
        value = self.attributes.get(key, ())
        if not isinstance(value, tuple):
            return []
        return [dict(item) for item in value if isinstance(item, MappingABC)]

    @property
    def modifiers(self) -> List[str]:
        return self.string_list("modifiers")

    # -- navigation -------------------------------------------------------

    def children_of_kind(self, kind: NodeKind) -> List["CanonicalNode"]:
        return [child for child in self.children if child.kind is kind]

    def find_child(self, name: str) -> Optional["CanonicalNode"]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def walk(self) -> Iterator["CanonicalNode"]:
        """Yield this node and every descendant in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def depth(self) -> int:
        deepest = 0
        stack = [(self, 1)]
        while stack:
            node, level = stack.pop()
            if level > deepest:
                deepest = level
            stack.extend((child, level + 1) for child in node.children)
        return deepest

    def node_count(self) -> int:
        return sum(1 for _ in self.walk())

    # -- derivation -------------------------------------------------------

    def with_children(self, children: Iterable["CanonicalNode"]) -> "CanonicalNode":
        adopted = tuple(_clone(c) if c._owned else c for c in children)
        return CanonicalNode(self.kind, self.name, self.location, adopted, _thaw(self.attributes))

    def with_attributes(self, **updates: AttributeInput) -> "CanonicalNode":
        attributes: Dict[str, Any] = _thaw(self.attributes)
        attributes.update(updates)
        return CanonicalNode(
            self.kind, self.name, self.location, tuple(_clone(c) for c in self.children), attributes,
        )

    def structurally_equal(self, other: "CanonicalNode") -> bool:
        """Compare kind, name, location, attributes and children of both subtrees."""
        pairs: List[Tuple[CanonicalNode, Any]] = [(self, other)]
        while pairs:
            a, b = pairs.pop()
            if a is b:
                continue
            if not isinstance(b, CanonicalNode):
                return False
            if (
                a.kind is not b.kind
                or a.name != b.name
                or a.location != b.location
                or dict(a.attributes) != dict(b.attributes)
                or len(a.children) != len(b.children)
            ):
                return False
            pairs.extend(zip(a.children, b.children))
        return True

    def render(self) -> str:
        """One-line textual form: kind, name and attributes (no children)."""
        parts = [self.kind.value, self.name or "anonymous"]
        for key in sorted(self.attributes):
            value = self.attributes[key]
            if isinstance(value, tuple):
                if value and isinstance(value[0], MappingABC):
                    rendered = ", ".join(
                        " ".join(f"{v}" for v in item.values()) for item in value
                    )
                else:
                    rendered = ", ".join(value)
                parts.append(f"{key}=({rendered})")
            else:
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"CanonicalNode({self.kind.value}, name={self.name!r}, "
            f"location={self.location}, children={len(self.children)})"
        )


def _thaw(attributes: Mapping[str, AttributeValue]) -> Dict[str, Any]:
    thawed: Dict[str, Any] = {}
    for key, value in attributes.items():
        if isinstance(value, tuple):
            thawed[key] = [dict(v) if isinstance(v, MappingABC) else v for v in value]
        else:
            thawed[key] = value
    return thawed


def _clone(node: CanonicalNode) -> CanonicalNode:
    """Deep copy of *node* whose nodes are all unowned until adopted."""
    frames: List[Tuple[CanonicalNode, List[CanonicalNode]]] = [(node, [])]
    while True:
        original, copies = frames[-1]
        if len(copies) < len(original.children):
            frames.append((original.children[len(copies)], []))
            continue
        frames.pop()
        copy = CanonicalNode(
            original.kind, original.name, original.location, tuple(copies), _thaw(original.attributes),
        )
        if not frames:
            return copy
        frames[-1][1].append(copy)


def _make(kind: NodeKind):
    def factory(
        name: str,
        location: SourceLocation,
        children: Iterable[CanonicalNode] = (),
        attributes: Optional[Mapping[str, AttributeInput]] = None,
    ) -> CanonicalNode:
        return CanonicalNode(kind, name or "", location, tuple(children), attributes or {})

    factory.__name__ = f"{kind.name.lower()}_node"
    factory.__doc__ = f"Build a ``{kind.value}`` node."
    return factory


module_node = _make(NodeKind.MODULE)
class_node = _make(NodeKind.CLASS)
method_node = _make(NodeKind.METHOD)
variable_node = _make(NodeKind.VARIABLE)
statement_node = _make(NodeKind.STATEMENT)
expression_node = _make(NodeKind.EXPRESSION)
other_node = _make(NodeKind.OTHER)


# ---------------------------------------------------------------------------
# Diagnostics and parse results
# ---------------------------------------------------------------------------


class ErrorSeverity(str, Enum):
    ERROR = "error"
    FATAL = "fatal"


class WarningSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class ParseError:
    message: str
    location: SourceLocation
    severity: ErrorSeverity = ErrorSeverity.ERROR
    code: Optional[str] = None
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.severity.value} at {self.location}: {self.message}"
        if self.code:
            text += f" [{self.code}]"
        if self.suggestion:
            text += f" (suggestion: {self.suggestion})"
        return text


@dataclass(frozen=True)
class ParseWarning:
    message: str
    location: SourceLocation
    severity: WarningSeverity = WarningSeverity.WARNING
    code: Optional[str] = None
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        text = f"{self.severity.value} at {self.location}: {self.message}"
        if self.code:
            text += f" [{self.code}]"
        if self.suggestion:
            text += f" (suggestion: {self.suggestion})"
        return text


@dataclass(frozen=True)
class ParseMetrics:
    node_count: int = 0
    max_depth: int = 0
    error_count: int = 0
    warning_count: int = 0

    @property
    def total_issues(self) -> int:
        return self.error_count + self.warning_count


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one parse attempt. Build through the class factories."""

    successful: bool
    language: str
    file_path: str
    root: Optional[CanonicalNode] = None
    errors: Tuple[ParseError, ...] = ()
    warnings: Tuple[ParseWarning, ...] = ()
    elapsed_ms: float = 0.0
    metrics: ParseMetrics = field(default_factory=ParseMetrics)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "elapsed_ms", max(0.0, float(self.elapsed_ms)))
        if self.successful and self.root is None:
            raise ValueError("A successful ParseResult needs a root node")
        if not self.successful and self.root is not None:
            raise ValueError("A failed ParseResult cannot carry a root node")

    @classmethod
    def success(
        cls,
        root: CanonicalNode,
        language: str,
        file_path: str,
        elapsed_ms: float,
        warnings: Iterable[ParseWarning] = (),
    ) -> "ParseResult":
        warnings = tuple(warnings)
        metrics = ParseMetrics(root.node_count(), root.depth(), 0, len(warnings))
        return cls(True, language, file_path, root, (), warnings, elapsed_ms, metrics)

    @classmethod
    def success_with_warnings(
        cls,
        root: CanonicalNode,
        language: str,
        file_path: str,
        warnings: Iterable[ParseWarning],
        elapsed_ms: float,
    ) -> "ParseResult":
        return cls.success(root, language, file_path, elapsed_ms, warnings)

    @classmethod
    def failure(
        cls,
        language: str,
        file_path: str,
        errors: Iterable[ParseError],
        elapsed_ms: float = 0.0,
    ) -> "ParseResult":
        errors = tuple(errors)
        if not errors:
            raise ValueError("A failed ParseResult needs at least one ParseError")
        metrics = ParseMetrics(0, 0, len(errors), 0)
        return cls(False, language, file_path, None, errors, (), elapsed_ms, metrics)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


# ---------------------------------------------------------------------------
# Pattern findings
# ---------------------------------------------------------------------------


class PatternCategory(str, Enum):
    DESIGN_PATTERN = "DesignPattern"
    ANTI_PATTERN = "AntiPattern"
    CODE_PATTERN = "CodePattern"


@dataclass(frozen=True)
class CodePattern:
    name: str
    category: PatternCategory
    description: str
    location: SourceLocation
    confidence: float
    examples: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "examples", tuple(self.examples))
