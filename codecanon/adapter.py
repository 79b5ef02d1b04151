"""Per-language adapter contract and the shared Tree-sitter conversion logic.

Every adapter turns source text into a :class:`~codecanon.models.CanonicalNode`
tree.  Parse-type calls run on the shared worker pool and hand back a
``concurrent.futures.Future``; nothing raised inside a parse ever reaches the
caller, it becomes a failed :class:`~codecanon.models.ParseResult` instead.

Tree-sitter produces a *concrete syntax tree* and never throws on bad input;
it marks the damage with ``ERROR`` and ``MISSING`` nodes, which this module
classifies into located :class:`~codecanon.models.ParseError` diagnostics.
"""

from __future__ import annotations

import importlib
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]

from .models import (
    CanonicalNode,
    ErrorSeverity,
    ParseError,
    ParseResult,
    ParseWarning,
    SourceLocation,
    WarningSeverity,
    expression_node,
    method_node,
    other_node,
    statement_node,
)
from .workers import completed, get_executor

logger = logging.getLogger(__name__)

UNKNOWN_TYPE = "unknown"


class IncrementalFidelity(str, Enum):
    """How much work ``incremental_parse`` really saves."""

    FULL_REPARSE = "full_reparse"
    TRUE_INCREMENTAL = "true_incremental"


# ===================================================================
# Abstract Adapter Interface
# ===================================================================

class LanguageAdapter(ABC):
    """Abstract base class for all language adapters."""

    @abstractmethod
    def parse(self, source_code: str, language: str, file_path: str) -> "Future[ParseResult]":
        """Parse *source_code* into a canonical tree."""
        ...

    @abstractmethod
    def incremental_parse(
        self,
        existing_tree: Optional[CanonicalNode],
        changed_text: str,
        language: str,
    ) -> "Future[ParseResult]":
        """Re-parse *changed_text*, optionally reusing *existing_tree*."""
        ...

    @abstractmethod
    def validate_syntax(self, source_code: str, language: str) -> "Future[bool]":
        """Resolve to True iff a full parse would succeed."""
        ...

    @abstractmethod
    def supports_language(self, language: str) -> bool:
        """Return True if this adapter can handle *language*."""
        ...

    @abstractmethod
    def supported_languages(self) -> List[str]:
        ...

    def incremental_fidelity(self, language: str) -> IncrementalFidelity:
        return IncrementalFidelity.FULL_REPARSE


# ===================================================================
# Conversion state
# ===================================================================

@dataclass
class ConversionContext:
    """Per-call conversion state; never shared between parses."""

    file_path: str
    language: str
    warnings: List[ParseWarning] = field(default_factory=list)

    def warn(self, message: str, location: SourceLocation, code: Optional[str] = None) -> None:
        self.warnings.append(ParseWarning(message, location, WarningSeverity.WARNING, code))


def strip_suffix(node_type: str, suffix: str) -> str:
    """``if_statement`` -> ``if``; ``expression_statement`` -> ``expression``."""
    if node_type.endswith(suffix) and len(node_type) > len(suffix):
        return node_type[: -len(suffix)]
    return node_type


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


# ===================================================================
# Tree-sitter Adapter (shared implementation)
# ===================================================================

class TreeSitterAdapter(LanguageAdapter):
    """Shared adapter behaviour for grammars loaded through Tree-sitter.

    Subclasses provide the grammar table, the node-type vocabularies below,
    and :meth:`_convert_root`, which builds the module-level canonical node.
    A ``tree_sitter.Parser`` is created per call so one adapter instance can
    serve concurrent parses of different files.
    """

    # Map language tag -> (module providing the grammar, factory function name)
    GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {}

    # Node types counted by the cyclomatic-complexity traversal
    BRANCH_TYPES: FrozenSet[str] = frozenset()
    # Node types treated as statements besides the ``*_statement`` family
    STATEMENT_TYPES: FrozenSet[str] = frozenset({"block"})
    # Node types treated as expressions besides the ``*_expression`` family
    EXPRESSION_TYPES: FrozenSet[str] = frozenset({"identifier"})
    LITERAL_TYPES: FrozenSet[str] = frozenset({"true", "false"})
    IDENTIFIER_TYPES: FrozenSet[str] = frozenset({"identifier"})
    # Node types whose children are the statements of a function body
    BLOCK_TYPES: FrozenSet[str] = frozenset({"block"})
    SKIPPED_TYPES: FrozenSet[str] = frozenset({"comment"})
    # Parsable but legacy/deprecated syntax, reported as warnings
    DEPRECATED_SYNTAX: Dict[str, str] = {}
    # Call and member-access node types -> fields joined into a dotted name
    CALL_TYPES: Dict[str, Tuple[str, ...]] = {}
    ACCESS_TYPES: Dict[str, Tuple[str, ...]] = {}

    UNIT_TYPE = "module"

    def __init__(
        self,
        executor: Optional[Executor] = None,
        languages: Optional[Sequence[str]] = None,
    ) -> None:
        self._executor = executor
        self._languages: Dict[str, Language] = {}
        self._init_grammars(languages or list(self.GRAMMAR_MODULES))

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def _init_grammars(self, languages: Sequence[str]) -> None:
        for lang in languages:
            entry = self.GRAMMAR_MODULES.get(lang.lower())
            if entry is None:
                logger.warning("No grammar module mapped for language '%s'", lang)
                continue
            mod_name, factory = entry
            try:
                mod = importlib.import_module(mod_name)
                # tree-sitter >=0.22 per-language packages expose a function
                # that returns the Language capsule.
                self._languages[lang.lower()] = Language(getattr(mod, factory)())
                logger.debug("Loaded tree-sitter grammar for %s", lang)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )
            except Exception as exc:
                logger.warning("Could not load tree-sitter grammar for %s: %s", lang, exc)

    @property
    def executor(self) -> Executor:
        return self._executor or get_executor()

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def supports_language(self, language: str) -> bool:
        return bool(language) and language.lower() in self._languages

    def supported_languages(self) -> List[str]:
        return sorted(self._languages)

    def parse(self, source_code: str, language: str, file_path: str) -> "Future[ParseResult]":
        return self._submit(
            self._parse_now,
            lambda exc: _crash_result(language, file_path, exc, 0.0),
            source_code, language, file_path,
        )

    def incremental_parse(
        self,
        existing_tree: Optional[CanonicalNode],
        changed_text: str,
        language: str,
    ) -> "Future[ParseResult]":
        # Full re-parse of the changed text; see IncrementalFidelity.
        file_path = existing_tree.location.file_path if existing_tree is not None else "unknown"
        logger.debug(
            "Incremental parsing not implemented for %s, falling back to full parse of %s",
            language, file_path,
        )
        return self.parse(changed_text, language, file_path)

    def validate_syntax(self, source_code: str, language: str) -> "Future[bool]":
        return self._submit(self._validate_now, lambda exc: False, source_code, language)

    # ------------------------------------------------------------------
    # Task bodies (run on the worker pool)
    # ------------------------------------------------------------------

    def _submit(self, fn: Callable[..., Any], on_rejected: Callable[[Exception], Any], *args: Any) -> Future:
        try:
            return self.executor.submit(fn, *args)
        except RuntimeError as exc:
            # Pool already shut down
            logger.error("Could not schedule %s: %s", fn.__name__, exc)
            return completed(on_rejected(exc))

    def _parse_now(self, source_code: str, language: str, file_path: str) -> ParseResult:
        start = time.perf_counter()
        try:
            return self._parse_blocking(source_code, language, file_path, start)
        except Exception as exc:
            logger.error("Unexpected error parsing %s code from %s: %s", language, file_path, exc)
            return _crash_result(language, file_path, exc, _elapsed_ms(start))

    def _parse_blocking(self, source_code: str, language: str, file_path: str, start: float) -> ParseResult:
        grammar = self._languages.get(language.lower())
        if grammar is None:
            return ParseResult.failure(
                language, file_path,
                [ParseError(f"Unsupported language: {language}", SourceLocation.at(file_path, 1, 1))],
                _elapsed_ms(start),
            )

        tree = TSParser(grammar).parse(source_code.encode("utf-8"))
        ctx = ConversionContext(file_path=file_path, language=language)

        errors = self._collect_diagnostics(tree.root_node, ctx)
        if errors:
            return ParseResult.failure(language, file_path, errors, _elapsed_ms(start))

        root = self._convert_root(tree.root_node, ctx)
        elapsed = _elapsed_ms(start)
        logger.debug(
            "Parsed %s code from %s in %.1fms (%d warnings)",
            language, file_path, elapsed, len(ctx.warnings),
        )
        if ctx.warnings:
            return ParseResult.success_with_warnings(root, language, file_path, ctx.warnings, elapsed)
        return ParseResult.success(root, language, file_path, elapsed)

    def _validate_now(self, source_code: str, language: str) -> bool:
        try:
            grammar = self._languages.get(language.lower())
            if grammar is None:
                return False
            tree = TSParser(grammar).parse(source_code.encode("utf-8"))
            return not tree.root_node.has_error
        except Exception as exc:
            logger.debug("Syntax validation failed for %s code: %s", language, exc)
            return False

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _collect_diagnostics(self, root: Any, ctx: ConversionContext) -> List[ParseError]:
        """Turn ERROR/MISSING nodes into errors and deprecated syntax into warnings."""
        errors: List[ParseError] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR":
                snippet = " ".join(self._text(node).split())[:40]
                errors.append(ParseError(
                    f"Syntax error near '{snippet}'" if snippet else "Syntax error",
                    self._start(node, ctx),
                    code="syntax-error",
                ))
                continue
            if node.is_missing:
                errors.append(ParseError(
                    f"Missing '{node.type}'",
                    self._start(node, ctx),
                    code="missing-token",
                    suggestion=f"Insert '{node.type}'",
                ))
                continue
            message = self.DEPRECATED_SYNTAX.get(node.type)
            if message:
                ctx.warn(message, self._start(node, ctx), code="deprecated-syntax")
            stack.extend(reversed(node.children))

        if not errors and root.has_error:
            errors.append(ParseError("Syntax error", SourceLocation.at(ctx.file_path, 1, 1)))
        errors.sort(key=lambda e: (e.location.start_line, e.location.start_column))
        return errors

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    @abstractmethod
    def _convert_root(self, root: Any, ctx: ConversionContext) -> CanonicalNode:
        """Build the module node from the Tree-sitter root (steps 1-4)."""
        ...

    @staticmethod
    def _text(node: Any) -> str:
        if node is None:
            return ""
        return node.text.decode("utf-8", errors="replace")

    @staticmethod
    def _location(node: Any, ctx: ConversionContext) -> SourceLocation:
        return SourceLocation.range(
            ctx.file_path,
            node.start_point[0] + 1, node.start_point[1] + 1,
            node.end_point[0] + 1, node.end_point[1] + 1,
        )

    @staticmethod
    def _start(node: Any, ctx: ConversionContext) -> SourceLocation:
        return SourceLocation.at(ctx.file_path, node.start_point[0] + 1, node.start_point[1] + 1)

    def _unit_name(self, ctx: ConversionContext) -> str:
        return PurePath(ctx.file_path).stem if ctx.file_path else ""

    def _named(self, node: Any) -> List[Any]:
        if node is None:
            return []
        return [c for c in node.named_children if c.type not in self.SKIPPED_TYPES]

    def _is_statement(self, node_type: str) -> bool:
        return node_type.endswith("_statement") or node_type in self.STATEMENT_TYPES

    def _is_expression(self, node_type: str) -> bool:
        return (
            node_type.endswith("_expression")
            or node_type.endswith("_literal")
            or node_type in self.EXPRESSION_TYPES
            or node_type in self.LITERAL_TYPES
        )

    def _is_literal(self, node_type: str) -> bool:
        return node_type.endswith("_literal") or node_type in self.LITERAL_TYPES

    def _convert_syntax(self, node: Any, ctx: ConversionContext) -> CanonicalNode:
        """Convert a statement or expression subtree (step 5).

        Post-order walk on an explicit stack: operator chains such as
        ``a + b + c ...`` nest one level per operand, so source depth is
        unbounded.
        """
        if self._is_literal(node.type):
            return self._convert_literal(node, ctx)

        # (syntax node, named children, converted children)
        frames: List[Tuple[Any, List[Any], List[CanonicalNode]]] = [(node, self._named(node), [])]
        while True:
            current, pending, done = frames[-1]
            if len(done) < len(pending):
                child = pending[len(done)]
                if self._is_literal(child.type):
                    done.append(self._convert_literal(child, ctx))
                else:
                    frames.append((child, self._named(child), []))
                continue
            frames.pop()
            converted = self._syntax_node(current, done, ctx)
            if not frames:
                return converted
            frames[-1][2].append(converted)

    def _convert_literal(self, node: Any, ctx: ConversionContext) -> CanonicalNode:
        expr_type = strip_suffix(node.type, "_literal")
        return expression_node(expr_type, self._location(node, ctx), (), {
            "expressionType": expr_type,
            "literalValue": self._text(node)[:200],
        })

    def _syntax_node(self, node: Any, children: List[CanonicalNode], ctx: ConversionContext) -> CanonicalNode:
        node_type = node.type
        location = self._location(node, ctx)

        if self._is_statement(node_type):
            stmt_type = strip_suffix(node_type, "_statement")
            return statement_node(stmt_type, location, children, {"statementType": stmt_type})

        if self._is_expression(node_type):
            expr_type = strip_suffix(node_type, "_expression")
            name = self._text(node) if node_type in self.IDENTIFIER_TYPES else expr_type
            attributes = {"expressionType": expr_type}
            attributes.update(self._reference(node))
            return expression_node(name, location, children, attributes)

        return other_node(node_type, location, children, {"syntaxType": node_type})

    def _reference(self, node: Any) -> Dict[str, str]:
        """``callee`` of a call or ``member`` of a field access, as dotted text."""
        for table, key in ((self.CALL_TYPES, "callee"), (self.ACCESS_TYPES, "member")):
            fields = table.get(node.type)
            if fields:
                parts = [" ".join(self._text(node.child_by_field_name(f)).split()) for f in fields]
                dotted = ".".join(p for p in parts if p)
                return {key: dotted[:200]} if dotted else {}
        return {}

    def _convert_body(self, body: Any, ctx: ConversionContext) -> List[CanonicalNode]:
        if body is None:
            return []
        if body.type in self.BLOCK_TYPES:
            return [self._convert_syntax(c, ctx) for c in self._named(body)]
        # Expression-bodied functions (arrow functions)
        return [self._convert_syntax(body, ctx)]

    def cyclomatic_complexity(self, body: Any) -> int:
        """McCabe-style count without boolean-operator weighting.

        1 plus one per branch construct anywhere in *body*, however deeply
        nested. ``&&``/``||``/``and``/``or`` are deliberately not counted.
        """
        complexity = 1
        if body is None:
            return complexity
        stack = [body]
        while stack:
            node = stack.pop()
            if node.type in self.BRANCH_TYPES:
                complexity += 1
            stack.extend(node.named_children)
        return complexity

    def _build_method(
        self,
        name: str,
        node: Any,
        ctx: ConversionContext,
        *,
        modifiers: Sequence[str],
        parameters: Sequence[Dict[str, str]],
        return_type: Optional[str],
        body: Any,
        throws: Sequence[str] = (),
        constructor: bool = False,
        extra: Optional[Dict[str, Any]] = None,
    ) -> CanonicalNode:
        attributes: Dict[str, Any] = {
            "modifiers": list(modifiers),
            "returnType": return_type or UNKNOWN_TYPE,
            "parameters": list(parameters),
            "cyclomaticComplexity": self.cyclomatic_complexity(body),
            "constructor": constructor,
        }
        if throws:
            attributes["throws"] = list(throws)
        if extra:
            attributes.update(extra)
        return method_node(name, self._location(node, ctx), self._convert_body(body, ctx), attributes)


def _crash_result(language: str, file_path: str, exc: BaseException, elapsed_ms: float) -> ParseResult:
    return ParseResult.failure(
        language or "unknown",
        file_path or "unknown",
        [ParseError(
            f"Parse error: {exc}",
            SourceLocation.at(file_path or "unknown", 1, 1),
            ErrorSeverity.FATAL,
            code="adapter-failure",
        )],
        elapsed_ms,
    )
