"""Python adapter built on ``tree-sitter-python``."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from .adapter import UNKNOWN_TYPE, ConversionContext, TreeSitterAdapter
from .models import CanonicalNode, class_node, module_node, variable_node

logger = logging.getLogger(__name__)

# Decorator name -> modifier it implies
DECORATOR_MODIFIERS: Dict[str, str] = {
    "staticmethod": "static",
    "classmethod": "classmethod",
    "abstractmethod": "abstract",
    "abc.abstractmethod": "abstract",
    "property": "property",
}

IMPORT_STATEMENTS = frozenset({"import_statement", "import_from_statement", "future_import_statement"})


def _is_private(name: str) -> bool:
    """Single leading underscore, but not a dunder."""
    return name.startswith("_") and not (name.startswith("__") and name.endswith("__"))


class PythonAdapter(TreeSitterAdapter):
    """Canonicalizes Python modules."""

    GRAMMAR_MODULES = {"python": ("tree_sitter_python", "language")}

    BRANCH_TYPES = frozenset({
        "if_statement",
        "elif_clause",
        "for_statement",
        "while_statement",
        "case_clause",
        "except_clause",
        "except_group_clause",
    })
    STATEMENT_TYPES = frozenset({"block", "decorated_definition", "function_definition", "class_definition"})
    EXPRESSION_TYPES = frozenset({
        "identifier",
        "attribute",
        "call",
        "subscript",
        "assignment",
        "augmented_assignment",
        "binary_operator",
        "boolean_operator",
        "comparison_operator",
        "not_operator",
        "unary_operator",
        "lambda",
        "await",
        "list",
        "tuple",
        "dictionary",
        "set",
        "list_comprehension",
        "dictionary_comprehension",
        "set_comprehension",
    })
    LITERAL_TYPES = frozenset({
        "string",
        "concatenated_string",
        "integer",
        "float",
        "true",
        "false",
        "none",
        "ellipsis",
    })
    IDENTIFIER_TYPES = frozenset({"identifier"})
    BLOCK_TYPES = frozenset({"block"})
    CALL_TYPES = {"call": ("function",)}
    ACCESS_TYPES = {"attribute": ("object", "attribute")}
    SKIPPED_TYPES = frozenset({"comment"})
    DEPRECATED_SYNTAX = {
        "print_statement": "Python 2 print statement; use the print() function",
        "exec_statement": "Python 2 exec statement; use the exec() function",
    }

    UNIT_TYPE = "module"

    # ------------------------------------------------------------------
    # Module
    # ------------------------------------------------------------------

    def _convert_root(self, root: Any, ctx: ConversionContext) -> CanonicalNode:
        attributes: Dict[str, Any] = {"unitType": self.UNIT_TYPE}
        imports: List[str] = []
        children: List[CanonicalNode] = []

        for node in self._named(root):
            if node.type in IMPORT_STATEMENTS:
                imports.extend(self._import_names(node))
                continue
            definition, decorators = self._unwrap(node)
            if definition.type == "class_definition":
                children.append(self._convert_class(definition, decorators, ctx))
            elif definition.type == "function_definition":
                children.append(self._convert_function(definition, decorators, ctx, in_class=False))
            else:
                children.extend(self._assigned_variables(node, ctx, field=False, static=False))

        if imports:
            attributes["imports"] = imports
        return module_node(self._unit_name(ctx), self._location(root, ctx), children, attributes)

    def _import_names(self, node: Any) -> List[str]:
        names = []
        for child in node.children_by_field_name("name"):
            target = child.child_by_field_name("name") if child.type == "aliased_import" else child
            names.append(self._text(target))
        if node.type == "import_statement":
            return names

        module = "__future__" if node.type == "future_import_statement" else self._text(
            node.child_by_field_name("module_name")
        )
        if any(child.type == "wildcard_import" for child in node.named_children):
            return [f"{module}.*"]
        return [f"{module}.{name}" for name in names] or [module]

    def _unwrap(self, node: Any) -> Tuple[Any, List[str]]:
        """Split a ``decorated_definition`` into the definition and decorator names."""
        if node.type != "decorated_definition":
            return node, []
        decorators = []
        for child in node.named_children:
            if child.type == "decorator":
                expression = child.named_children[0] if child.named_children else None
                if expression is not None and expression.type == "call":
                    expression = expression.child_by_field_name("function")
                decorators.append(self._text(expression))
        definition = node.child_by_field_name("definition")
        return (definition if definition is not None else node), decorators

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _convert_class(self, node: Any, decorators: List[str], ctx: ConversionContext) -> CanonicalNode:
        name = self._text(node.child_by_field_name("name"))
        modifiers = ["private"] if _is_private(name) else []
        attributes: Dict[str, Any] = {"modifiers": modifiers, "typeKind": "class"}
        if decorators:
            attributes["decorators"] = decorators

        bases: List[str] = []
        superclasses = node.child_by_field_name("superclasses")
        for arg in self._named(superclasses):
            if arg.type == "keyword_argument":
                if self._text(arg.child_by_field_name("name")) == "metaclass":
                    attributes["metaclass"] = self._text(arg.child_by_field_name("value"))
            else:
                bases.append(self._text(arg))
        if bases:
            attributes["superclass"] = bases[0]
            attributes["supertypes"] = bases

        members: List[CanonicalNode] = []
        instance_fields: List[CanonicalNode] = []
        for stmt in self._named(node.child_by_field_name("body")):
            definition, member_decorators = self._unwrap(stmt)
            if definition.type == "function_definition":
                method = self._convert_function(definition, member_decorators, ctx, in_class=True)
                members.append(method)
                if method.name == "__init__":
                    instance_fields = self._instance_fields(definition, ctx)
            elif definition.type == "class_definition":
                members.append(self._convert_class(definition, member_decorators, ctx))
            else:
                members.extend(self._assigned_variables(stmt, ctx, field=True, static=True))

        known = {m.name for m in members}
        members.extend(f for f in instance_fields if f.name not in known)
        return class_node(name, self._location(node, ctx), members, attributes)

    def _instance_fields(self, init: Any, ctx: ConversionContext) -> List[CanonicalNode]:
        """``self.x = ...`` assignments at the top level of ``__init__``."""
        fields: List[CanonicalNode] = []
        seen = set()
        for stmt in self._named(init.child_by_field_name("body")):
            assignment = self._assignment_of(stmt)
            if assignment is None:
                continue
            left = assignment.child_by_field_name("left")
            if left is None or left.type != "attribute":
                continue
            owner = left.child_by_field_name("object")
            attr = self._text(left.child_by_field_name("attribute"))
            if self._text(owner) != "self" or attr in seen:
                continue
            seen.add(attr)
            fields.append(variable_node(
                attr,
                self._location(assignment, ctx),
                (),
                {
                    "modifiers": ["private"] if _is_private(attr) else [],
                    "type": self._text(assignment.child_by_field_name("type")) or UNKNOWN_TYPE,
                    "field": True,
                },
            ))
        return fields

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _convert_function(
        self, node: Any, decorators: List[str], ctx: ConversionContext, *, in_class: bool,
    ) -> CanonicalNode:
        name = self._text(node.child_by_field_name("name"))

        modifiers: List[str] = []
        if _is_private(name):
            modifiers.append("private")
        if any(not child.is_named and child.type == "async" for child in node.children):
            modifiers.append("async")
        for decorator in decorators:
            implied = DECORATOR_MODIFIERS.get(decorator)
            if implied and implied not in modifiers:
                modifiers.append(implied)

        parameters = self._parameters(node.child_by_field_name("parameters"))
        # Receivers are implicit in the other supported languages
        if in_class and "static" not in modifiers and parameters and parameters[0]["name"] in ("self", "cls"):
            parameters = parameters[1:]

        return self._build_method(
            name,
            node,
            ctx,
            modifiers=modifiers,
            parameters=parameters,
            return_type=self._text(node.child_by_field_name("return_type")),
            body=node.child_by_field_name("body"),
            constructor=in_class and name == "__init__",
            extra={"decorators": decorators} if decorators else None,
        )

    def _parameters(self, node: Any) -> List[Dict[str, str]]:
        params: List[Dict[str, str]] = []
        for param in self._named(node):
            kind = param.type
            if kind == "identifier":
                params.append({"name": self._text(param), "type": UNKNOWN_TYPE})
            elif kind in ("list_splat_pattern", "dictionary_splat_pattern"):
                params.append({"name": self._text(param), "type": UNKNOWN_TYPE})
            elif kind == "typed_parameter":
                target = param.named_children[0] if param.named_children else None
                params.append({
                    "name": self._text(target),
                    "type": self._text(param.child_by_field_name("type")) or UNKNOWN_TYPE,
                })
            elif kind in ("default_parameter", "typed_default_parameter"):
                params.append({
                    "name": self._text(param.child_by_field_name("name")),
                    "type": self._text(param.child_by_field_name("type")) or UNKNOWN_TYPE,
                })
        return params

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @staticmethod
    def _assignment_of(stmt: Any) -> Optional[Any]:
        if stmt.type != "expression_statement" or not stmt.named_children:
            return None
        expression = stmt.named_children[0]
        return expression if expression.type == "assignment" else None

    def _assigned_variables(
        self, stmt: Any, ctx: ConversionContext, *, field: bool, static: bool,
    ) -> List[CanonicalNode]:
        assignment = self._assignment_of(stmt)
        if assignment is None:
            return []
        left = assignment.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return []
        name = self._text(left)
        modifiers = ["static"] if static else []
        if _is_private(name):
            modifiers.append("private")
        value = assignment.child_by_field_name("right")
        return [variable_node(
            name,
            self._location(assignment, ctx),
            [self._convert_syntax(value, ctx)] if value is not None else (),
            {
                "modifiers": modifiers,
                "type": self._text(assignment.child_by_field_name("type")) or UNKNOWN_TYPE,
                "field": field,
            },
        )]
