"""Java adapter built on ``tree-sitter-java``."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .adapter import UNKNOWN_TYPE, ConversionContext, TreeSitterAdapter
from .models import CanonicalNode, class_node, module_node, variable_node

logger = logging.getLogger(__name__)

TYPE_DECLARATIONS = frozenset({
    "class_declaration",
    "interface_declaration",
    "enum_declaration",
    "record_declaration",
    "annotation_type_declaration",
})

FIELD_DECLARATIONS = frozenset({"field_declaration", "constant_declaration"})
CONSTRUCTOR_DECLARATIONS = frozenset({"constructor_declaration", "compact_constructor_declaration"})


def _erase_generics(type_name: str) -> str:
    """``List<String>`` -> ``List``; used for supertypes only."""
    return type_name.split("<", 1)[0].strip()


class JavaAdapter(TreeSitterAdapter):
    """Canonicalizes Java compilation units."""

    GRAMMAR_MODULES = {"java": ("tree_sitter_java", "language")}

    # One per if/loop/catch and one per switch label, the way a
    # case-per-entry count sees ``case 1: case 2:`` as two branches.
    BRANCH_TYPES = frozenset({
        "if_statement",
        "for_statement",
        "enhanced_for_statement",
        "while_statement",
        "do_statement",
        "switch_label",
        "catch_clause",
    })
    STATEMENT_TYPES = frozenset({
        "block",
        "local_variable_declaration",
        "local_class_declaration",
        "try_with_resources_statement",
    })
    EXPRESSION_TYPES = frozenset({
        "identifier",
        "field_access",
        "array_access",
        "method_invocation",
        "method_reference",
        "this",
        "super",
        "array_initializer",
    })
    LITERAL_TYPES = frozenset({"true", "false"})
    IDENTIFIER_TYPES = frozenset({"identifier"})
    BLOCK_TYPES = frozenset({"block", "constructor_body"})
    CALL_TYPES = {"method_invocation": ("object", "name"), "object_creation_expression": ("type",)}
    ACCESS_TYPES = {"field_access": ("object", "field")}
    SKIPPED_TYPES = frozenset({"line_comment", "block_comment"})

    UNIT_TYPE = "compilation_unit"

    # ------------------------------------------------------------------
    # Compilation unit
    # ------------------------------------------------------------------

    def _convert_root(self, root: Any, ctx: ConversionContext) -> CanonicalNode:
        attributes: Dict[str, Any] = {"unitType": self.UNIT_TYPE}
        imports: List[str] = []
        children: List[CanonicalNode] = []

        for node in self._named(root):
            if node.type == "package_declaration":
                attributes["package"] = self._qualified_name(node)
            elif node.type == "import_declaration":
                imports.append(self._import_name(node))
            elif node.type in TYPE_DECLARATIONS:
                converted = self._convert_type(node, ctx)
                if converted is not None:
                    children.append(converted)

        if imports:
            attributes["imports"] = imports
        return module_node(self._unit_name(ctx), self._location(root, ctx), children, attributes)

    def _qualified_name(self, node: Any) -> str:
        for child in node.named_children:
            if child.type in ("scoped_identifier", "identifier"):
                return self._text(child)
        return ""

    def _import_name(self, node: Any) -> str:
        name = self._qualified_name(node)
        if any(child.type == "asterisk" for child in node.children):
            name += ".*"
        return name

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _modifiers(self, node: Any) -> List[str]:
        for child in node.children:
            if child.type == "modifiers":
                return [m.type for m in child.children if not m.is_named]
        return []

    def _annotations(self, node: Any) -> List[str]:
        for child in node.children:
            if child.type == "modifiers":
                return [
                    self._text(m.child_by_field_name("name"))
                    for m in child.named_children
                    if m.type in ("marker_annotation", "annotation")
                ]
        return []

    def _convert_type(self, node: Any, ctx: ConversionContext) -> Optional[CanonicalNode]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            ctx.warn("Skipped type declaration without a name", self._start(node, ctx), "unnamed-declaration")
            return None
        name = self._text(name_node)

        attributes: Dict[str, Any] = {
            "modifiers": self._modifiers(node),
            "typeKind": node.type[: -len("_declaration")],
        }
        annotations = self._annotations(node)
        if annotations:
            attributes["annotations"] = annotations

        superclass = node.child_by_field_name("superclass")
        if superclass is not None and superclass.named_children:
            attributes["superclass"] = _erase_generics(self._text(superclass.named_children[0]))

        interfaces: List[str] = []
        for child in node.named_children:
            if child.type in ("super_interfaces", "extends_interfaces"):
                for type_list in child.named_children:
                    interfaces.extend(_erase_generics(self._text(t)) for t in type_list.named_children)
        if interfaces:
            attributes["interfaces"] = interfaces

        members: List[CanonicalNode] = []
        if node.type == "record_declaration":
            members.extend(self._record_components(node, ctx))
        self._convert_members(node.child_by_field_name("body"), name, ctx, members)

        return class_node(name, self._location(node, ctx), members, attributes)

    def _convert_members(
        self, body: Any, owner: str, ctx: ConversionContext, members: List[CanonicalNode],
    ) -> None:
        for member in self._named(body):
            kind = member.type
            if kind == "method_declaration" or kind == "annotation_type_element_declaration":
                converted = self._convert_method(member, ctx)
                if converted is not None:
                    members.append(converted)
            elif kind in CONSTRUCTOR_DECLARATIONS:
                members.append(self._convert_constructor(member, owner, ctx))
            elif kind in FIELD_DECLARATIONS:
                members.extend(self._convert_fields(member, ctx))
            elif kind in TYPE_DECLARATIONS:
                nested = self._convert_type(member, ctx)
                if nested is not None:
                    members.append(nested)
            elif kind == "enum_constant":
                members.append(self._convert_enum_constant(member, owner, ctx))
            elif kind == "enum_body_declarations":
                self._convert_members(member, owner, ctx, members)

    def _convert_method(self, node: Any, ctx: ConversionContext) -> Optional[CanonicalNode]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            ctx.warn("Skipped method declaration without a name", self._start(node, ctx), "unnamed-declaration")
            return None
        annotations = self._annotations(node)
        return self._build_method(
            self._text(name_node),
            node,
            ctx,
            modifiers=self._modifiers(node),
            parameters=self._parameters(node.child_by_field_name("parameters")),
            return_type=self._text(node.child_by_field_name("type")),
            body=node.child_by_field_name("body"),
            throws=self._throws(node),
            extra={"annotations": annotations} if annotations else None,
        )

    def _convert_constructor(self, node: Any, owner: str, ctx: ConversionContext) -> CanonicalNode:
        name_node = node.child_by_field_name("name")
        return self._build_method(
            self._text(name_node) if name_node is not None else owner,
            node,
            ctx,
            modifiers=self._modifiers(node),
            parameters=self._parameters(node.child_by_field_name("parameters")),
            return_type=owner,
            body=node.child_by_field_name("body"),
            throws=self._throws(node),
            constructor=True,
        )

    def _parameters(self, node: Any) -> List[Dict[str, str]]:
        params: List[Dict[str, str]] = []
        for param in self._named(node):
            if param.type == "formal_parameter":
                params.append({
                    "name": self._text(param.child_by_field_name("name")),
                    "type": self._text(param.child_by_field_name("type")) or UNKNOWN_TYPE,
                })
            elif param.type == "spread_parameter":
                type_text = UNKNOWN_TYPE
                name = ""
                for child in param.named_children:
                    if child.type == "variable_declarator":
                        name = self._text(child.child_by_field_name("name"))
                    elif child.type != "modifiers" and type_text == UNKNOWN_TYPE:
                        type_text = self._text(child) + "..."
                params.append({"name": name, "type": type_text})
        return params

    def _throws(self, node: Any) -> List[str]:
        for child in node.named_children:
            if child.type == "throws":
                return [self._text(t) for t in child.named_children]
        return []

    def _convert_fields(self, node: Any, ctx: ConversionContext) -> List[CanonicalNode]:
        modifiers = self._modifiers(node)
        type_text = self._text(node.child_by_field_name("type")) or UNKNOWN_TYPE
        fields: List[CanonicalNode] = []
        for declarator in node.children_by_field_name("declarator"):
            value = declarator.child_by_field_name("value")
            fields.append(variable_node(
                self._text(declarator.child_by_field_name("name")),
                self._location(declarator, ctx),
                [self._convert_syntax(value, ctx)] if value is not None else (),
                {"modifiers": modifiers, "type": type_text, "field": True},
            ))
        return fields

    def _convert_enum_constant(self, node: Any, owner: str, ctx: ConversionContext) -> CanonicalNode:
        return variable_node(
            self._text(node.child_by_field_name("name")),
            self._location(node, ctx),
            (),
            {"modifiers": ["public", "static", "final"], "type": owner, "field": True},
        )

    def _record_components(self, node: Any, ctx: ConversionContext) -> List[CanonicalNode]:
        components: List[CanonicalNode] = []
        for param in self._named(node.child_by_field_name("parameters")):
            if param.type != "formal_parameter":
                continue
            components.append(variable_node(
                self._text(param.child_by_field_name("name")),
                self._location(param, ctx),
                (),
                {
                    "modifiers": ["private", "final"],
                    "type": self._text(param.child_by_field_name("type")) or UNKNOWN_TYPE,
                    "field": True,
                },
            ))
        return components
