"""JavaScript and TypeScript adapter built on ``tree-sitter-javascript``/``-typescript``."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .adapter import UNKNOWN_TYPE, ConversionContext, TreeSitterAdapter
from .models import CanonicalNode, class_node, module_node, variable_node

logger = logging.getLogger(__name__)

CLASS_DECLARATIONS = frozenset({"class_declaration", "abstract_class_declaration", "class"})
FUNCTION_DECLARATIONS = frozenset({"function_declaration", "generator_function_declaration"})
FUNCTION_VALUES = frozenset({"arrow_function", "function_expression", "function", "generator_function"})
VARIABLE_DECLARATIONS = frozenset({"lexical_declaration", "variable_declaration"})
METHOD_MEMBERS = frozenset({"method_definition", "method_signature", "abstract_method_signature"})
FIELD_MEMBERS = frozenset({"field_definition", "public_field_definition", "property_signature"})

# Anonymous tokens inside members that read as modifiers
MODIFIER_TOKENS = frozenset({"static", "async", "get", "set", "readonly", "abstract", "declare", "override"})


def _type_annotation(text: str) -> str:
    """``: number`` -> ``number``."""
    return text.lstrip(":").strip()


class JavaScriptAdapter(TreeSitterAdapter):
    """Canonicalizes JavaScript and TypeScript programs."""

    GRAMMAR_MODULES = {
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
    }

    BRANCH_TYPES = frozenset({
        "if_statement",
        "for_statement",
        "for_in_statement",
        "while_statement",
        "do_statement",
        "switch_case",
        "switch_default",
        "catch_clause",
    })
    STATEMENT_TYPES = frozenset({
        "statement_block",
        "lexical_declaration",
        "variable_declaration",
        "function_declaration",
        "class_declaration",
    })
    EXPRESSION_TYPES = frozenset({
        "identifier",
        "property_identifier",
        "shorthand_property_identifier",
        "arrow_function",
        "function",
        "function_expression",
        "array",
        "object",
        "this",
        "super",
    })
    LITERAL_TYPES = frozenset({
        "string",
        "template_string",
        "number",
        "regex",
        "true",
        "false",
        "null",
        "undefined",
    })
    IDENTIFIER_TYPES = frozenset({"identifier", "property_identifier", "shorthand_property_identifier"})
    BLOCK_TYPES = frozenset({"statement_block"})
    CALL_TYPES = {"call_expression": ("function",), "new_expression": ("constructor",)}
    ACCESS_TYPES = {"member_expression": ("object", "property")}
    SKIPPED_TYPES = frozenset({"comment", "html_comment"})
    DEPRECATED_SYNTAX = {
        "with_statement": "'with' statement is deprecated and forbidden in strict mode",
    }

    UNIT_TYPE = "script"

    # ------------------------------------------------------------------
    # Program
    # ------------------------------------------------------------------

    def _convert_root(self, root: Any, ctx: ConversionContext) -> CanonicalNode:
        attributes: Dict[str, Any] = {"unitType": self.UNIT_TYPE}
        imports: List[str] = []
        children: List[CanonicalNode] = []

        for node in self._named(root):
            if node.type == "import_statement":
                source = node.child_by_field_name("source")
                if source is not None:
                    imports.append(self._text(source).strip("'\"`"))
                continue
            exported = node.type == "export_statement"
            if exported:
                declaration = node.child_by_field_name("declaration")
                if declaration is None:
                    declaration = node.child_by_field_name("value")
                if declaration is None:
                    continue
                node = declaration
            children.extend(self._convert_declaration(node, ctx, exported))

        if imports:
            attributes["imports"] = imports
        return module_node(self._unit_name(ctx), self._location(root, ctx), children, attributes)

    def _convert_declaration(self, node: Any, ctx: ConversionContext, exported: bool) -> List[CanonicalNode]:
        kind = node.type
        if kind in CLASS_DECLARATIONS or kind == "interface_declaration":
            converted = self._convert_class(node, ctx, exported)
            return [converted] if converted is not None else []
        if kind == "enum_declaration":
            return [self._convert_enum(node, ctx, exported)]
        if kind in FUNCTION_DECLARATIONS:
            name_node = node.child_by_field_name("name")
            if name_node is None:
                ctx.warn("Skipped function declaration without a name", self._start(node, ctx), "unnamed-declaration")
                return []
            return [self._convert_function(self._text(name_node), node, ctx, ["export"] if exported else [])]
        if kind in VARIABLE_DECLARATIONS:
            return self._convert_variables(node, ctx, exported)
        return []

    # ------------------------------------------------------------------
    # Classes, interfaces and enums
    # ------------------------------------------------------------------

    def _convert_class(self, node: Any, ctx: ConversionContext, exported: bool) -> Optional[CanonicalNode]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            ctx.warn("Skipped class declaration without a name", self._start(node, ctx), "unnamed-declaration")
            return None
        name = self._text(name_node)

        modifiers = ["export"] if exported else []
        if node.type == "abstract_class_declaration":
            modifiers.append("abstract")
        attributes: Dict[str, Any] = {
            "modifiers": modifiers,
            "typeKind": "interface" if node.type == "interface_declaration" else "class",
        }

        interfaces: List[str] = []
        for child in node.named_children:
            if child.type == "class_heritage":
                for clause in child.named_children:
                    if clause.type == "extends_clause":
                        value = clause.child_by_field_name("value")
                        target = value if value is not None else (clause.named_children or [None])[0]
                        attributes["superclass"] = self._text(target)
                    elif clause.type == "implements_clause":
                        interfaces.extend(self._text(t) for t in clause.named_children)
                    else:
                        # Plain JavaScript: class_heritage wraps the expression directly
                        attributes["superclass"] = self._text(clause)
            elif child.type == "extends_type_clause":
                interfaces.extend(self._text(t) for t in child.named_children)
        if interfaces:
            attributes["interfaces"] = interfaces

        members: List[CanonicalNode] = []
        for member in self._named(node.child_by_field_name("body")):
            if member.type in METHOD_MEMBERS:
                members.append(self._convert_member_method(member, name, ctx))
            elif member.type in FIELD_MEMBERS:
                members.append(self._convert_field(member, ctx))

        return class_node(name, self._location(node, ctx), members, attributes)

    def _convert_enum(self, node: Any, ctx: ConversionContext, exported: bool) -> CanonicalNode:
        name = self._text(node.child_by_field_name("name"))
        members: List[CanonicalNode] = []
        for member in self._named(node.child_by_field_name("body")):
            target = member.child_by_field_name("name") if member.type == "enum_assignment" else member
            members.append(variable_node(
                self._text(target),
                self._location(member, ctx),
                (),
                {"modifiers": ["static", "readonly"], "type": name, "field": True},
            ))
        return class_node(name, self._location(node, ctx), members, {
            "modifiers": ["export"] if exported else [],
            "typeKind": "enum",
        })

    def _member_modifiers(self, node: Any) -> List[str]:
        modifiers: List[str] = []
        for child in node.children:
            if child.type == "accessibility_modifier":
                modifiers.append(self._text(child))
            elif child.type == "override_modifier":
                modifiers.append("override")
            elif not child.is_named and child.type in MODIFIER_TOKENS:
                modifiers.append(child.type)
            elif not child.is_named and child.type == "*":
                modifiers.append("generator")
        name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.type == "private_property_identifier" and "private" not in modifiers:
            modifiers.append("private")
        return modifiers

    def _convert_member_method(self, node: Any, owner: str, ctx: ConversionContext) -> CanonicalNode:
        name = self._text(node.child_by_field_name("name"))
        modifiers = self._member_modifiers(node)
        if node.type == "abstract_method_signature" and "abstract" not in modifiers:
            modifiers.append("abstract")
        constructor = name == "constructor"
        return_type = self._return_type(node)
        return self._build_method(
            name,
            node,
            ctx,
            modifiers=modifiers,
            parameters=self._parameters(node.child_by_field_name("parameters")),
            return_type=owner if constructor and return_type == UNKNOWN_TYPE else return_type,
            body=node.child_by_field_name("body"),
            constructor=constructor,
        )

    def _convert_field(self, node: Any, ctx: ConversionContext) -> CanonicalNode:
        name_node = node.child_by_field_name("name") or node.child_by_field_name("property")
        value = node.child_by_field_name("value")
        type_node = node.child_by_field_name("type")
        return variable_node(
            self._text(name_node),
            self._location(node, ctx),
            [self._convert_syntax(value, ctx)] if value is not None else (),
            {
                "modifiers": self._member_modifiers(node),
                "type": _type_annotation(self._text(type_node)) if type_node is not None else UNKNOWN_TYPE,
                "field": True,
            },
        )

    # ------------------------------------------------------------------
    # Functions and variables
    # ------------------------------------------------------------------

    def _return_type(self, node: Any) -> str:
        return_type = node.child_by_field_name("return_type")
        if return_type is None:
            return UNKNOWN_TYPE
        return _type_annotation(self._text(return_type)) or UNKNOWN_TYPE

    def _convert_function(
        self, name: str, node: Any, ctx: ConversionContext, modifiers: List[str],
    ) -> CanonicalNode:
        modifiers = list(modifiers)
        for child in node.children:
            if not child.is_named and child.type == "async":
                modifiers.append("async")
            elif not child.is_named and child.type == "*":
                modifiers.append("generator")
        parameters_node = node.child_by_field_name("parameters")
        if parameters_node is not None:
            parameters = self._parameters(parameters_node)
        else:
            # ``x => x + 1``: a lone identifier parameter
            single = node.child_by_field_name("parameter")
            parameters = [{"name": self._text(single), "type": UNKNOWN_TYPE}] if single is not None else []
        return self._build_method(
            name,
            node,
            ctx,
            modifiers=modifiers,
            parameters=parameters,
            return_type=self._return_type(node),
            body=node.child_by_field_name("body"),
        )

    def _convert_variables(self, node: Any, ctx: ConversionContext, exported: bool) -> List[CanonicalNode]:
        modifiers = ["export"] if exported else []
        keyword = node.children[0].type if node.children else ""
        if keyword in ("const", "let", "var"):
            modifiers.append(keyword)

        converted: List[CanonicalNode] = []
        for declarator in self._named(node):
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            name = self._text(name_node)
            if value is not None and value.type in FUNCTION_VALUES:
                converted.append(self._convert_function(name, value, ctx, modifiers))
                continue
            type_node = declarator.child_by_field_name("type")
            converted.append(variable_node(
                name,
                self._location(declarator, ctx),
                [self._convert_syntax(value, ctx)] if value is not None else (),
                {
                    "modifiers": modifiers,
                    "type": _type_annotation(self._text(type_node)) if type_node is not None else UNKNOWN_TYPE,
                    "field": False,
                },
            ))
        return converted

    def _parameters(self, node: Any) -> List[Dict[str, str]]:
        params: List[Dict[str, str]] = []
        for param in self._named(node):
            kind = param.type
            if kind in ("required_parameter", "optional_parameter"):
                pattern = param.child_by_field_name("pattern")
                type_node = param.child_by_field_name("type")
                name = self._text(pattern)
                params.append({
                    "name": name + "?" if kind == "optional_parameter" else name,
                    "type": _type_annotation(self._text(type_node)) if type_node is not None else UNKNOWN_TYPE,
                })
            elif kind == "assignment_pattern":
                params.append({"name": self._text(param.child_by_field_name("left")), "type": UNKNOWN_TYPE})
            else:
                # identifier, rest_pattern, object_pattern, array_pattern
                params.append({"name": self._text(param), "type": UNKNOWN_TYPE})
        return params
