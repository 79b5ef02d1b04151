"""Tests for pattern detection."""

import logging

import pytest

from conftest import member
from codecanon.models import PatternCategory, SourceLocation, class_node, method_node, module_node, statement_node, variable_node
from codecanon.patterns import (
    NO_MATCH,
    MatcherRegistry,
    MatchResult,
    PatternDetector,
    category_for,
    default_registry,
    description_for,
    match_god_class,
    match_long_method,
    match_singleton,
)


def loc(line: int = 1) -> SourceLocation:
    return SourceLocation.at("Demo.java", line, 1)


def singleton_class(private_ctor: bool = True, static_field: bool = True):
    return class_node("Config", loc(), [
        variable_node("instance", loc(2), attributes={
            "modifiers": ["private", "static"] if static_field else ["private"],
            "type": "Config",
        }),
        method_node("Config", loc(3), attributes={
            "modifiers": ["private"] if private_ctor else ["public"],
            "constructor": True,
        }),
    ])


def names(findings):
    return {f.name for f in findings}


@pytest.fixture
def detector() -> PatternDetector:
    return PatternDetector()


class TestSingleton:

    def test_detected(self, detector):
        findings = [f for f in detector.detect_patterns(singleton_class(), "java") if f.name == "Singleton"]
        assert len(findings) == 1
        assert findings[0].confidence == 0.8
        assert findings[0].category is PatternCategory.DESIGN_PATTERN

    def test_needs_private_constructor(self):
        assert match_singleton(singleton_class(private_ctor=False), "java") == NO_MATCH

    def test_needs_static_self_typed_member(self):
        assert match_singleton(singleton_class(static_field=False), "java") == NO_MATCH

    def test_static_accessor_counts(self):
        node = class_node("Config", loc(), [
            method_node("Config", loc(2), attributes={"modifiers": ["private"]}),
            method_node("getInstance", loc(3), attributes={"modifiers": ["public", "static"], "returnType": "Config"}),
        ])
        assert match_singleton(node, "java") == MatchResult(True, 0.8)

    def test_only_classes(self):
        assert match_singleton(method_node("Config", loc()), "java") == NO_MATCH


class TestAntiPatterns:

    def _class_with_methods(self, count):
        return class_node("Everything", loc(), [method_node(f"m{i}", loc(i + 2)) for i in range(count)])

    def test_god_class_threshold(self):
        assert match_god_class(self._class_with_methods(21), "java") == MatchResult(True, 0.7)
        assert match_god_class(self._class_with_methods(20), "java") == NO_MATCH

    def test_god_class_counts_methods_only(self):
        members = [variable_node(f"f{i}", loc(i + 2)) for i in range(30)]
        assert match_god_class(class_node("Data", loc(), members), "java") == NO_MATCH

    def test_long_method_threshold(self):
        def method_with(count):
            body = [statement_node("expression", loc(i + 2), attributes={"statementType": "expression"})
                    for i in range(count)]
            return method_node("run", loc(), body)

        assert match_long_method(method_with(31), "java") == MatchResult(True, 0.8)
        assert match_long_method(method_with(30), "java") == NO_MATCH

    def test_categories(self, detector):
        finding = next(f for f in detector.detect_patterns(self._class_with_methods(25), "java")
                       if f.name == "GodClass")
        assert finding.category is PatternCategory.ANTI_PATTERN
        assert finding.description == "A class that knows too much or does too much"


class TestDesignPatterns:

    def test_factory_on_class_and_module(self, detector):
        cls = class_node("Shapes", loc(), [method_node("createCircle", loc(2))])
        mod = module_node("shapes", loc(), [method_node("shape_factory", loc(2))])
        assert "Factory" in names(detector.detect_patterns(cls, "java"))
        assert "Factory" in names(detector.detect_patterns(mod, "python"))
        finding = next(f for f in detector.detect_patterns(cls, "java") if f.name == "Factory")
        assert finding.confidence == 0.7

    def test_one_node_matches_several(self, detector):
        cls = class_node("CarBuilder", loc(), [
            method_node("createEngine", loc(2)),
            method_node("build", loc(3)),
        ])
        assert {"Factory", "Builder"} <= names(detector.detect_patterns(cls, "java"))

    def test_observer_and_strategy(self, detector):
        observer = class_node("EventBus", loc(), [method_node("addListener", loc(2))])
        strategy = class_node("Sorter", loc(), attributes={"typeKind": "interface"})
        assert "Observer" in names(detector.detect_patterns(observer, "java"))
        assert "Strategy" in names(detector.detect_patterns(strategy, "java"))

    def test_plain_class_matches_nothing(self, detector):
        cls = class_node("Point", loc(), [variable_node("x", loc(2)), method_node("norm", loc(3))])
        assert detector.detect_patterns(cls, "java") == []


class TestParsedSources:

    def test_java_sample(self, parse, detector, sample_java_code):
        root = parse(sample_java_code, "java", "ShapeRegistry.java").root
        cls = member(root, "ShapeRegistry")
        assert "Singleton" in names(detector.detect_patterns(cls, "java"))

        register = member(cls, "register")
        assert {"NullCheck", "LoopPattern", "ExceptionHandling"} <= names(detector.detect_patterns(register, "java"))
        assert "ResourceManagement" not in names(detector.detect_patterns(register, "java"))

    def test_python_sample(self, parse, detector, sample_python_code):
        root = parse(sample_python_code, "python", "inventory.py").root
        assert "Factory" in names(detector.detect_patterns(member(root, "Inventory"), "python"))
        assert "ResourceManagement" in names(detector.detect_patterns(member(root, "load"), "python"))
        total = member(member(root, "Inventory"), "total")
        assert {"NullCheck", "LoopPattern", "ExceptionHandling"} <= names(detector.detect_patterns(total, "python"))

    def test_javascript_null_check(self, parse, detector, sample_javascript_code):
        root = parse(sample_javascript_code, "javascript", "cart.js").root
        assert "NullCheck" in names(detector.detect_patterns(member(root, "applyDiscount"), "javascript"))
        assert "Observer" in names(detector.detect_patterns(member(root, "CartObserver"), "javascript"))

    def test_try_with_resources(self, parse, detector):
        source = """class Reader {
            String read(String path) throws Exception {
                try (java.io.BufferedReader r = open(path)) {
                    return r.readLine();
                }
            }
        }"""
        read = member(member(parse(source, "java").root, "Reader"), "read")
        assert "ResourceManagement" in names(detector.detect_patterns(read, "java"))

    def test_detect_in_tree_is_pre_order(self, parse, detector, sample_java_code):
        root = parse(sample_java_code, "java", "ShapeRegistry.java").root
        findings = detector.detect_patterns_in_tree(root, "java")
        assert findings[0].name == "Singleton"
        lines = [f.location.start_line for f in findings]
        assert lines == sorted(lines)


class TestRegistry:

    def test_stock_matchers(self):
        assert default_registry().names() == [
            "Singleton", "Factory", "Observer", "Builder", "Strategy",
            "NullCheck", "LoopPattern", "ExceptionHandling", "ResourceManagement",
            "GodClass", "LongMethod",
        ]

    def test_custom_matcher_defaults_to_code_pattern(self):
        registry = MatcherRegistry()
        registry.register("TodoComment", lambda node, lang: MatchResult(node.name == "todo", 0.5))
        findings = PatternDetector(registry).detect_patterns(method_node("todo", loc()), "java")
        assert len(findings) == 1
        assert findings[0].category is PatternCategory.CODE_PATTERN
        assert findings[0].description == "Code pattern: TodoComment"
        assert findings[0].examples == ("todo",)

    def test_raising_matcher_is_skipped(self, caplog):
        def broken(node, language):
            raise KeyError("nope")

        registry = default_registry()
        registry.register("Broken", broken)
        cls = class_node("Shapes", loc(), [method_node("createCircle", loc(2))])
        with caplog.at_level(logging.WARNING, logger="codecanon.patterns"):
            findings = PatternDetector(registry).detect_patterns(cls, "java")
        assert names(findings) == {"Factory"}
        assert "Broken" in caplog.text

    def test_unregister(self):
        registry = default_registry()
        registry.unregister("Factory")
        assert "Factory" not in registry
        assert len(registry) == 10

    def test_lookup_tables(self):
        assert category_for("Observer") is PatternCategory.DESIGN_PATTERN
        assert category_for("LoopPattern") is PatternCategory.CODE_PATTERN
        assert description_for("Singleton") == "Ensures a class has only one instance and provides global access"
