from pathlib import Path
from typing import Dict, Optional

import pytest

from smartchunk.chunking import BUILTIN_DRIVERS, ChunkRule, DriverRegistry, LanguageDriver, default_registry
from smartchunk.chunking.drivers import PYTHON, RUST


class StubNode:
    """Just enough of a tree-sitter node for rule matching."""

    def __init__(self, type: str, fields: Optional[Dict[str, "StubNode"]] = None) -> None:
        self.type = type
        self._fields = fields or {}

    def child_by_field_name(self, name: str) -> Optional["StubNode"]:
        return self._fields.get(name)


def test_default_registry_resolves_extensions() -> None:
    registry = default_registry()
    assert registry.for_path("src/main.rs") is RUST
    assert registry.for_path(Path("pkg/mod.PY")) is PYTHON
    assert registry.for_path("component.tsx").name == "tsx"
    assert registry.for_path("README.md") is None
    assert not registry.is_supported("Makefile")
    assert set(registry.languages()) == {driver.name for driver in BUILTIN_DRIVERS}
    assert ".go" in registry.extensions()


def test_registering_a_language_needs_no_engine_change() -> None:
    registry = DriverRegistry(BUILTIN_DRIVERS)
    ruby = LanguageDriver(
        name="ruby",
        grammar="ruby",
        extensions=(".rb",),
        rules=(ChunkRule("method", frozenset({"method"})), ChunkRule("class", frozenset({"class"}))),
    )
    registry.register(ruby)
    assert registry.for_path("app/models/user.rb") is ruby
    assert registry.for_language("RUBY") is ruby
    assert len(registry) == len(BUILTIN_DRIVERS) + 1


def test_method_rule_wins_inside_impl_blocks() -> None:
    node = StubNode("function_item")
    assert RUST.match(node, enclosing="impl").chunk_type == "method"
    assert RUST.match(node, enclosing="trait").chunk_type == "method"
    assert RUST.match(node, enclosing="module").chunk_type == "function"
    assert RUST.match(node, enclosing=None).chunk_type == "function"
    assert RUST.match(StubNode("impl_item"), enclosing="module").chunk_type == "impl"
    assert RUST.match(StubNode("use_declaration"), enclosing=None) is None


def test_python_methods_only_directly_inside_classes() -> None:
    node = StubNode("function_definition")
    assert PYTHON.match(node, enclosing="class").chunk_type == "method"
    assert PYTHON.match(node, enclosing="method").chunk_type == "function"


def test_wrappers_are_matched_through_their_definition() -> None:
    inner = StubNode("class_definition")
    decorated = StubNode("decorated_definition", {"definition": inner})
    assert PYTHON.unwrap(decorated) is inner
    assert PYTHON.match(decorated, enclosing=None).chunk_type == "class"
    assert PYTHON.unwrap(StubNode("decorated_definition")).type == "decorated_definition"


def test_rules_are_ordered_most_specific_first() -> None:
    for driver in BUILTIN_DRIVERS:
        kinds = [rule.chunk_type for rule in driver.rules]
        if "method" in kinds:
            assert kinds[0] == "method", driver.name
        if "impl" in kinds and "module" in kinds:
            assert kinds.index("impl") < kinds.index("module")


def test_comment_predicates() -> None:
    assert RUST.is_comment(StubNode("line_comment"))
    assert RUST.is_transparent(StubNode("attribute_item"))
    assert PYTHON.is_comment(StubNode("comment"))
    assert not PYTHON.is_comment(StubNode("string"))


def test_builtin_grammars_load() -> None:
    pytest.importorskip("tree_sitter_language_pack")
    for driver in BUILTIN_DRIVERS:
        parser = driver.create_parser()
        tree = parser.parse(b"\n")
        assert tree.root_node is not None
