"""
Language drivers for tree-sitter chunk extraction.

A driver tells the extractor which syntax nodes are chunk boundaries, how to
name and sign them, and which nodes count as documentation comments. Rules
are tested in declaration order and the first match wins, so every driver
lists its most specific rules first: methods, then free functions, then
types, then implementation blocks, then modules.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Union

from tree_sitter import Language, Node, Parser  # type: ignore[import]

from ..logger import get_logger

log = get_logger(__name__)


_LANGUAGE_CACHE: dict[str, Language] = {}
_LANGUAGE_LOCK = threading.Lock()


def _load_language(grammar: str) -> Language:
    """
    Lazily load a prebuilt tree-sitter grammar.

    Grammars come from `tree_sitter_language_pack`, which bundles compiled
    parsers for every language registered below.
    """
    with _LANGUAGE_LOCK:
        if grammar in _LANGUAGE_CACHE:
            return _LANGUAGE_CACHE[grammar]

        try:
            from tree_sitter_language_pack import get_language  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime configuration issue
            raise RuntimeError(
                "tree_sitter_language_pack is required for prebuilt grammars. "
                "Install it via `pip install tree-sitter-language-pack`."
            ) from exc

        language = get_language(grammar)
        _LANGUAGE_CACHE[grammar] = language
        log.debug("grammar_loaded", grammar=grammar)
        return language


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8")


@dataclass(frozen=True)
class ChunkRule:
    """
    One chunk boundary predicate and its extraction rule.

    ``within`` restricts the rule to nodes whose nearest enclosing chunk has
    one of the listed chunk types; ``None`` means anywhere.
    """

    chunk_type: str
    node_types: FrozenSet[str]
    within: Optional[FrozenSet[str]] = None
    name_fields: Tuple[str, ...] = ("name",)
    body_field: Optional[str] = "body"

    def matches(self, node_type: str, enclosing: Optional[str]) -> bool:
        if node_type not in self.node_types:
            return False
        if self.within is None:
            return True
        return enclosing is not None and enclosing in self.within

    def extract_name(self, node: Node, source: bytes) -> str:
        for field_name in self.name_fields:
            child = node.child_by_field_name(field_name)
            if child is not None:
                return node_text(child, source)
        # Grouped declarations (Go `type (...)`) keep the name one level down.
        for child in node.named_children:
            for field_name in self.name_fields:
                grandchild = child.child_by_field_name(field_name)
                if grandchild is not None:
                    return node_text(grandchild, source)
        return ""

    def extract_signature(self, node: Node, source: bytes) -> str:
        body = node.child_by_field_name(self.body_field) if self.body_field else None
        if body is not None and body.start_byte > node.start_byte:
            header = source[node.start_byte : body.start_byte]
        else:
            line_end = source.find(b"\n", node.start_byte, node.end_byte)
            header = source[node.start_byte : node.end_byte if line_end == -1 else line_end]
        return header.decode("utf-8").rstrip()


@dataclass(frozen=True)
class LanguageDriver:
    """Chunking rules for one tree-sitter grammar."""

    name: str
    grammar: str
    extensions: Tuple[str, ...]
    rules: Tuple[ChunkRule, ...]
    comment_types: FrozenSet[str] = frozenset({"comment"})
    transparent_types: FrozenSet[str] = frozenset()
    wrappers: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    def language(self) -> Language:
        return _load_language(self.grammar)

    def create_parser(self) -> Parser:
        return Parser(self.language())

    def unwrap(self, node: Node) -> Node:
        """Return the definition wrapped by decorator/export nodes, if any."""
        while node.type in self.wrappers:
            inner = node.child_by_field_name(self.wrappers[node.type])
            if inner is None:
                break
            node = inner
        return node

    def match(self, node: Node, enclosing: Optional[str]) -> Optional[ChunkRule]:
        """First rule, in priority order, that accepts ``node``."""
        target = self.unwrap(node)
        for rule in self.rules:
            if rule.matches(target.type, enclosing):
                return rule
        return None

    def is_comment(self, node: Node) -> bool:
        return node.type in self.comment_types

    def is_transparent(self, node: Node) -> bool:
        return node.type in self.transparent_types


def _types(*names: str) -> FrozenSet[str]:
    return frozenset(names)


PYTHON = LanguageDriver(
    name="python",
    grammar="python",
    extensions=(".py", ".pyi"),
    rules=(
        ChunkRule("method", _types("function_definition"), within=_types("class")),
        ChunkRule("function", _types("function_definition")),
        ChunkRule("class", _types("class_definition")),
    ),
    wrappers={"decorated_definition": "definition"},
)

RUST = LanguageDriver(
    name="rust",
    grammar="rust",
    extensions=(".rs",),
    rules=(
        ChunkRule("method", _types("function_item"), within=_types("impl", "trait")),
        ChunkRule("function", _types("function_item")),
        ChunkRule("struct", _types("struct_item", "union_item")),
        ChunkRule("enum", _types("enum_item")),
        ChunkRule("trait", _types("trait_item")),
        ChunkRule("macro", _types("macro_definition"), body_field=None),
        ChunkRule("impl", _types("impl_item"), name_fields=("type",)),
        ChunkRule("module", _types("mod_item")),
    ),
    comment_types=_types("line_comment", "block_comment"),
    transparent_types=_types("attribute_item"),
)

GO = LanguageDriver(
    name="go",
    grammar="go",
    extensions=(".go",),
    rules=(
        ChunkRule("method", _types("method_declaration")),
        ChunkRule("function", _types("function_declaration")),
        ChunkRule("type", _types("type_declaration"), body_field=None),
    ),
)

_JS_RULES: Tuple[ChunkRule, ...] = (
    ChunkRule("method", _types("method_definition")),
    ChunkRule(
        "function",
        _types("function_declaration", "generator_function_declaration"),
    ),
    ChunkRule("class", _types("class_declaration")),
)

JAVASCRIPT = LanguageDriver(
    name="javascript",
    grammar="javascript",
    extensions=(".js", ".jsx", ".mjs", ".cjs"),
    rules=_JS_RULES,
    wrappers={"export_statement": "declaration"},
)

_TS_RULES: Tuple[ChunkRule, ...] = (
    ChunkRule("method", _types("method_definition")),
    ChunkRule(
        "function",
        _types("function_declaration", "generator_function_declaration"),
    ),
    ChunkRule("class", _types("class_declaration", "abstract_class_declaration")),
    ChunkRule("interface", _types("interface_declaration")),
    ChunkRule("enum", _types("enum_declaration")),
    ChunkRule("module", _types("internal_module", "module")),
)

TYPESCRIPT = LanguageDriver(
    name="typescript",
    grammar="typescript",
    extensions=(".ts", ".mts", ".cts"),
    rules=_TS_RULES,
    wrappers={"export_statement": "declaration"},
)

TSX = LanguageDriver(
    name="tsx",
    grammar="tsx",
    extensions=(".tsx",),
    rules=_TS_RULES,
    wrappers={"export_statement": "declaration"},
)

JAVA = LanguageDriver(
    name="java",
    grammar="java",
    extensions=(".java",),
    rules=(
        ChunkRule("method", _types("method_declaration", "constructor_declaration")),
        ChunkRule("class", _types("class_declaration", "record_declaration")),
        ChunkRule(
            "interface",
            _types("interface_declaration", "annotation_type_declaration"),
        ),
        ChunkRule("enum", _types("enum_declaration")),
    ),
    comment_types=_types("line_comment", "block_comment"),
)

BUILTIN_DRIVERS: Tuple[LanguageDriver, ...] = (
    PYTHON,
    RUST,
    GO,
    JAVASCRIPT,
    TYPESCRIPT,
    TSX,
    JAVA,
)


class DriverRegistry:
    """
    Maps languages and file extensions to drivers.

    To add a language, build a ``LanguageDriver`` and ``register`` it.
    """

    def __init__(self, drivers: Iterable[LanguageDriver] = ()) -> None:
        self._drivers: Dict[str, LanguageDriver] = {}
        self._extension_map: Dict[str, str] = {}
        for driver in drivers:
            self.register(driver)

    def register(self, driver: LanguageDriver) -> None:
        """Register a driver; later registrations win for shared extensions."""
        self._drivers[driver.name] = driver
        for ext in driver.extensions:
            self._extension_map[ext.lower()] = driver.name

    def for_language(self, name: str) -> Optional[LanguageDriver]:
        return self._drivers.get(name.lower())

    def for_path(self, path: Union[str, Path]) -> Optional[LanguageDriver]:
        name = self._extension_map.get(Path(path).suffix.lower())
        return self._drivers.get(name) if name else None

    def is_supported(self, path: Union[str, Path]) -> bool:
        return self.for_path(path) is not None

    def languages(self) -> List[str]:
        return sorted(self._drivers)

    def extensions(self) -> List[str]:
        return sorted(self._extension_map)

    def __iter__(self) -> Iterator[LanguageDriver]:
        return iter(self._drivers.values())

    def __len__(self) -> int:
        return len(self._drivers)


@lru_cache(maxsize=1)
def default_registry() -> DriverRegistry:
    """Registry holding every built-in driver."""
    return DriverRegistry(BUILTIN_DRIVERS)
