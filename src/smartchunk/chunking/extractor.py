"""
Tree-sitter chunk extraction.

The extractor parses one file, walks the syntax tree depth first while
carrying the chain of enclosing chunks, and turns every node accepted by the
language driver into a ``RawCandidate``. Each candidate also receives a
segment tree: its byte span cut at line starts along syntactic children, so
that the splitter can break oversized chunks without touching the tree.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from tree_sitter import Node, Parser  # type: ignore[import]

from ..errors import ParseFailureError, UnreadableFileError
from ..logger import get_logger
from ..models import RawCandidate, Segment, SourceFile
from .drivers import ChunkRule, DriverRegistry, LanguageDriver, default_registry, node_text

log = get_logger(__name__)

_NodeKey = Tuple[int, int, str]


def _key(node: Node) -> _NodeKey:
    return (node.start_byte, node.end_byte, node.type)


def _previous(node: Node) -> Optional[Node]:
    # Leading comments of a block may hang off the enclosing node instead.
    while node.prev_sibling is None and node.parent is not None and node.parent.start_byte == node.start_byte:
        node = node.parent
    return node.prev_sibling


@dataclass
class _Match:
    node: Node
    target: Node
    rule: ChunkRule
    name: str
    context: Tuple[str, ...]
    parent: Optional[int]


class ChunkExtractor:
    """Turns source files into ordered chunk candidates."""

    def __init__(
        self,
        registry: Optional[DriverRegistry] = None,
        tolerate_syntax_errors: bool = False,
    ) -> None:
        self.registry = registry or default_registry()
        self.tolerate_syntax_errors = tolerate_syntax_errors
        self._local = threading.local()

    def _get_parser(self, driver: LanguageDriver) -> Parser:
        # Parsers are not thread safe; every worker thread keeps its own.
        parsers: Optional[Dict[str, Parser]] = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        if driver.grammar not in parsers:
            parsers[driver.grammar] = driver.create_parser()
        return parsers[driver.grammar]

    @staticmethod
    def read_source(path: Union[str, Path], driver: LanguageDriver) -> SourceFile:
        """Read ``path`` as UTF-8 bytes tagged with the driver's language."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise UnreadableFileError(path, exc.strerror or str(exc)) from exc
        try:
            data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UnreadableFileError(path, f"not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc
        return SourceFile(path=str(path), language=driver.name, data=data)

    def extract_file(
        self, path: Union[str, Path], driver: Optional[LanguageDriver] = None
    ) -> List[RawCandidate]:
        driver = driver or self.registry.for_path(path)
        if driver is None:
            raise ValueError(f"Unsupported language for chunking: {path}")
        return self.extract(self.read_source(path, driver), driver)

    def extract(self, source: SourceFile, driver: LanguageDriver) -> List[RawCandidate]:
        """Top-level candidates of ``source`` in source order."""
        tree = self._get_parser(driver).parse(source.data)
        root = tree.root_node
        if root.has_error and not self.tolerate_syntax_errors:
            line = self._first_error_line(root, source)
            raise ParseFailureError(source.path, f"syntax error near line {line}")

        matches = self._walk(root, driver, source)
        candidates = self._build(matches, driver, source)
        log.debug(
            "candidates_extracted",
            file=source.path,
            top_level=len(candidates),
            total=len(matches),
        )
        return candidates

    @staticmethod
    def _first_error_line(root: Node, source: SourceFile) -> int:
        pending = [root]
        while pending:
            node = pending.pop()
            if node.type == "ERROR" or node.is_missing:
                return source.line_of(node.start_byte)
            if node.has_error:
                pending.extend(reversed(node.children))
        return source.line_of(root.start_byte)

    def _walk(self, root: Node, driver: LanguageDriver, source: SourceFile) -> List[_Match]:
        matches: List[_Match] = []
        # (node, ancestor descriptors, enclosing chunk type, enclosing match index)
        stack: List[Tuple[Node, Tuple[str, ...], Optional[str], Optional[int]]] = [
            (root, (), None, None)
        ]
        while stack:
            node, ancestors, enclosing, parent = stack.pop()
            rule = driver.match(node, enclosing)
            descend_into = node
            if rule is not None:
                target = driver.unwrap(node)
                name = rule.extract_name(target, source.data)
                matches.append(_Match(node, target, rule, name, ancestors, parent))
                ancestors = ancestors + (f"{rule.chunk_type}({name})",)
                enclosing = rule.chunk_type
                parent = len(matches) - 1
                descend_into = target
            for child in reversed(descend_into.children):
                stack.append((child, ancestors, enclosing, parent))
        return matches

    def _build(
        self, matches: Sequence[_Match], driver: LanguageDriver, source: SourceFile
    ) -> List[RawCandidate]:
        lookup: Dict[_NodeKey, RawCandidate] = {}
        built: List[Optional[RawCandidate]] = [None] * len(matches)
        # Innermost first, so parents can reference nested candidates.
        for index in range(len(matches) - 1, -1, -1):
            match = matches[index]
            node = match.node
            candidate = RawCandidate(
                source=source,
                chunk_type=match.rule.chunk_type,
                chunk_name=match.name,
                context=match.context,
                signature=match.rule.extract_signature(match.target, source.data),
                comment=self._preceding_comment(node, driver, source),
                start_byte=node.start_byte,
                end_byte=node.end_byte,
                start_line=source.line_of(node.start_byte),
                end_line=source.last_line_of(node.start_byte, node.end_byte),
                segments=self._segments(
                    node.children, node.start_byte, node.end_byte, source, lookup
                ),
            )
            lookup[_key(node)] = candidate
            built[index] = candidate
        return [
            candidate
            for candidate, match in zip(built, matches)
            if candidate is not None and match.parent is None
        ]

    @staticmethod
    def _preceding_comment(node: Node, driver: LanguageDriver, source: SourceFile) -> str:
        """Contiguous comment block directly above ``node``."""
        parts: List[str] = []
        boundary_line = source.line_of(node.start_byte)
        sibling = _previous(node)
        while sibling is not None:
            if driver.is_comment(sibling):
                if source.last_line_of(sibling.start_byte, sibling.end_byte) < boundary_line - 1:
                    break
                before = _previous(sibling)
                if (
                    before is not None
                    and not driver.is_comment(before)
                    and source.last_line_of(before.start_byte, before.end_byte)
                    == source.line_of(sibling.start_byte)
                ):
                    # Trailing comment of the previous statement.
                    break
                parts.append(node_text(sibling, source.data).strip())
                boundary_line = source.line_of(sibling.start_byte)
            elif driver.is_transparent(sibling):
                boundary_line = source.line_of(sibling.start_byte)
            else:
                break
            sibling = _previous(sibling)
        return "\n".join(reversed(parts))

    def _segments(
        self,
        nodes: Sequence[Node],
        lo: int,
        hi: int,
        source: SourceFile,
        lookup: Dict[_NodeKey, RawCandidate],
    ) -> Tuple[Segment, ...]:
        """
        Partition ``[lo, hi)`` into segments along ``nodes``.

        Nodes sharing a line stay in one segment. When everything lands on a
        single segment, multi-line nodes are opened up until a line break
        between siblings appears. Nested candidates are never opened; a group
        they cannot be separated from becomes their segment.
        """
        current = [node for node in nodes if node.end_byte > node.start_byte]
        groups = self._line_groups(current, source)
        while len(groups) == 1:
            expanded: List[Node] = []
            opened = False
            for node in groups[0]:
                if _key(node) not in lookup and node.child_count and self._spans_lines(node, source):
                    expanded.extend(c for c in node.children if c.end_byte > c.start_byte)
                    opened = True
                else:
                    expanded.append(node)
            if not opened:
                break
            groups = self._line_groups(expanded, source)

        if len(groups) == 1:
            nested = self._group_chunk(groups[0], source, lookup)
            if nested is not None:
                return (Segment(lo, hi, chunk=nested),)
            return ()
        if not groups:
            return ()

        bounds = [lo]
        bounds.extend(source.line_start(group[0].start_byte) for group in groups[1:])
        bounds.append(hi)

        segments: List[Segment] = []
        for group, start, end in zip(groups, bounds, bounds[1:]):
            nested = lookup.get(_key(group[0])) if len(group) == 1 else None
            if nested is not None:
                segments.append(Segment(start, end, chunk=nested))
                continue
            children: Tuple[Segment, ...] = ()
            if source.line_of(start) < source.last_line_of(start, end):
                children = self._segments(group, start, end, source, lookup)
            segments.append(Segment(start, end, children=children))
        return tuple(segments)

    def _group_chunk(
        self,
        group: Sequence[Node],
        source: SourceFile,
        lookup: Dict[_NodeKey, RawCandidate],
    ) -> Optional[RawCandidate]:
        """
        The nested candidate that owns an unbreakable line group.

        Nodes sharing the first or last line of a multi-line nested chunk
        (a trailing comment after its closing brace, say) travel with it.
        """
        if len(group) == 1:
            return lookup.get(_key(group[0]))
        owners = [
            node for node in group if _key(node) in lookup and self._spans_lines(node, source)
        ]
        if not owners:
            return None
        owner = max(owners, key=lambda node: node.end_byte - node.start_byte)
        return lookup[_key(owner)]

    @staticmethod
    def _spans_lines(node: Node, source: SourceFile) -> bool:
        return source.line_of(node.start_byte) < source.last_line_of(node.start_byte, node.end_byte)

    @staticmethod
    def _line_groups(nodes: Sequence[Node], source: SourceFile) -> List[List[Node]]:
        groups: List[List[Node]] = []
        last_line = 0
        for node in nodes:
            first_line = source.line_of(node.start_byte)
            if groups and first_line <= last_line:
                groups[-1].append(node)
            else:
                groups.append([node])
            last_line = max(last_line, source.last_line_of(node.start_byte, node.end_byte))
        return groups
