"""In-memory outline document backing the column view.

The column view never creates or deletes nodes; it only reads and writes
properties through :class:`Outline`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .durations import duration_to_minutes
from .errors import ReadOnlyColumn

ITEM = "ITEM"
TODO = "TODO"
PRIORITY = "PRIORITY"
TAGS = "TAGS"
ALLTAGS = "ALLTAGS"
LEVEL = "LEVEL"
CATEGORY = "CATEGORY"
COLUMNS = "COLUMNS"
CLOCKSUM = "CLOCKSUM"
CLOCKSUM_T = "CLOCKSUM_T"

# Properties whose value comes from clock data rather than from the entry.
COMPUTED_PROPERTIES = frozenset({CLOCKSUM, CLOCKSUM_T})
# Properties served by the entry itself; column operators never summarise them.
SPECIAL_PROPERTIES = frozenset({ITEM, TODO, PRIORITY, TAGS, ALLTAGS, LEVEL, CATEGORY})
TIMESTAMP_PROPERTIES = frozenset({"DEADLINE", "SCHEDULED", "CLOSED", "TIMESTAMP", "TIMESTAMP_IA"})
# Date properties are cycled by moving the date, not by picking from a list.
DATE_CYCLED_PROPERTIES = frozenset({"DEADLINE", "SCHEDULED"})

_TAG_SPLIT_RE = re.compile(r"[:\s]+")


@dataclass(eq=False)
class Node:
    """Representation of one outline entry."""

    heading: str
    level: int = 1
    todo: Optional[str] = None
    priority: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    properties: Dict[str, str] = field(default_factory=dict)
    clock_minutes: float = 0.0
    clock_minutes_today: float = 0.0
    duration_hint: Optional[float] = None
    node_id: int = -1

    def __post_init__(self) -> None:
        if self.level < 0:
            raise ValueError(f"Node level must be >= 0, got {self.level}")
        self.properties = {str(key).upper(): str(value) for key, value in self.properties.items()}
        self.tags = [tag for tag in self.tags if tag]

    def as_dict(self) -> Dict[str, object]:
        """Return a serialisable representation of the node."""

        return {
            "heading": self.heading,
            "level": self.level,
            "todo": self.todo,
            "priority": self.priority,
            "tags": list(self.tags),
            "properties": dict(self.properties),
            "clock_minutes": self.clock_minutes,
        }

    def __repr__(self) -> str:
        return f"Node(id={self.node_id}, level={self.level}, heading={self.heading!r})"


def parse_tags(value: Optional[str]) -> List[str]:
    """Split ``:a:b:`` (or whitespace separated) tags."""

    if not value:
        return []
    return [tag for tag in _TAG_SPLIT_RE.split(value.strip()) if tag]


def format_tags(tags: Sequence[str]) -> Optional[str]:
    if not tags:
        return None
    return ":" + ":".join(tags) + ":"


class Outline:
    """Ordered collection of :class:`Node` objects with document keywords.

    ``columns`` is the document-level column format and ``properties`` holds
    document-level properties such as ``STATUS_ALL``.
    """

    def __init__(
        self,
        nodes: Iterable[Node] = (),
        *,
        columns: Optional[str] = None,
        properties: Optional[Mapping[str, str]] = None,
        category: Optional[str] = None,
        todo_keywords: Sequence[str] = ("TODO", "DONE"),
        default_priority: str = "B",
    ) -> None:
        self.columns = columns
        self.properties: Dict[str, str] = {
            str(key).upper(): str(value) for key, value in (properties or {}).items()
        }
        self.category = category
        self.todo_keywords = list(todo_keywords)
        self.default_priority = default_priority
        self._nodes: List[Node] = []
        self._positions: Dict[int, int] = {}
        for node in nodes:
            self.append(node)

    # -- structure -----------------------------------------------------

    def append(self, node: Node) -> Node:
        node.node_id = len(self._nodes)
        self._positions[id(node)] = len(self._nodes)
        self._nodes.append(node)
        return node

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, index: int) -> Node:
        return self._nodes[index]

    def position(self, node: Node) -> int:
        try:
            return self._positions[id(node)]
        except KeyError:
            raise KeyError(f"{node!r} does not belong to this outline") from None

    def find(self, heading: str) -> Node:
        """Return the first node whose heading equals ``heading``."""

        for node in self._nodes:
            if node.heading == heading:
                return node
        raise KeyError(f"No outline entry with heading '{heading}'")

    def subtree(self, anchor: Optional[Node] = None) -> List[Node]:
        """Return ``anchor`` and its descendants, or every node without anchor."""

        if anchor is None:
            return list(self._nodes)
        start = self.position(anchor)
        nodes = [anchor]
        for node in self._nodes[start + 1 :]:
            if node.level <= anchor.level:
                break
            nodes.append(node)
        return nodes

    def iterate_subtree(self, anchor: Optional[Node] = None) -> Iterator[Tuple[Node, int]]:
        """Yield ``(node, level)`` pairs in document order."""

        for node in self.subtree(anchor):
            yield node, node.level

    def parent(self, node: Node) -> Optional[Node]:
        position = self.position(node)
        for candidate in reversed(self._nodes[:position]):
            if candidate.level < node.level:
                return candidate
        return None

    def ancestors(self, node: Node) -> List[Node]:
        """Return the ancestors of ``node``, nearest first."""

        chain: List[Node] = []
        current = self.parent(node)
        while current is not None:
            chain.append(current)
            current = self.parent(current)
        return chain

    def top_level(self, node: Node) -> Node:
        chain = self.ancestors(node)
        return chain[-1] if chain else node

    # -- properties ----------------------------------------------------

    def get_property(self, node: Node, name: str, inherit: bool = False) -> Optional[str]:
        """Return the value of property ``name`` on ``node``.

        Special properties (``ITEM``, ``TODO``, ``TAGS`` ...) are derived from
        the entry; with ``inherit`` the ancestors and the document properties
        are searched for regular properties.
        """

        key = name.upper()
        if key == ITEM:
            return node.heading
        if key == TODO:
            return node.todo
        if key == PRIORITY:
            return node.priority or self.default_priority
        if key == TAGS:
            return format_tags(node.tags)
        if key == ALLTAGS:
            return format_tags(self.all_tags(node))
        if key == LEVEL:
            return str(node.level)
        if key in COMPUTED_PROPERTIES:
            return None
        if key == CATEGORY:
            inherit = True

        if key in node.properties:
            return node.properties[key]
        if not inherit:
            return None
        for ancestor in self.ancestors(node):
            if key in ancestor.properties:
                return ancestor.properties[key]
        if key == CATEGORY and self.category is not None:
            return self.category
        return self.properties.get(key)

    def inherited_from(self, node: Node, name: str) -> Optional[Node]:
        """Return the nearest ancestor-or-self defining property ``name``."""

        key = name.upper()
        for candidate in [node, *self.ancestors(node)]:
            if key in candidate.properties:
                return candidate
        return None

    def has_property(self, node: Node, name: str) -> bool:
        key = name.upper()
        if key in (ITEM, TODO, PRIORITY, TAGS, LEVEL):
            return True
        return key in node.properties

    def set_property(self, node: Node, name: str, value: str) -> None:
        key = name.upper()
        text = "" if value is None else str(value)
        if key == ITEM:
            node.heading = text
        elif key == TODO:
            node.todo = text.strip() or None
        elif key == PRIORITY:
            node.priority = text.strip() or None
        elif key == TAGS:
            node.tags = parse_tags(text)
        elif key in COMPUTED_PROPERTIES or key in (ALLTAGS, LEVEL):
            raise ReadOnlyColumn(f"Property '{key}' cannot be set")
        else:
            node.properties[key] = text

    def delete_property(self, node: Node, name: str) -> None:
        node.properties.pop(name.upper(), None)

    def all_tags(self, node: Node) -> List[str]:
        tags: List[str] = []
        for holder in [*reversed(self.ancestors(node)), node]:
            for tag in holder.tags:
                if tag not in tags:
                    tags.append(tag)
        return tags

    def allowed_values(self, node: Node, name: str) -> Optional[List[str]]:
        """Return the allowed values of property ``name`` at ``node``."""

        key = name.upper()
        if key == TODO:
            return [*self.todo_keywords, ""]
        if key == PRIORITY:
            return ["A", "B", "C"]
        raw = self.get_property(node, f"{key}_ALL", inherit=True)
        if raw is None:
            return None
        values = _split_allowed(raw)
        return values or None

    def clock_minutes(self, node: Node, today: bool = False) -> float:
        return node.clock_minutes_today if today else node.clock_minutes

    def duration_hint(self, node: Node) -> Optional[float]:
        return node.duration_hint

    # -- construction --------------------------------------------------

    @classmethod
    def from_tree(cls, entries: Iterable[Mapping[str, Any]], **kwargs: Any) -> "Outline":
        """Build an outline from nested mappings with ``children`` lists."""

        outline = cls(**kwargs)
        for node in iter_tree_nodes(entries):
            outline.append(node)
        return outline


def _split_allowed(raw: str) -> List[str]:
    values: List[str] = []
    for match in re.finditer(r'"([^"]*)"|(\S+)', raw):
        values.append(match.group(1) if match.group(1) is not None else match.group(2))
    return values


def iter_tree_nodes(entries: Iterable[Mapping[str, Any]], level: int = 1) -> Iterator[Node]:
    """Yield :class:`Node` instances from a nested tree of mappings."""

    for entry in entries:
        yield Node(
            heading=str(entry.get("heading", "")),
            level=int(entry.get("level", level)),
            todo=entry.get("todo"),
            priority=entry.get("priority"),
            tags=_coerce_tags(entry.get("tags")),
            properties={key: str(value) for key, value in (entry.get("properties") or {}).items()},
            clock_minutes=coerce_minutes(entry.get("clock")) or 0.0,
            clock_minutes_today=coerce_minutes(entry.get("clock_today")) or 0.0,
            duration_hint=coerce_minutes(entry.get("duration")),
        )
        children = entry.get("children") or []
        if children:
            yield from iter_tree_nodes(children, level=int(entry.get("level", level)) + 1)


def coerce_minutes(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return duration_to_minutes(str(value))


def _coerce_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return parse_tags(value)
    return [str(tag) for tag in value]


__all__ = [
    "ALLTAGS",
    "CLOCKSUM",
    "CLOCKSUM_T",
    "COLUMNS",
    "COMPUTED_PROPERTIES",
    "DATE_CYCLED_PROPERTIES",
    "ITEM",
    "LEVEL",
    "Node",
    "Outline",
    "PRIORITY",
    "SPECIAL_PROPERTIES",
    "TAGS",
    "TIMESTAMP_PROPERTIES",
    "TODO",
    "coerce_minutes",
    "format_tags",
    "iter_tree_nodes",
    "parse_tags",
]
