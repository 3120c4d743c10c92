"""Turning nodes into fixed-width rows of column cells."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .aggregation import SummaryCache
from .durations import minutes_to_duration, strip_timestamp_delimiters
from .errors import FormatError, NotANumber
from .formats import ColumnSpec
from .outline import ITEM, TIMESTAMP_PROPERTIES, Node, Outline
from .summaries import format_number, to_number

ELLIPSIS = "…"
SEPARATOR = " | "

DisplayFilter = Callable[[str, str], Optional[str]]

_LINK_RE = re.compile(r"\[\[([^\]]+)\](?:\[([^\]]+)\])?\]")


def _char_width(char: str) -> int:
    if unicodedata.combining(char) or unicodedata.category(char) in ("Mn", "Me", "Cf"):
        return 0
    if "\ufe00" <= char <= "\ufe0f":
        return 0
    return 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1


def string_width(text: str) -> int:
    """Return the number of terminal columns needed to display ``text``."""

    return sum(_char_width(char) for char in text)


def _is_boundary(text: str, index: int) -> bool:
    # A cut may not separate a character from the marks or joiners after it.
    if index <= 0 or index >= len(text):
        return True
    if _char_width(text[index]) == 0:
        return False
    return text[index - 1] != "\u200d"


def truncate_below_width(text: str, width: int) -> str:
    """Return the longest prefix of ``text`` no wider than ``width``.

    The prefix shrinks by half the overflow at each step and always ends on
    a grapheme boundary.
    """

    end = len(text)
    while end > 0:
        while not _is_boundary(text, end):
            end -= 1
        excess = string_width(text[:end]) - width
        if excess <= 0:
            return text[:end]
        end -= max(1, excess // 2)
    return ""


def add_ellipsis(text: str, width: int, ellipsis: str = ELLIPSIS) -> str:
    """Clamp ``text`` to ``width`` columns, marking truncation with ``ellipsis``."""

    if string_width(text) <= width:
        return text
    if width <= string_width(ellipsis):
        return truncate_below_width(ellipsis, width)
    return truncate_below_width(text, width - string_width(ellipsis)) + ellipsis


def pad(text: str, width: int) -> str:
    return text + " " * max(0, width - string_width(text))


def link_display(text: str) -> str:
    """Show ``[[target][description]]`` links as their description."""

    return _LINK_RE.sub(lambda match: match.group(2) or match.group(1), text)


@dataclass
class Cell:
    """One column of a :class:`DisplayRow`."""

    spec: ColumnSpec
    raw: str
    display: str


@dataclass
class DisplayRow:
    node: Node
    cells: List[Cell] = field(default_factory=list)

    def raw_values(self) -> List[str]:
        return [cell.raw for cell in self.cells]

    def display_values(self) -> List[str]:
        return [cell.display for cell in self.cells]


@dataclass
class Region:
    """A rendered cell bound to ``(node, column)``.

    The region after the last column covers the rest of the row; it has no
    property and is hidden and read-only.
    """

    node_id: int
    column: int
    property: Optional[str]
    raw: str
    display: str
    width: int
    text: str
    spec: Optional[ColumnSpec] = None
    read_only: bool = False
    hidden: bool = False


class ProjectionRenderer:
    """Compute cell values and lay them out at the session's column widths."""

    def __init__(
        self,
        outline: Outline,
        cache: SummaryCache,
        *,
        ellipsis: str = ELLIPSIS,
        separator: str = SEPARATOR,
        hide_leading_stars: bool = False,
        effort_property: str = "EFFORT",
        display_filter: Optional[DisplayFilter] = None,
    ) -> None:
        self.outline = outline
        self.cache = cache
        self.ellipsis = ellipsis
        self.separator = separator
        self.hide_leading_stars = hide_leading_stars
        self.effort_property = effort_property.upper()
        self.display_filter = display_filter

    def resolve_value(self, index: int, spec: ColumnSpec, node: Node) -> str:
        summary = self.cache.get(index, node)
        if summary is not None:
            return summary
        value = self.outline.get_property(node, spec.property)
        if value is not None:
            return value
        if spec.property == self.effort_property:
            hint = self.outline.duration_hint(node)
            if hint:
                return minutes_to_duration(hint)
        return ""

    def displayed_value(
        self,
        spec: ColumnSpec,
        node: Node,
        raw: str,
        no_star: bool = False,
        summarized: bool = False,
    ) -> str:
        if self.display_filter is not None:
            filtered = self.display_filter(spec.title, raw)
            if filtered is not None:
                return filtered
        if spec.property == ITEM:
            stars = ""
            if not no_star:
                leading = " " if self.hide_leading_stars else "*"
                stars = leading * max(0, node.level - 1) + "* "
            return stars + link_display(raw)
        if spec.property in TIMESTAMP_PROPERTIES:
            return strip_timestamp_delimiters(raw)
        # Summaries are already formatted by their operator.
        if spec.printf and raw.strip() and not summarized:
            try:
                return format_number(to_number(raw), spec.printf)
            except NotANumber as exc:
                raise FormatError(
                    f"Cannot format {raw!r} with {spec.printf!r} in column '{spec.property}'"
                ) from exc
        return raw

    def make_cell(self, index: int, spec: ColumnSpec, node: Node) -> Cell:
        raw = self.resolve_value(index, spec, node)
        display = self.displayed_value(spec, node, raw, summarized=self.cache.has(index, node))
        return Cell(spec=spec, raw=raw, display=display)

    def collect_row(self, node: Node, specs: Sequence[ColumnSpec]) -> DisplayRow:
        return DisplayRow(
            node=node,
            cells=[self.make_cell(index, spec, node) for index, spec in enumerate(specs)],
        )

    def compute_widths(self, specs: Sequence[ColumnSpec], rows: Sequence[DisplayRow]) -> List[int]:
        widths: List[int] = []
        for index, spec in enumerate(specs):
            if spec.width is not None:
                widths.append(spec.width)
                continue
            width = string_width(spec.title)
            for row in rows:
                width = max(width, string_width(row.cells[index].display))
            widths.append(width)
        return widths

    def cell_text(self, display: str, width: int) -> str:
        return pad(add_ellipsis(display, width, self.ellipsis), width) + self.separator

    def render_cell(self, row: DisplayRow, index: int, width: int) -> Region:
        cell = row.cells[index]
        return Region(
            node_id=row.node.node_id,
            column=index,
            property=cell.spec.property,
            raw=cell.raw,
            display=cell.display,
            width=width,
            text=self.cell_text(cell.display, width),
            spec=cell.spec,
        )

    def render_row(self, row: DisplayRow, widths: Sequence[int]) -> List[Region]:
        regions = [self.render_cell(row, index, widths[index]) for index in range(len(row.cells))]
        regions.append(
            Region(
                node_id=row.node.node_id,
                column=len(row.cells),
                property=None,
                raw="",
                display="",
                width=0,
                text="",
                read_only=True,
                hidden=True,
            )
        )
        return regions

    def title_line(self, specs: Sequence[ColumnSpec], widths: Sequence[int]) -> str:
        return "".join(self.cell_text(spec.title, width) for spec, width in zip(specs, widths))


__all__ = [
    "Cell",
    "DisplayRow",
    "ELLIPSIS",
    "ProjectionRenderer",
    "Region",
    "SEPARATOR",
    "add_ellipsis",
    "link_display",
    "string_width",
    "truncate_below_width",
]
