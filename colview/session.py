"""Scoped column view sessions.

A :class:`ViewSession` owns everything an active view needs: the compiled
format, the summary cache, the column widths and the regions drawn on a
:class:`~colview.surface.Surface`.  Quitting the session (explicitly, through
re-activation or by leaving a ``with`` block) releases all of it.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Union

from .aggregation import AggregationEngine, Clock, SummaryCache
from .config import ViewConfig
from .errors import (
    ColumnViewError,
    IndexOutOfRange,
    InvalidFormat,
    NoActiveSession,
    UnknownColumn,
)
from .formats import ColumnSpec, compile_format, parse_column, uncompile_format
from .outline import COLUMNS, Node, Outline
from .render import DisplayFilter, DisplayRow, ProjectionRenderer, Region
from .summaries import SummaryRegistry
from .surface import MemorySurface, Surface

logger = logging.getLogger(__name__)


class SessionState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    EDITING = "editing"


class ViewSession:
    """Column view over one outline.

    ``activate`` computes the format, runs every summary and draws the rows;
    ``quit`` removes every region and read-only mark again.  Edits go through
    :class:`~colview.edit.EditController`, which enters :meth:`editing` and
    calls :meth:`update` to refresh only the affected column.
    """

    def __init__(
        self,
        outline: Outline,
        *,
        config: Optional[ViewConfig] = None,
        registry: Optional[SummaryRegistry] = None,
        surface: Optional[Surface] = None,
        clock: Clock = dt.datetime.now,
        display_filter: Optional[DisplayFilter] = None,
    ) -> None:
        self.outline = outline
        self.config = config or ViewConfig()
        self.registry = registry or SummaryRegistry()
        self.surface = surface if surface is not None else MemorySurface()
        self.clock = clock
        self.cache = SummaryCache()
        self.renderer = ProjectionRenderer(
            outline,
            self.cache,
            ellipsis=self.config.ellipsis,
            separator=self.config.separator,
            hide_leading_stars=self.config.hide_leading_stars,
            effort_property=self.config.effort_property,
            display_filter=display_filter,
        )
        self.state = SessionState.INACTIVE
        self.engine: Optional[AggregationEngine] = None
        self.anchor: Optional[Node] = None
        self.format: Optional[str] = None
        self.specs: List[ColumnSpec] = []
        self.widths: List[int] = []
        self.rows: Dict[int, DisplayRow] = {}
        self.regions: Dict[int, List[Region]] = {}
        self.title = ""
        self.hscroll = 0

    # -- lifecycle -----------------------------------------------------

    @property
    def active(self) -> bool:
        return self.state is not SessionState.INACTIVE

    @property
    def now(self) -> Optional[dt.datetime]:
        return self.engine.now if self.engine is not None else None

    def activate(
        self,
        node: Optional[Node] = None,
        columns: Optional[str] = None,
        *,
        whole_document: Optional[bool] = None,
    ) -> "ViewSession":
        """Show the column view for ``node``'s tree, or the whole outline.

        A running session is torn down first.  When computing or drawing fails
        the session stays inactive and the error propagates.
        """

        if self.active:
            self.quit()

        if whole_document is None:
            whole_document = node is None
        anchor = None if whole_document else self.anchor_for(node)
        fmt = self.format_for(anchor, columns)
        specs = compile_format(fmt)

        engine = AggregationEngine(
            self.outline,
            specs,
            registry=self.registry,
            cache=self.cache,
            anchor=anchor,
            clock=self.clock,
            write_back=self.config.write_back,
        )
        try:
            engine.compute_all()
        except ColumnViewError:
            self.cache.clear()
            raise

        self.engine = engine
        self.anchor = anchor
        self.format = fmt
        self.specs = list(specs)
        self.state = SessionState.ACTIVE
        try:
            self._render_all()
        except ColumnViewError:
            self.quit()
            raise
        logger.info(
            "Column view active on %s with %d columns and %d rows",
            "the whole outline" if anchor is None else repr(anchor),
            len(self.specs),
            len(self.rows),
        )
        return self

    def quit(self) -> None:
        """Release every region, read-only mark and the title line."""

        if not self.active:
            return
        self._release_rows()
        self.surface.set_header(None)
        self.cache.clear()
        self.engine = None
        self.anchor = None
        self.format = None
        self.specs = []
        self.widths = []
        self.title = ""
        self.hscroll = 0
        self.state = SessionState.INACTIVE
        logger.info("Column view closed")

    def __enter__(self) -> "ViewSession":
        return self

    def __exit__(self, exc_type, exc, traceback) -> bool:
        self.quit()
        return False

    def require_active(self) -> None:
        if not self.active:
            raise NoActiveSession("No column view is active")

    @contextmanager
    def editing(self) -> Iterator["ViewSession"]:
        """Hold the session in the editing state for the duration of the block."""

        self.require_active()
        if self.state is SessionState.EDITING:
            yield self
            return
        self.state = SessionState.EDITING
        try:
            yield self
        finally:
            if self.state is SessionState.EDITING:
                self.state = SessionState.ACTIVE

    def anchor_for(self, node: Node) -> Node:
        holder = self.outline.inherited_from(node, COLUMNS)
        return holder if holder is not None else self.outline.top_level(node)

    def format_for(self, anchor: Optional[Node], columns: Optional[str] = None) -> str:
        if columns:
            return columns
        if anchor is not None:
            holder = self.outline.inherited_from(anchor, COLUMNS)
            if holder is not None:
                return holder.properties[COLUMNS]
        if self.outline.columns:
            return self.outline.columns
        return self.config.default_format

    # -- drawing -------------------------------------------------------

    def redo(self) -> None:
        """Recompute every summary and redraw the whole view."""

        self.require_active()
        self._apply_specs(self.specs)

    def _render_all(self) -> None:
        rows = [self.renderer.collect_row(node, self.specs) for node in self.outline.subtree(self.anchor)]
        widths = self.renderer.compute_widths(self.specs, rows)
        self._release_rows()
        self.widths = widths
        for row in rows:
            self.rows[row.node.node_id] = row
            self._draw_row(row)
        self.title = self.renderer.title_line(self.specs, self.widths)
        self.surface.set_header(self.title[self.hscroll :])

    def _draw_row(self, row: DisplayRow) -> None:
        regions = self.renderer.render_row(row, self.widths)
        self.regions[row.node.node_id] = regions
        for region in regions:
            self.surface.put_region(region)
        self.surface.set_read_only(row.node.node_id, True)

    def _release_rows(self) -> None:
        for node_id in list(self.regions):
            self.surface.clear_row(node_id)
            self.surface.set_read_only(node_id, False)
        self.regions.clear()
        self.rows.clear()

    def update(self, property: str) -> None:
        """Recompute ``property`` and refresh only the cells showing it."""

        self.require_active()
        key = property.upper()
        self.engine.compute(key)
        self.refresh_property(key)

    def refresh_property(self, property: str) -> None:
        key = property.upper()
        indexes = [index for index, spec in enumerate(self.specs) if spec.property == key]
        if not indexes:
            return
        # Build every new cell before touching the rows so a display failure
        # leaves the drawn view as it was.
        fresh = [
            (row, index, self.renderer.make_cell(index, self.specs[index], row.node))
            for row in self.rows.values()
            for index in indexes
        ]
        for row, index, cell in fresh:
            row.cells[index] = cell
            region = self.renderer.render_cell(row, index, self.widths[index])
            self.regions[row.node.node_id][index] = region
            self.surface.put_region(region)
        logger.debug("Refreshed %d cells of %s", len(fresh), key)

    def set_hscroll(self, offset: int) -> str:
        """Scroll the title line to match the view's horizontal offset."""

        self.require_active()
        self.hscroll = max(0, int(offset))
        visible = self.title[self.hscroll :]
        self.surface.set_header(visible)
        return visible

    # -- lookup --------------------------------------------------------

    def visible_nodes(self) -> List[Node]:
        return [row.node for row in self.rows.values()]

    def row(self, node: Node) -> DisplayRow:
        self.require_active()
        try:
            return self.rows[node.node_id]
        except KeyError:
            raise UnknownColumn(f"{node!r} is not shown in the column view") from None

    def column_index(self, node: Node, property: str) -> int:
        """Return the position of the first column showing ``property`` on ``node``'s row."""

        key = property.upper()
        self.row(node)
        for region in self.regions[node.node_id]:
            if region.property == key:
                return region.column
        raise UnknownColumn(f"No column for property '{key}'")

    def region(self, node: Node, property: str) -> Region:
        return self.regions[node.node_id][self.column_index(node, property)]

    def value_at(self, node: Node, property: str) -> str:
        """Return the raw value shown for ``property`` on ``node``'s row."""

        return self.region(node, property).raw

    def is_computed(self, node: Node, index: int) -> bool:
        self.require_active()
        return self.engine.is_computed(index, node)

    # -- format editing ------------------------------------------------

    def insert_column(self, index: int, column: Union[str, ColumnSpec]) -> ColumnSpec:
        """Insert ``column`` (a spec or a ``%PROP`` token) before position ``index``."""

        self.require_active()
        spec = parse_column(column) if isinstance(column, str) else column
        if not 0 <= index <= len(self.specs):
            raise IndexOutOfRange(f"Cannot insert a column at position {index}")
        specs = list(self.specs)
        specs.insert(index, spec)
        self._apply_specs(specs)
        return spec

    def delete_column(self, index: int) -> ColumnSpec:
        self.require_active()
        self._check_index(index)
        if len(self.specs) == 1:
            raise InvalidFormat("Cannot delete the last column")
        specs = list(self.specs)
        removed = specs.pop(index)
        self._apply_specs(specs)
        return removed

    def move_column(self, index: int, offset: int) -> int:
        """Move the column at ``index`` by ``offset`` positions; return its new position."""

        self.require_active()
        self._check_index(index)
        target = index + offset
        if not 0 <= target < len(self.specs):
            raise IndexOutOfRange(f"Cannot move column {index} to position {target}")
        specs = list(self.specs)
        specs.insert(target, specs.pop(index))
        self._apply_specs(specs)
        return target

    def widen_column(self, index: int, delta: int) -> int:
        """Give the column at ``index`` an explicit width changed by ``delta``."""

        self.require_active()
        self._check_index(index)
        spec = self.specs[index]
        current = spec.width if spec.width is not None else self.widths[index]
        width = max(1, current + delta)
        specs = list(self.specs)
        specs[index] = ColumnSpec(
            property=spec.property,
            title=spec.title,
            width=width,
            operator=spec.operator,
            printf=spec.printf,
        )
        self._apply_specs(specs)
        return width

    def set_format(self, columns: str) -> None:
        self.require_active()
        self._apply_specs(compile_format(columns))

    def store_format(self) -> str:
        """Write the current format where it was read from and return it."""

        self.require_active()
        text = uncompile_format(self.specs)
        holder = self.outline.inherited_from(self.anchor, COLUMNS) if self.anchor is not None else None
        if holder is not None:
            self.outline.set_property(holder, COLUMNS, text)
        else:
            self.outline.columns = text
        self.format = text
        logger.info("Stored column format %r", text)
        return text

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.specs):
            raise IndexOutOfRange(f"No column at position {index}")

    def _apply_specs(self, specs: Sequence[ColumnSpec]) -> None:
        previous_specs = list(self.specs)
        previous_cache = self.cache.export()
        try:
            self.engine.compute_all(specs)
            self.specs = list(specs)
            self._render_all()
        except ColumnViewError:
            self.engine.specs = previous_specs
            self.specs = previous_specs
            self.cache.load(previous_cache)
            raise
        self.format = uncompile_format(self.specs)
        logger.debug("Redrew column view with format %r", self.format)


__all__ = ["SessionState", "ViewSession"]
