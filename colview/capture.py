"""Read-only tabular capture of a column view."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple, Union

import pandas as pd

from .aggregation import Clock
from .config import ViewConfig
from .outline import ITEM, Node, Outline
from .render import DisplayFilter
from .session import ViewSession
from .summaries import SummaryRegistry

logger = logging.getLogger(__name__)

NodeMatcher = Union[str, Callable[[Node], bool]]


@dataclass
class CaptureResult:
    """Header titles plus ``(level, values)`` for every captured row."""

    header_row: List[str]
    body_rows: List[Tuple[int, List[str]]] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        records = [[level, *values] for level, values in self.body_rows]
        return pd.DataFrame(records, columns=["level", *self.header_row])

    def __len__(self) -> int:
        return len(self.body_rows)


def capture_view(
    outline: Outline,
    *,
    columns: Optional[str] = None,
    anchor: Optional[Node] = None,
    max_level: Optional[int] = None,
    match: Optional[NodeMatcher] = None,
    skip_empty_rows: bool = False,
    exclude_tags: Optional[Iterable[str]] = None,
    config: Optional[ViewConfig] = None,
    registry: Optional[SummaryRegistry] = None,
    clock: Clock = dt.datetime.now,
    display_filter: Optional[DisplayFilter] = None,
) -> CaptureResult:
    """Compute a column view and return its rows as plain strings.

    Headings are captured without stars; every other cell is captured as
    displayed.  The temporary session is released before returning.
    """

    matches = _node_matcher(outline, match)
    excluded = set(exclude_tags or ())
    session = ViewSession(
        outline,
        config=config,
        registry=registry,
        clock=clock,
        display_filter=display_filter,
    )
    with session.activate(anchor, columns, whole_document=anchor is None):
        header = [spec.title for spec in session.specs]
        body: List[Tuple[int, List[str]]] = []
        for row in session.rows.values():
            node = row.node
            if max_level is not None and node.level > max_level:
                continue
            if matches is not None and not matches(node):
                continue
            if excluded and excluded.intersection(outline.all_tags(node)):
                continue
            values = [cell.raw if cell.spec.property == ITEM else cell.display for cell in row.cells]
            if skip_empty_rows and not any(
                value.strip()
                for cell, value in zip(row.cells, values)
                if cell.spec.property != ITEM
            ):
                continue
            body.append((node.level, values))

    logger.info("Captured %d rows with %d columns", len(body), len(header))
    return CaptureResult(header_row=header, body_rows=body)


def _node_matcher(outline: Outline, match: Optional[NodeMatcher]) -> Optional[Callable[[Node], bool]]:
    if match is None or callable(match):
        return match
    tag = str(match)
    return lambda node: tag in outline.all_tags(node)


__all__ = ["CaptureResult", "capture_view"]
