"""Bottom-up computation of column summaries over an outline subtree."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .durations import HMM, minutes_to_duration
from .errors import AggregateError, ColumnViewError, FormatError, InvalidAge, NotANumber
from .formats import ColumnSpec
from .outline import CLOCKSUM_T, COMPUTED_PROPERTIES, SPECIAL_PROPERTIES, Node, Outline
from .summaries import SummaryRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]


class SummaryCache:
    """Summaries keyed by column position and node identity.

    Entries are replaced one column at a time, so recomputing a column never
    touches the summaries of the others.
    """

    def __init__(self) -> None:
        self._columns: Dict[int, Dict[int, str]] = {}

    def get(self, column: int, node: Node) -> Optional[str]:
        return self._columns.get(column, {}).get(node.node_id)

    def has(self, column: int, node: Node) -> bool:
        return node.node_id in self._columns.get(column, {})

    def column(self, column: int) -> Dict[int, str]:
        return dict(self._columns.get(column, {}))

    def replace(self, column: int, entries: Dict[int, str]) -> None:
        self._columns[column] = dict(entries)

    def clear(self) -> None:
        self._columns.clear()

    def export(self) -> Dict[int, Dict[int, str]]:
        return {column: dict(entries) for column, entries in self._columns.items()}

    def load(self, columns: Dict[int, Dict[int, str]]) -> None:
        self._columns = {column: dict(entries) for column, entries in columns.items()}

    def snapshot(self) -> Dict[Tuple[int, int], str]:
        return {
            (column, node_id): value
            for column, entries in self._columns.items()
            for node_id, value in entries.items()
        }

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._columns.values())


class AggregationEngine:
    """Compute per-column summaries for the subtree below ``anchor``.

    The walk goes through the nodes in reverse document order keeping one
    list of values per level.  Reaching a node shallower than the values
    gathered so far closes its children: their values are summarised, the
    summary is cached for the node and fed to the node's own level.
    """

    def __init__(
        self,
        outline: Outline,
        specs: Sequence[ColumnSpec] = (),
        *,
        registry: Optional[SummaryRegistry] = None,
        cache: Optional[SummaryCache] = None,
        anchor: Optional[Node] = None,
        clock: Clock = dt.datetime.now,
        write_back: bool = True,
    ) -> None:
        self.outline = outline
        self.specs: List[ColumnSpec] = list(specs)
        self.registry = registry or SummaryRegistry()
        self.cache = cache if cache is not None else SummaryCache()
        self.anchor = anchor
        self.clock = clock
        self.write_back = write_back
        self.now: Optional[dt.datetime] = None

    def compute_all(self, specs: Optional[Iterable[ColumnSpec]] = None) -> None:
        """Recompute every column from scratch.

        Only the first column showing a given property may write its summaries
        back.  A failing column is left empty; the first failure is raised once
        all other columns are computed.
        """

        if specs is not None:
            self.specs = list(specs)
        self.cache.clear()
        self.now = self.clock()
        seen = set()
        failures: List[ColumnViewError] = []
        for index, spec in enumerate(self.specs):
            try:
                self._compute_column(index, spec, spec.property not in seen)
            except ColumnViewError as exc:
                logger.error("Column %d (%s) failed: %s", index, spec.property, exc)
                failures.append(exc)
            seen.add(spec.property)
        if failures:
            raise failures[0]

    def compute(self, property: str) -> None:
        """Recompute every column showing ``property``.

        All columns are computed before any of them is stored, so a failing
        column leaves the cache and the outline as they were.
        """

        key = property.upper()
        self.now = self.clock()
        results = []
        main = True
        for index, spec in enumerate(self.specs):
            if spec.property != key:
                continue
            results.append((index, spec, *self._column_results(spec, main)))
            main = False
        for index, spec, entries, writes in results:
            self._commit(index, spec, entries, writes)

    def compute_one(self, spec: ColumnSpec, write_back: bool = False) -> None:
        """Recompute the single column described by ``spec``."""

        index = self.index_of(spec)
        self.now = self.clock()
        self._compute_column(index, spec, write_back)

    def index_of(self, spec: ColumnSpec) -> int:
        for index, candidate in enumerate(self.specs):
            if candidate is spec:
                return index
        for index, candidate in enumerate(self.specs):
            if candidate == spec:
                return index
        raise ValueError(f"Column {spec.to_token()} is not part of the current format")

    def is_computed(self, index: int, node: Node) -> bool:
        """Return whether the cell at ``index`` holds a summary of ``node``'s children."""

        spec = self.specs[index]
        if spec.property in COMPUTED_PROPERTIES:
            return True
        if spec.property in SPECIAL_PROPERTIES:
            return False
        return spec.operator is not None and self.cache.has(index, node)

    def _compute_column(self, index: int, spec: ColumnSpec, write_back: bool) -> None:
        entries, writes = self._column_results(spec, write_back)
        self._commit(index, spec, entries, writes)

    def _column_results(
        self, spec: ColumnSpec, write_back: bool
    ) -> Tuple[Dict[int, str], List[Tuple[Node, str]]]:
        if spec.property in COMPUTED_PROPERTIES:
            return self._clock_entries(spec), []
        if spec.property in SPECIAL_PROPERTIES:
            # Headings, TODO states and tags come from the entry; operators on them are ignored.
            return {}, []
        return self._summary_entries(spec, write_back and self.write_back)

    def _commit(
        self, index: int, spec: ColumnSpec, entries: Dict[int, str], writes: List[Tuple[Node, str]]
    ) -> None:
        self.cache.replace(index, entries)
        for node, value in writes:
            logger.debug("Writing back %s=%r on %r", spec.property, value, node)
            self.outline.set_property(node, spec.property, value)
        logger.debug(
            "Computed column %d (%s): %d summaries, %d written back",
            index,
            spec.property,
            len(entries),
            len(writes),
        )

    def _summary_entries(
        self, spec: ColumnSpec, write_back: bool
    ) -> Tuple[Dict[int, str], List[Tuple[Node, str]]]:
        entries: Dict[int, str] = {}
        writes: List[Tuple[Node, str]] = []
        if spec.operator is None:
            return entries, writes

        operator = self.registry.resolve(spec.operator, now=self.now)
        levels: Dict[int, List[str]] = {}
        for node, level in reversed(list(self.outline.iterate_subtree(self.anchor))):
            if operator.collect is not None:
                value = operator.collect(self.outline, node, spec.property)
            else:
                value = self.outline.get_property(node, spec.property)

            deeper = sorted((depth for depth in levels if depth > level), reverse=True)
            summary: Optional[str] = None
            plain: Optional[str] = None
            if deeper:
                gathered: List[str] = []
                for depth in deeper:
                    gathered.extend(levels.pop(depth))
                if gathered:
                    try:
                        summary = operator.summarize(gathered, spec.printf)
                        # Ancestors aggregate the unformatted summary.
                        plain = operator.summarize(gathered, None) if spec.printf else summary
                    except (NotANumber, InvalidAge, FormatError) as exc:
                        raise AggregateError(spec, node, exc) from exc
            if summary is not None:
                entries[node.node_id] = summary
                new_value = summary.strip()
                if write_back and value is not None and value.strip() != new_value:
                    writes.append((node, new_value))

            pushed = plain if plain is not None else value
            if pushed is not None and pushed.strip():
                levels.setdefault(level, []).insert(0, pushed)
        return entries, writes

    def _clock_entries(self, spec: ColumnSpec) -> Dict[int, str]:
        # Clock sums come from clocked time; any operator on the column is ignored.
        today = spec.property == CLOCKSUM_T
        entries: Dict[int, str] = {}
        levels: Dict[int, float] = {}
        for node, level in reversed(list(self.outline.iterate_subtree(self.anchor))):
            total = self.outline.clock_minutes(node, today=today)
            for depth in [depth for depth in levels if depth > level]:
                total += levels.pop(depth)
            if total > 0:
                entries[node.node_id] = minutes_to_duration(total, HMM)
            levels[level] = levels.get(level, 0.0) + total
        return entries


__all__ = ["AggregationEngine", "SummaryCache"]
