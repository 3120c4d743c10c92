"""Editing cells of an active column view."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .durations import allowed_dates, shift_timestamp
from .errors import (
    ColumnViewError,
    ComputedValueError,
    IndexOutOfRange,
    NoAllowedValues,
    ReadOnlyColumn,
)
from .outline import ALLTAGS, COMPUTED_PROPERTIES, DATE_CYCLED_PROPERTIES, ITEM, LEVEL, Node, Outline
from .session import ViewSession
from .summaries import CHECKBOX_OPERATORS, CHECKBOX_VALUES

logger = logging.getLogger(__name__)

Prompt = Callable[[str, str, Optional[List[str]]], Optional[str]]
SpecialEditor = Callable[[Outline, Node, str], None]
DateShifter = Callable[[str, int], Optional[str]]

_NodeState = Tuple[str, Optional[str], Optional[str], List[str], Dict[str, str]]


def _snapshot(node: Node) -> _NodeState:
    return node.heading, node.todo, node.priority, list(node.tags), dict(node.properties)


def _restore(node: Node, state: _NodeState) -> None:
    node.heading, node.todo, node.priority, tags, properties = state
    node.tags = list(tags)
    node.properties = dict(properties)


class EditController:
    """Apply edits to the cells of ``session``.

    ``prompt`` is called as ``prompt(property, current_value, allowed_values)``
    when :meth:`edit_cell` gets no value; returning ``None`` cancels the edit.
    ``special_editors`` maps property names to callables performing the
    mutation themselves (for example a TODO state machine).
    """

    def __init__(
        self,
        session: ViewSession,
        *,
        prompt: Optional[Prompt] = None,
        special_editors: Optional[Mapping[str, SpecialEditor]] = None,
        date_shifter: DateShifter = shift_timestamp,
    ) -> None:
        self.session = session
        self.prompt = prompt
        self.special_editors: Dict[str, SpecialEditor] = {
            key.upper(): editor for key, editor in (special_editors or {}).items()
        }
        self.date_shifter = date_shifter

    def _editable_column(self, node: Node, key: str) -> int:
        self.session.require_active()
        index = self.session.column_index(node, key)
        if key in COMPUTED_PROPERTIES or self.session.is_computed(node, index):
            raise ComputedValueError(
                f"Column '{key}' of {node!r} is computed from its children and cannot be edited"
            )
        if key in (ALLTAGS, LEVEL):
            raise ReadOnlyColumn(f"Property '{key}' is derived from the outline")
        return index

    def edit_cell(self, node: Node, property: str, new_value: Optional[str] = None) -> bool:
        """Set ``property`` on ``node`` and refresh its column.

        Returns ``False`` when nothing changed: the prompt was cancelled or the
        value equals the one already shown.
        """

        key = property.upper()
        index = self._editable_column(node, key)
        current = self.session.regions[node.node_id][index].raw

        if new_value is None:
            if self.prompt is None:
                return False
            new_value = self.prompt(key, current, self.allowed_values(node, key))
            if new_value is None:
                logger.debug("Edit of %s on %r cancelled", key, node)
                return False

        if key not in self.special_editors:
            new_value = new_value.strip()
            if new_value == current:
                return False
        self._apply(node, key, new_value)
        return True

    def next_allowed_value(
        self,
        node: Node,
        property: str,
        *,
        previous: bool = False,
        index: Optional[int] = None,
    ) -> str:
        """Switch ``property`` to the next allowed value and return it.

        With ``index`` the ``index``-th allowed value (counting from 1) is
        picked instead.  Dates move by one day.
        """

        key = property.upper()
        if key == ITEM:
            raise ReadOnlyColumn("Cannot cycle the heading of an entry")
        column = self._editable_column(node, key)
        current = self.session.regions[node.node_id][column].raw

        if key in DATE_CYCLED_PROPERTIES:
            value = self.date_shifter(current, -1 if previous else 1)
            if value is None:
                raise NoAllowedValues(f"'{key}' of {node!r} holds no date to move")
        else:
            allowed = self.allowed_values(node, key, column)
            if not allowed:
                raise NoAllowedValues(f"No allowed values for property '{key}'")
            if index is not None:
                if not 1 <= index <= len(allowed):
                    raise IndexOutOfRange(
                        f"Only {len(allowed)} allowed values for property '{key}'"
                    )
                value = allowed[index - 1]
            else:
                if previous:
                    allowed = list(reversed(allowed))
                if current in allowed:
                    if len(allowed) == 1:
                        raise NoAllowedValues(f"Only one allowed value for property '{key}'")
                    value = allowed[(allowed.index(current) + 1) % len(allowed)]
                else:
                    value = allowed[0]

        self._apply(node, key, value)
        return value

    def previous_allowed_value(self, node: Node, property: str, *, index: Optional[int] = None) -> str:
        return self.next_allowed_value(node, property, previous=True, index=index)

    def allowed_values(self, node: Node, property: str, column: Optional[int] = None) -> Optional[List[str]]:
        """Return the values ``property`` may take on ``node``, if restricted."""

        key = property.upper()
        if column is None:
            column = self.session.column_index(node, key)
        allowed = self.session.outline.allowed_values(node, key)
        if allowed:
            return allowed
        if self.session.specs[column].operator in CHECKBOX_OPERATORS:
            return list(CHECKBOX_VALUES)
        return allowed_dates(self.session.regions[node.node_id][column].raw)

    def _apply(self, node: Node, key: str, value: str) -> None:
        # Write-back may touch any summarised entry, so the whole subtree is saved.
        nodes = [entry for entry, _ in self.session.outline.iterate_subtree(self.session.anchor)]
        if all(entry.node_id != node.node_id for entry in nodes):
            nodes.append(node)
        states = [(entry, _snapshot(entry)) for entry in nodes]
        cached = self.session.cache.export()
        editor = self.special_editors.get(key)
        with self.session.editing():
            if editor is not None:
                editor(self.session.outline, node, value)
            else:
                self.session.outline.set_property(node, key, value)
            try:
                self.session.update(key)
            except ColumnViewError:
                logger.warning("Recomputing %s failed; restoring %r", key, node)
                for entry, state in states:
                    _restore(entry, state)
                self.session.cache.load(cached)
                raise
        logger.debug("Set %s=%r on %r", key, value, node)


__all__ = ["EditController"]
