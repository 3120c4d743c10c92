"""Exceptions raised by the column view engine."""

from __future__ import annotations

from typing import Any


class ColumnViewError(Exception):
    """Base class for every error raised by :mod:`colview`."""


class InvalidFormat(ColumnViewError, ValueError):
    """A column format string could not be compiled."""


class UnknownOperator(ColumnViewError, LookupError):
    """A summary operator is neither user-defined nor built in."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Unknown summary operator '{operator}'")
        self.operator = operator

    def __str__(self) -> str:
        return str(self.args[0])


class NotANumber(ColumnViewError, ValueError):
    """A value that must be numeric (or a duration) cannot be parsed."""


class InvalidAge(ColumnViewError, ValueError):
    """A value is neither a timestamp nor a duration."""


class FormatError(ColumnViewError, ValueError):
    """A printf-style format cannot be applied to a value."""


class AggregateError(ColumnViewError):
    """Summarising one column failed at a given node."""

    def __init__(self, spec: Any, node: Any, cause: Exception) -> None:
        heading = getattr(node, "heading", node)
        super().__init__(
            f"Cannot summarise column '{spec.property}' at '{heading}': {cause}"
        )
        self.spec = spec
        self.node = node
        self.cause = cause


class ComputedValueError(ColumnViewError):
    """The edited cell holds a value computed from the entry's children."""


class UnknownColumn(ColumnViewError, LookupError):
    """No rendered column for the requested property exists on the row."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class IndexOutOfRange(ColumnViewError, IndexError):
    """The n-th allowed value was requested but does not exist."""


class NoActiveSession(ColumnViewError, RuntimeError):
    """An edit was attempted without an active view session."""


class NoAllowedValues(ColumnViewError):
    """A property cannot be cycled because it lacks allowed values."""


class ReadOnlyColumn(ColumnViewError):
    """The column cannot be changed from the column view."""


__all__ = [
    "AggregateError",
    "ColumnViewError",
    "ComputedValueError",
    "FormatError",
    "IndexOutOfRange",
    "InvalidAge",
    "InvalidFormat",
    "NoActiveSession",
    "NoAllowedValues",
    "NotANumber",
    "ReadOnlyColumn",
    "UnknownColumn",
    "UnknownOperator",
]
