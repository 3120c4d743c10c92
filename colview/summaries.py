"""Summary operators used to aggregate column values up the outline."""

from __future__ import annotations

import datetime as dt
import logging
import math
import re
from dataclasses import dataclass, replace
from functools import partial
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .durations import age_to_minutes, clock_style, duration_to_minutes, format_age, minutes_to_duration
from .errors import FormatError, NotANumber, UnknownOperator

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .outline import Node, Outline

logger = logging.getLogger(__name__)

Number = Union[int, float]
Summarizer = Callable[[Sequence[str], Optional[str]], str]
Collector = Callable[["Outline", "Node", str], Optional[str]]

CHECKBOX_OPERATORS = frozenset({"X", "X/", "X%"})
CHECKBOX_VALUES = ["[ ]", "[X]"]

_COMPLETE_COOKIE_RE = re.compile(r"\[([1-9][0-9]*)/\1\]")
_CURRENCY_RE = re.compile(r"(?i)(czk|kč|eur|€|usd|\$|gbp|£)")


@dataclass(frozen=True)
class Operator:
    """A resolved summary operator.

    ``collect`` is optional: when set, it replaces the plain property lookup
    used to gather each node's own value before summarising.
    """

    label: str
    summarize: Summarizer
    collect: Optional[Collector] = None


def to_number(value: str) -> Number:
    """Parse ``value`` as an int when possible, else as a float."""

    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        raise NotANumber(f"Not a number: {value!r}") from None
    if math.isnan(number):
        raise NotANumber(f"Not a number: {value!r}")
    return number


def format_number(value: Number, printf: Optional[str] = None) -> str:
    """Render ``value`` with ``printf`` (``%s`` when missing)."""

    if printf is None:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return "%s" % (value,)
    try:
        return printf % (value,)
    except (TypeError, ValueError) as exc:
        raise FormatError(f"Cannot format {value!r} with {printf!r}: {exc}") from exc


def _numbers(values: Sequence[str]) -> List[Number]:
    return [to_number(value) for value in values]


def summarize_sum(values: Sequence[str], printf: Optional[str] = None) -> str:
    return format_number(sum(_numbers(values)), printf)


def _currency_to_number(value: str) -> float:
    cleaned = _CURRENCY_RE.sub("", str(value))
    cleaned = re.sub(r"[\s ]", "", cleaned)
    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")
    return float(to_number(cleaned))


def summarize_currencies(values: Sequence[str], printf: Optional[str] = None) -> str:
    # Currencies always show two decimals, whatever the column asks for.
    return "%.2f" % sum(_currency_to_number(value) for value in values)


def summarize_max(values: Sequence[str], printf: Optional[str] = None) -> str:
    return format_number(max(_numbers(values)), printf)


def summarize_min(values: Sequence[str], printf: Optional[str] = None) -> str:
    return format_number(min(_numbers(values)), printf)


def summarize_mean(values: Sequence[str], printf: Optional[str] = None) -> str:
    numbers = _numbers(values)
    return format_number(sum(numbers) / float(len(numbers)), printf)


def _is_done(box: str) -> bool:
    text = box.strip()
    return text == "[X]" or bool(_COMPLETE_COOKIE_RE.fullmatch(text))


def summarize_checkbox(values: Sequence[str], printf: Optional[str] = None) -> str:
    done = sum(1 for value in values if _is_done(value))
    if done == len(values):
        return "[X]"
    if done > 0:
        return "[-]"
    return "[ ]"


def summarize_checkbox_count(values: Sequence[str], printf: Optional[str] = None) -> str:
    done = sum(1 for value in values if _is_done(value))
    return f"[{done}/{len(values)}]"


def summarize_checkbox_percent(values: Sequence[str], printf: Optional[str] = None) -> str:
    done = sum(1 for value in values if _is_done(value))
    percent = int(math.floor(100.0 * done / max(1, len(values)) + 0.5))
    return f"[{percent}%]"


def _apply_times(reduce: Callable[[List[float]], float], values: Sequence[str]) -> str:
    minutes = [duration_to_minutes(value) for value in values]
    return minutes_to_duration(reduce(minutes), clock_style(values))


def _mean(numbers: List[float]) -> float:
    return sum(numbers) / float(len(numbers))


def summarize_sum_times(values: Sequence[str], printf: Optional[str] = None) -> str:
    return _apply_times(sum, values)


def summarize_min_time(values: Sequence[str], printf: Optional[str] = None) -> str:
    return _apply_times(min, values)


def summarize_max_time(values: Sequence[str], printf: Optional[str] = None) -> str:
    return _apply_times(max, values)


def summarize_mean_time(values: Sequence[str], printf: Optional[str] = None) -> str:
    return _apply_times(_mean, values)


def _apply_ages(
    reduce: Callable[[List[float]], float],
    values: Sequence[str],
    printf: Optional[str] = None,
    *,
    now: dt.datetime,
) -> str:
    return format_age(reduce([age_to_minutes(value, now) for value in values]))


def summarize_estimate(values: Sequence[str], printf: Optional[str] = None) -> str:
    """Combine ``low-high`` estimates.

    Every range is treated as a distribution whose mean and variance add up;
    the result is one standard deviation around the combined mean.
    """

    mean = 0.0
    variance = 0.0
    for value in values:
        parts = str(value).split("-")
        if len(parts) == 2 and parts[0].strip() and parts[1].strip():
            low, high = float(to_number(parts[0])), float(to_number(parts[1]))
            middle = (low + high) / 2.0
            mean += middle
            variance += (low * low + high * high) / 2.0 - middle * middle
        elif len(parts) == 1:
            mean += to_number(parts[0])
        else:
            raise NotANumber(f"Invalid estimate: {value!r}")
    deviation = math.sqrt(max(variance, 0.0))
    fmt = printf or "%.0f"
    try:
        return f"{fmt % (mean - deviation)}-{fmt % (mean + deviation)}"
    except (TypeError, ValueError) as exc:
        raise FormatError(f"Cannot format estimate with {fmt!r}: {exc}") from exc


BUILTIN_SUMMARIES: Dict[str, Summarizer] = {
    "+": summarize_sum,
    "$": summarize_currencies,
    "X": summarize_checkbox,
    "X/": summarize_checkbox_count,
    "X%": summarize_checkbox_percent,
    "max": summarize_max,
    "mean": summarize_mean,
    "min": summarize_min,
    ":": summarize_sum_times,
    ":max": summarize_max_time,
    ":mean": summarize_mean_time,
    ":min": summarize_min_time,
    "est+": summarize_estimate,
}

AGE_REDUCERS: Dict[str, Callable[[List[float]], float]] = {
    "@max": max,
    "@mean": _mean,
    "@min": min,
}

OverrideEntry = Union[Summarizer, Tuple[Summarizer, Collector], Operator]


class SummaryRegistry:
    """Lookup table from operator labels to :class:`Operator` instances.

    User overrides always take precedence over the built-in operators.
    """

    def __init__(self, overrides: Optional[Mapping[str, OverrideEntry]] = None) -> None:
        self._overrides: Dict[str, Operator] = {}
        self._aliases: Dict[str, str] = {}
        for label, entry in (overrides or {}).items():
            self._overrides[label] = _as_operator(label, entry)

    def register(
        self,
        label: str,
        summarize: Summarizer,
        collect: Optional[Collector] = None,
    ) -> Operator:
        operator = Operator(label=label, summarize=summarize, collect=collect)
        self._overrides[label] = operator
        self._aliases.pop(label, None)
        logger.debug("Registered summary operator '%s'", label)
        return operator

    def alias(self, label: str, target: str) -> None:
        """Make ``label`` behave like the existing operator ``target``."""

        if target not in self:
            raise UnknownOperator(target)
        self._overrides.pop(label, None)
        self._aliases[label] = target
        logger.debug("Aliased summary operator '%s' to '%s'", label, target)

    def labels(self) -> List[str]:
        builtin = list(BUILTIN_SUMMARIES) + list(AGE_REDUCERS)
        extra = [*self._overrides, *self._aliases]
        return builtin + [label for label in extra if label not in builtin]

    def __contains__(self, label: object) -> bool:
        return (
            label in self._overrides
            or label in self._aliases
            or label in BUILTIN_SUMMARIES
            or label in AGE_REDUCERS
        )

    def resolve(self, label: str, now: Optional[dt.datetime] = None) -> Operator:
        """Return the operator registered under ``label``.

        Age operators compare timestamps against ``now``, which defaults to the
        current time when not provided.
        """

        if label in self._overrides:
            return self._overrides[label]
        if label in self._aliases:
            return replace(self.resolve(self._aliases[label], now=now), label=label)
        if label in BUILTIN_SUMMARIES:
            return Operator(label=label, summarize=BUILTIN_SUMMARIES[label])
        if label in AGE_REDUCERS:
            snapshot = now if now is not None else dt.datetime.now()
            return Operator(
                label=label,
                summarize=partial(_apply_ages, AGE_REDUCERS[label], now=snapshot),
            )
        raise UnknownOperator(label)


def _as_operator(label: str, entry: OverrideEntry) -> Operator:
    if isinstance(entry, Operator):
        return entry
    if isinstance(entry, tuple):
        summarize, collect = entry
        return Operator(label=label, summarize=summarize, collect=collect)
    if callable(entry):
        return Operator(label=label, summarize=entry)
    raise TypeError(f"Invalid summary operator definition for '{label}': {entry!r}")


__all__ = [
    "BUILTIN_SUMMARIES",
    "CHECKBOX_OPERATORS",
    "CHECKBOX_VALUES",
    "Operator",
    "SummaryRegistry",
    "format_number",
    "summarize_checkbox",
    "summarize_checkbox_count",
    "summarize_checkbox_percent",
    "summarize_currencies",
    "summarize_estimate",
    "summarize_max",
    "summarize_mean",
    "summarize_min",
    "summarize_sum",
    "summarize_sum_times",
    "to_number",
]
