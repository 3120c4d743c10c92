"""Durations, timestamps and ages as they appear in property values."""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import InvalidAge, NotANumber

# Minutes per unit; "m" is a month, "min" a minute.
DURATION_UNITS = {
    "min": 1,
    "h": 60,
    "d": 1440,
    "w": 10080,
    "m": 43200,
    "y": 525960,
}

HMM = "h:mm"
HMMSS = "h:mm:ss"

_HMM_RE = re.compile(r"^(\d+):([0-5]\d)$")
_HMMSS_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)$")
_UNIT_RE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)(min|h|d|w|m|y)$")
_NUMBER_RE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)$")
_AGE_RE = re.compile(r"^(-)?(\d+)d (\d+)h (\d+)m (\d+)s$")

_TIMESTAMP_RE = re.compile(
    r"(?P<open>[<\[])(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[ \t]+(?P<day>[^\]>\s\d+-]+))?"
    r"(?:[ \t]+(?P<time>\d{1,2}:\d{2}))?"
    r"(?P<rest>[^\]>]*)(?P<close>[>\]])"
)
_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def duration_to_minutes(text: str) -> float:
    """Convert a duration string into minutes.

    Accepted forms are ``H:MM``, ``H:MM:SS``, unit expressions such as
    ``1d 3h 20min`` optionally ending with an ``H:MM`` part (``2d 1:30``),
    and bare numbers, which count as minutes.
    """

    value = (text or "").strip()
    if not value:
        raise NotANumber("Empty duration")

    if _NUMBER_RE.match(value):
        return float(value)

    tokens = value.split()
    total = 0.0
    for position, token in enumerate(tokens):
        unit_match = _UNIT_RE.match(token)
        if unit_match:
            total += float(unit_match.group(1)) * DURATION_UNITS[unit_match.group(2)]
            continue
        if position == len(tokens) - 1:
            clock = _clock_to_minutes(token)
            if clock is not None:
                total += clock
                continue
        raise NotANumber(f"Invalid duration: {text!r}")
    return total


def _clock_to_minutes(token: str) -> Optional[float]:
    match = _HMM_RE.match(token)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))
    match = _HMMSS_RE.match(token)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2)) + int(match.group(3)) / 60.0
    return None


def clock_style(values: Iterable[str]) -> Optional[str]:
    """Return the clock style shared by ``values``, or ``None`` when mixed.

    ``"h:mm:ss"`` wins as soon as one value carries seconds.
    """

    style = HMM
    seen = False
    for value in values:
        seen = True
        text = value.strip()
        if _HMM_RE.match(text):
            continue
        if _HMMSS_RE.match(text):
            style = HMMSS
            continue
        return None
    return style if seen else None


def minutes_to_duration(minutes: float, style: Optional[str] = None) -> str:
    """Format ``minutes`` as ``H:MM``, ``H:MM:SS`` or ``Nd H:MM``."""

    sign = "-" if minutes < 0 else ""
    minutes = abs(minutes)
    if style == HMMSS:
        seconds = int(round(minutes * 60))
        hours, rest = divmod(seconds, 3600)
        mins, secs = divmod(rest, 60)
        return f"{sign}{hours}:{mins:02d}:{secs:02d}"

    total = int(round(minutes))
    if style == HMM:
        return f"{sign}{total // 60}:{total % 60:02d}"

    days, rest = divmod(total, DURATION_UNITS["d"])
    clock = f"{rest // 60}:{rest % 60:02d}"
    if days:
        return f"{sign}{days}d {clock}"
    return f"{sign}{clock}"


@dataclass(frozen=True)
class Timestamp:
    """A parsed ``<YYYY-MM-DD Day HH:MM>`` or ``[...]`` timestamp."""

    moment: dt.datetime
    active: bool
    has_time: bool
    rest: str = ""

    def format(self) -> str:
        opening, closing = ("<", ">") if self.active else ("[", "]")
        text = f"{self.moment:%Y-%m-%d} {_DAY_NAMES[self.moment.weekday()]}"
        if self.has_time:
            text += f" {self.moment:%H:%M}"
        return f"{opening}{text}{self.rest}{closing}"

    def shifted(self, days: int) -> "Timestamp":
        return Timestamp(
            moment=self.moment + dt.timedelta(days=days),
            active=self.active,
            has_time=self.has_time,
            rest=self.rest,
        )


def _timestamp_from_match(match: "re.Match[str]") -> Optional[Timestamp]:
    opening, closing = match.group("open"), match.group("close")
    if (opening, closing) not in {("<", ">"), ("[", "]")}:
        return None
    try:
        moment = dt.datetime.strptime(match.group("date"), "%Y-%m-%d")
        clock = match.group("time")
        if clock:
            hours, mins = (int(part) for part in clock.split(":"))
            moment = moment.replace(hour=hours, minute=mins)
    except ValueError:
        return None
    return Timestamp(
        moment=moment,
        active=opening == "<",
        has_time=bool(match.group("time")),
        rest=match.group("rest") or "",
    )


def parse_timestamp(text: str) -> Optional[Timestamp]:
    """Parse ``text`` when it is exactly one timestamp."""

    match = _TIMESTAMP_RE.fullmatch((text or "").strip())
    if match is None:
        return None
    return _timestamp_from_match(match)


def find_timestamp(text: str) -> Optional[Timestamp]:
    """Return the first timestamp embedded in ``text``."""

    for match in _TIMESTAMP_RE.finditer(text or ""):
        stamp = _timestamp_from_match(match)
        if stamp is not None:
            return stamp
    return None


def strip_timestamp_delimiters(text: str) -> str:
    """Drop the angle/square brackets around every timestamp in ``text``."""

    def _strip(match: "re.Match[str]") -> str:
        if _timestamp_from_match(match) is None:
            return match.group(0)
        return match.group(0)[1:-1]

    return _TIMESTAMP_RE.sub(_strip, text or "")


def shift_timestamp(text: str, days: int) -> Optional[str]:
    """Move the timestamp in ``text`` by ``days``, keeping its formatting."""

    stamp = parse_timestamp(text)
    if stamp is None:
        return None
    return stamp.shifted(days).format()


def allowed_dates(text: Optional[str]) -> Optional[List[str]]:
    """Return the day before, the day of and the day after timestamp ``text``."""

    stamp = parse_timestamp(text or "")
    if stamp is None:
        return None
    return [stamp.shifted(offset).format() for offset in (-1, 0, 1)]


def age_to_minutes(text: str, now: dt.datetime) -> float:
    """Turn ``text`` into an age in minutes relative to ``now``.

    ``text`` is either a timestamp, an age as produced by :func:`format_age`,
    or a duration.
    """

    value = (text or "").strip()
    stamp = find_timestamp(value)
    if stamp is not None:
        return (now - stamp.moment).total_seconds() / 60.0

    match = _AGE_RE.match(value)
    if match:
        days, hours, mins, secs = (int(group) for group in match.groups()[1:])
        minutes = days * 1440 + hours * 60 + mins + secs / 60.0
        return -minutes if match.group(1) else minutes

    try:
        return duration_to_minutes(value)
    except NotANumber as exc:
        raise InvalidAge(f"Invalid age: {text!r}") from exc


def format_age(minutes: float) -> str:
    """Format ``minutes`` as ``Nd HHh MMm SSs``."""

    sign = "-" if minutes < 0 else ""
    seconds = int(round(abs(minutes) * 60))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    mins, secs = divmod(rest, 60)
    return f"{sign}{days}d {hours:02d}h {mins:02d}m {secs:02d}s"


__all__ = [
    "DURATION_UNITS",
    "HMM",
    "HMMSS",
    "Timestamp",
    "age_to_minutes",
    "allowed_dates",
    "clock_style",
    "duration_to_minutes",
    "find_timestamp",
    "format_age",
    "minutes_to_duration",
    "parse_timestamp",
    "shift_timestamp",
    "strip_timestamp_delimiters",
]
