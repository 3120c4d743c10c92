"""Compilation of column format strings into column specifications.

A column format is a whitespace separated sequence of tokens::

    %[WIDTH]PROPERTY[(TITLE)][{OPERATOR[;PRINTF]}]

for instance ``%25ITEM %TODO %3PRIORITY %Effort(Time){:} %Done{X%}``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import InvalidFormat

DEFAULT_FORMAT = "%25ITEM %TODO %3PRIORITY %TAGS"

_TOKEN_RE = re.compile(
    r"%(?P<width>[0-9]+)?"
    r"(?P<property>[A-Za-z0-9_-]+)"
    r"(?:\((?P<title>[^)]+)\))?"
    r"(?:\{(?P<operator>[^}]+)\})?"
)


@dataclass(frozen=True)
class ColumnSpec:
    """Compiled description of one display column."""

    property: str
    title: str
    width: Optional[int] = None
    operator: Optional[str] = None
    printf: Optional[str] = None

    @property
    def summarized(self) -> bool:
        return self.operator is not None

    def to_token(self) -> str:
        """Return the format token describing this column."""

        token = "%"
        if self.width is not None:
            token += str(self.width)
        token += self.property
        if self.title and self.title != self.property:
            token += f"({self.title})"
        if self.operator:
            if self.printf:
                token += f"{{{self.operator};{self.printf}}}"
            else:
                token += f"{{{self.operator}}}"
        return token


def compile_format(fmt: str) -> List[ColumnSpec]:
    """Parse ``fmt`` into an ordered list of :class:`ColumnSpec`.

    Property names are upper-cased; a missing title defaults to the property
    name as written.  Raises :class:`InvalidFormat` when any token cannot be
    parsed or when no column is defined at all.
    """

    text = fmt or ""
    specs: List[ColumnSpec] = []
    position = 0
    length = len(text)
    while True:
        while position < length and text[position].isspace():
            position += 1
        if position >= length:
            break
        match = _TOKEN_RE.match(text, position)
        if match is None or (match.end() < length and not text[match.end()].isspace()):
            raise InvalidFormat(
                f"Invalid column format token at offset {position}: {text[position:]!r}"
            )
        specs.append(_spec_from_match(match))
        position = match.end()

    if not specs:
        raise InvalidFormat(f"Column format {fmt!r} does not define any column")
    return specs


def uncompile_format(specs: Iterable[ColumnSpec]) -> str:
    """Serialise ``specs`` back into a column format string."""

    return " ".join(spec.to_token() for spec in specs)


def parse_column(token: str) -> ColumnSpec:
    """Compile a single format token such as ``%10Effort{:}``."""

    specs = compile_format(token if token.startswith("%") else f"%{token}")
    if len(specs) != 1:
        raise InvalidFormat(f"Expected a single column token, got {token!r}")
    return specs[0]


def _spec_from_match(match: "re.Match[str]") -> ColumnSpec:
    raw_width = match.group("width")
    prop = match.group("property")
    title = match.group("title") or prop
    operator = match.group("operator")
    printf: Optional[str] = None
    if operator is not None and ";" in operator:
        operator, printf = operator.split(";", 1)
        printf = printf or None
    if operator is not None and not operator.strip():
        raise InvalidFormat(f"Empty summary operator in token {match.group(0)!r}")
    return ColumnSpec(
        property=prop.upper(),
        title=title,
        width=int(raw_width) if raw_width is not None else None,
        operator=operator,
        printf=printf,
    )


__all__ = [
    "DEFAULT_FORMAT",
    "ColumnSpec",
    "compile_format",
    "parse_column",
    "uncompile_format",
]
