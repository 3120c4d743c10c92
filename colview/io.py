"""Loading outlines from YAML documents and spreadsheets."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import yaml
from openpyxl import load_workbook

from .config import AppConfig
from .outline import Node, Outline, coerce_minutes, iter_tree_nodes, parse_tags

logger = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}
CSV_SUFFIXES = {".csv", ".txt"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}

HEADER_HINTS: Dict[str, Sequence[str]] = {
    "level": ["level", "depth", "úroveň", "uroven", "regex:^lvl$"],
    "heading": ["heading", "item", "title", "headline", "name", "název", "nazev"],
    "todo": ["todo", "keyword", "regex:^state$"],
    "priority": ["priority", "prio", "regex:^pri$"],
    "tags": ["tags", "tag", "štítky"],
    "clock": ["clock", "clocked", "time spent"],
}

REQUIRED_KEYS: Sequence[str] = ("heading",)

_STARS_RE = re.compile(r"^(\*+)\s+(.*)$")


def load_outline(path: Path, config: Optional[AppConfig] = None) -> Outline:
    """Load an :class:`Outline` from ``path``.

    YAML files hold a nested ``nodes`` tree; CSV and Excel sheets hold one
    entry per row with its level in a ``level`` column, as leading stars in the
    heading or, for Excel, as the row outline level.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Outline '{path}' does not exist")

    ext = path.suffix.lower()
    logger.info("Loading outline from %s", path)
    if ext in YAML_SUFFIXES:
        outline = _load_yaml(path, config)
    elif ext in CSV_SUFFIXES:
        frame = pd.read_csv(path, dtype=str)
        outline = _outline_from_frame(frame, _outline_kwargs(config))
    elif ext in EXCEL_SUFFIXES:
        frame = pd.read_excel(path, dtype=str)
        row_levels = read_outline_levels(path)
        outline = _outline_from_frame(frame, _outline_kwargs(config), row_levels)
    else:
        raise ValueError(f"Unsupported file extension '{ext}' for outline '{path}'")

    if config is not None:
        _apply_allowed_values(outline, config.allowed_values)
    logger.debug("Loaded %d entries from %s", len(outline), path)
    return outline


def _outline_kwargs(config: Optional[AppConfig]) -> Dict[str, Any]:
    if config is None:
        return {}
    return {
        "todo_keywords": list(config.view.todo_keywords),
        "default_priority": config.view.default_priority,
    }


def _load_yaml(path: Path, config: Optional[AppConfig]) -> Outline:
    with path.open("r", encoding="utf-8") as stream:
        document = yaml.safe_load(stream) or {}
    if isinstance(document, list):
        document = {"nodes": document}
    if not isinstance(document, Mapping):
        raise ValueError("Outline document must be a mapping or a list of entries")

    kwargs = _outline_kwargs(config)
    if document.get("todo_keywords"):
        kwargs["todo_keywords"] = [str(keyword) for keyword in document["todo_keywords"]]
    if document.get("default_priority"):
        kwargs["default_priority"] = str(document["default_priority"])

    nodes = document.get("nodes") or []
    if not isinstance(nodes, list):
        raise ValueError("'nodes' must be a list of entries")
    return Outline(
        iter_tree_nodes(nodes),
        columns=document.get("columns"),
        properties={key: str(value) for key, value in (document.get("properties") or {}).items()},
        category=document.get("category"),
        **kwargs,
    )


def _outline_from_frame(
    frame: pd.DataFrame,
    outline_kwargs: Mapping[str, Any],
    row_levels: Optional[Mapping[int, int]] = None,
) -> Outline:
    frame = frame.replace({np.nan: None})
    mapping = _autodetect_columns(frame, HEADER_HINTS)
    missing = [key for key in REQUIRED_KEYS if mapping.get(key) is None]
    if missing:
        raise KeyError("Unable to resolve required columns: " + ", ".join(sorted(missing)))

    known = {source for source in mapping.values() if source is not None}
    property_columns = [column for column in frame.columns if column not in known]

    outline = Outline(**outline_kwargs)
    for position, record in enumerate(frame.to_dict(orient="records")):
        heading, star_level = _split_stars(_text(record.get(mapping["heading"])))
        level = _row_level(record, mapping, star_level, row_levels, position)
        properties = {
            str(column): _text(record.get(column))
            for column in property_columns
            if _text(record.get(column))
        }
        outline.append(
            Node(
                heading=heading,
                level=level,
                todo=_field(record, mapping, "todo") or None,
                priority=_field(record, mapping, "priority") or None,
                tags=parse_tags(_field(record, mapping, "tags")),
                properties=properties,
                clock_minutes=coerce_minutes(_field(record, mapping, "clock")) or 0.0,
            )
        )
    return outline


def _row_level(
    record: Mapping[str, Any],
    mapping: Mapping[str, Optional[str]],
    star_level: Optional[int],
    row_levels: Optional[Mapping[int, int]],
    position: int,
) -> int:
    source = mapping.get("level")
    if source is not None and _text(record.get(source)):
        try:
            return int(float(_text(record.get(source))))
        except ValueError:
            raise ValueError(f"Invalid level {record.get(source)!r} in row {position + 1}") from None
    if star_level is not None:
        return star_level
    if row_levels is not None:
        # Row 1 of the sheet holds the header.
        return row_levels.get(position + 2, 0) + 1
    return 1


def _split_stars(heading: str) -> Tuple[str, Optional[int]]:
    match = _STARS_RE.match(heading)
    if match is None:
        return heading, None
    return match.group(2).strip(), len(match.group(1))


def _field(record: Mapping[str, Any], mapping: Mapping[str, Optional[str]], key: str) -> str:
    source = mapping.get(key)
    return _text(record.get(source)) if source is not None else ""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _autodetect_columns(
    frame: pd.DataFrame, hints: Mapping[str, Sequence[str]]
) -> Dict[str, Optional[str]]:
    """Best-effort inference of outline columns using header hints."""

    header_pairs = [(column, _normalise_header(column)) for column in frame.columns]
    detected: Dict[str, Optional[str]] = {}
    taken: set = set()
    for target, target_hints in hints.items():
        available = [pair for pair in header_pairs if pair[0] not in taken]
        match = _match_header(available, _build_hint_patterns(target, target_hints))
        detected[target] = match
        if match is not None:
            taken.add(match)
            logger.debug("Autodetected column '%s' for '%s'", match, target)
    return detected


def _build_hint_patterns(target: str, hints: Iterable[str]) -> Dict[str, List[str]]:
    patterns: Dict[str, List[str]] = {"exact": [], "regex": []}
    for hint in hints:
        if hint.startswith("regex:"):
            patterns["regex"].append(hint[len("regex:") :])
        else:
            patterns["exact"].append(_normalise_header(hint))
    patterns["exact"].append(_normalise_header(target))
    return patterns


def _match_header(
    headers: Sequence[Tuple[str, str]], patterns: Mapping[str, List[str]]
) -> Optional[str]:
    for original, normalised in headers:
        if normalised in patterns.get("exact", []):
            return original
    for regex_pattern in patterns.get("regex", []):
        compiled = re.compile(regex_pattern, flags=re.IGNORECASE)
        for original, normalised in headers:
            if compiled.search(normalised):
                return original
    return None


def _normalise_header(value: Any) -> str:
    text = "" if value is None else str(value)
    text = text.strip().lower()
    return re.sub(r"\s+", " ", text)


def read_outline_levels(path: Path, sheet: Optional[str] = None) -> Dict[int, int]:
    """Return the Excel row outline level of every grouped row of ``sheet``."""

    workbook = load_workbook(path, data_only=True)
    worksheet = workbook[sheet] if sheet else workbook.worksheets[0]
    levels: Dict[int, int] = {}
    for index, dimension in worksheet.row_dimensions.items():
        level = int(getattr(dimension, "outlineLevel", 0) or 0)
        if level > 0:
            levels[int(index)] = level
    workbook.close()
    return levels


def _apply_allowed_values(outline: Outline, allowed_values: Mapping[str, Sequence[str]]) -> None:
    for key, values in allowed_values.items():
        name = f"{key.upper()}_ALL"
        if name in outline.properties:
            continue
        outline.properties[name] = " ".join(
            f'"{value}"' if not value or " " in value else value for value in values
        )


__all__ = ["load_outline", "read_outline_levels"]
