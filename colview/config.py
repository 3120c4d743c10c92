"""Configuration loading utilities for the column view."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from .formats import DEFAULT_FORMAT


@dataclass
class ViewConfig:
    """Settings shaping how a column view is computed and drawn."""

    default_format: str = DEFAULT_FORMAT
    ellipsis: str = "…"
    separator: str = " | "
    hide_leading_stars: bool = False
    write_back: bool = True
    effort_property: str = "EFFORT"
    default_priority: str = "B"
    todo_keywords: List[str] = field(default_factory=lambda: ["TODO", "DONE"])


@dataclass
class SummaryConfig:
    """Extra operator labels mapped onto existing operators."""

    aliases: Dict[str, str] = field(default_factory=dict)


@dataclass
class OutputConfig:
    """Paths describing where captured views should be written."""

    directory: Path = Path("output")
    table_report: str = "column_view.csv"
    workbook_report: str = "column_view.xlsx"
    sheet_name: str = "Column View"

    def resolved(self, base_path: Path) -> "OutputConfig":
        return OutputConfig(
            directory=_resolve_path(self.directory, base_path),
            table_report=self.table_report,
            workbook_report=self.workbook_report,
            sheet_name=self.sheet_name,
        )


@dataclass
class AppConfig:
    """Container for all configuration used by the CLI."""

    view: ViewConfig = field(default_factory=ViewConfig)
    summaries: SummaryConfig = field(default_factory=SummaryConfig)
    allowed_values: Dict[str, List[str]] = field(default_factory=dict)
    output: OutputConfig = field(default_factory=OutputConfig)

    def resolved(self, base_path: Path) -> "AppConfig":
        return AppConfig(
            view=self.view,
            summaries=self.summaries,
            allowed_values=self.allowed_values,
            output=self.output.resolved(base_path),
        )


def load_config(path: Path) -> AppConfig:
    """Load :class:`AppConfig` from a YAML file."""

    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file '{config_path}' does not exist")

    with config_path.open("r", encoding="utf-8") as stream:
        raw_config: Mapping[str, Any] = yaml.safe_load(stream) or {}

    if not isinstance(raw_config, Mapping):
        raise ValueError("Configuration must be a mapping at the top level")

    view = ViewConfig(**_parse_section(raw_config.get("view"), ViewConfig, "view"))
    if not isinstance(view.todo_keywords, list):
        raise ValueError("view.todo_keywords must be a list of keywords")

    summaries_section = raw_config.get("summaries") or {}
    if not isinstance(summaries_section, Mapping):
        raise ValueError("The 'summaries' section must be a mapping")
    aliases = summaries_section.get("aliases") or {}
    if not isinstance(aliases, Mapping):
        raise ValueError("summaries.aliases must map labels to operators")
    summaries = SummaryConfig(aliases={str(key): str(value) for key, value in aliases.items()})

    allowed_values = _parse_allowed_values(raw_config.get("allowed_values") or {})
    output = OutputConfig(**_parse_output_section(raw_config.get("output") or {}))

    config = AppConfig(
        view=view,
        summaries=summaries,
        allowed_values=allowed_values,
        output=output,
    )
    return config.resolved(config_path.parent)


def _parse_section(section: Any, target: type, name: str) -> Dict[str, Any]:
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError(f"The '{name}' section must be a mapping")
    known = {field_info.name for field_info in fields(target)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {', '.join(unknown)}")
    return dict(section)


def _parse_allowed_values(section: Any) -> Dict[str, List[str]]:
    if not isinstance(section, Mapping):
        raise ValueError("allowed_values must map property names to lists")
    parsed: Dict[str, List[str]] = {}
    for key, values in section.items():
        if isinstance(values, str):
            values = values.split()
        if not isinstance(values, list):
            raise ValueError(f"allowed_values.{key} must be a list")
        parsed[str(key).upper()] = [str(value) for value in values]
    return parsed


def _parse_output_section(section: Mapping[str, Any]) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    if "directory" in section:
        parsed["directory"] = Path(section["directory"])
    for key in ("table_report", "workbook_report", "sheet_name"):
        if key in section:
            parsed[key] = section[key]
    return parsed


def _resolve_path(path: Path, base_path: Path) -> Path:
    expanded = Path(path).expanduser()
    if expanded.is_absolute():
        return expanded
    return (base_path / expanded).resolve()


__all__ = [
    "AppConfig",
    "OutputConfig",
    "SummaryConfig",
    "ViewConfig",
    "load_config",
]
