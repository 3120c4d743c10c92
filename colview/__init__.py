"""Column view for outline documents.

This package turns an outline (a tree of entries carrying properties) into a
table: every entry becomes a row and every property named in a column format
becomes a column.  Columns may summarise their children with operators such as
sums, checkbox progress or durations, and cells can be edited while the view
is active.  The command line interface distributed with this repository and
any interactive front end share these building blocks.
"""

from .aggregation import AggregationEngine, SummaryCache
from .capture import CaptureResult, capture_view
from .config import AppConfig, OutputConfig, SummaryConfig, ViewConfig, load_config
from .edit import EditController
from .errors import (
    AggregateError,
    ColumnViewError,
    ComputedValueError,
    FormatError,
    IndexOutOfRange,
    InvalidAge,
    InvalidFormat,
    NoActiveSession,
    NoAllowedValues,
    NotANumber,
    ReadOnlyColumn,
    UnknownColumn,
    UnknownOperator,
)
from .formats import ColumnSpec, compile_format, uncompile_format
from .io import load_outline
from .outline import Node, Outline
from .render import ProjectionRenderer, add_ellipsis
from .reporting import capture_to_excel_bytes, export_capture
from .session import SessionState, ViewSession
from .summaries import Operator, SummaryRegistry
from .surface import MemorySurface, Surface

__all__ = [
    "AggregateError",
    "AggregationEngine",
    "AppConfig",
    "CaptureResult",
    "ColumnSpec",
    "ColumnViewError",
    "ComputedValueError",
    "EditController",
    "FormatError",
    "IndexOutOfRange",
    "InvalidAge",
    "InvalidFormat",
    "MemorySurface",
    "NoActiveSession",
    "NoAllowedValues",
    "Node",
    "NotANumber",
    "Operator",
    "Outline",
    "OutputConfig",
    "ProjectionRenderer",
    "ReadOnlyColumn",
    "SessionState",
    "SummaryCache",
    "SummaryConfig",
    "SummaryRegistry",
    "Surface",
    "UnknownColumn",
    "UnknownOperator",
    "ViewConfig",
    "ViewSession",
    "add_ellipsis",
    "capture_to_excel_bytes",
    "capture_view",
    "compile_format",
    "export_capture",
    "load_config",
    "load_outline",
    "uncompile_format",
]
