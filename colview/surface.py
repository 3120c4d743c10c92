"""Display surfaces that column view sessions render into."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from .render import Region


class Surface(ABC):
    """Abstract host display.

    Regions are addressed by ``(node_id, column)``; rows are marked read-only
    while a session shows them.  A session releases everything it put on the
    surface when it ends.
    """

    @abstractmethod
    def put_region(self, region: Region) -> None:
        """Show ``region``, replacing the region at the same address."""

    @abstractmethod
    def clear_row(self, node_id: int) -> None:
        """Remove every region shown for ``node_id``."""

    @abstractmethod
    def set_read_only(self, node_id: int, read_only: bool) -> None:
        """Mark the document row of ``node_id`` read-only (or writable again)."""

    @abstractmethod
    def set_header(self, text: Optional[str]) -> None:
        """Show ``text`` as the title line, or remove it with ``None``."""


class MemorySurface(Surface):
    """Surface keeping its state in dictionaries; used by the CLI and tests."""

    def __init__(self) -> None:
        self.regions: Dict[int, Dict[int, Region]] = {}
        self.read_only: Set[int] = set()
        self.header: Optional[str] = None
        self.updates = 0

    def put_region(self, region: Region) -> None:
        self.regions.setdefault(region.node_id, {})[region.column] = region
        self.updates += 1

    def clear_row(self, node_id: int) -> None:
        self.regions.pop(node_id, None)

    def set_read_only(self, node_id: int, read_only: bool) -> None:
        if read_only:
            self.read_only.add(node_id)
        else:
            self.read_only.discard(node_id)

    def set_header(self, text: Optional[str]) -> None:
        self.header = text

    def line(self, node_id: int) -> str:
        """Return the visible text of the row shown for ``node_id``."""

        row = self.regions.get(node_id, {})
        return "".join(row[column].text for column in sorted(row) if not row[column].hidden)

    def lines(self) -> List[str]:
        return [self.line(node_id) for node_id in sorted(self.regions)]

    @property
    def is_clean(self) -> bool:
        return not self.regions and not self.read_only and self.header is None


__all__ = ["MemorySurface", "Surface"]
