from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for absolute imports
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from colview import MemorySurface, Outline, ViewSession

FIXED_NOW = dt.datetime(2024, 3, 15, 12, 0)


@pytest.fixture
def fixed_now() -> dt.datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def outline() -> Outline:
    return Outline.from_tree(
        [
            {
                "heading": "Project",
                "tags": ["work"],
                "properties": {"POINTS": "", "DONE": ""},
                "children": [
                    {
                        "heading": "Design",
                        "properties": {"POINTS": "1", "DONE": "[X]", "EFFORT": "1:00"},
                    },
                    {
                        "heading": "Build",
                        "properties": {"POINTS": "2", "DONE": "[X]", "EFFORT": "2:30"},
                    },
                    {
                        "heading": "Ship",
                        "properties": {"POINTS": "3", "DONE": "[ ]", "EFFORT": "0:45"},
                    },
                ],
            },
            {"heading": "Other", "properties": {"POINTS": "10"}},
        ],
        properties={"STATUS_ALL": "a b c"},
    )


@pytest.fixture
def surface() -> MemorySurface:
    return MemorySurface()


@pytest.fixture
def session(outline: Outline, surface: MemorySurface, clock) -> ViewSession:
    return ViewSession(outline, surface=surface, clock=clock)


@pytest.fixture
def sample_outline_path() -> Path:
    return ROOT / "sample_data" / "project.yaml"


@pytest.fixture
def config_path() -> Path:
    return ROOT / "config" / "config.yaml"
