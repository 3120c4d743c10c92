import pytest

from colview.aggregation import AggregationEngine, SummaryCache
from colview.errors import AggregateError, NotANumber, UnknownOperator
from colview.formats import compile_format
from colview.outline import Outline
from colview.summaries import SummaryRegistry


def _engine(outline, fmt, **kwargs):
    return AggregationEngine(outline, compile_format(fmt), **kwargs)


@pytest.mark.parametrize("operator, expected", [("+", "6"), ("mean", "2"), ("max", "3"), ("min", "1")])
def test_parent_summarises_its_children(outline, operator, expected):
    engine = _engine(outline, f"%ITEM %POINTS{{{operator}}}")
    engine.compute_all()

    project = outline.find("Project")
    assert engine.cache.get(1, project) == expected
    assert engine.cache.get(1, outline.find("Ship")) is None
    assert engine.cache.get(1, outline.find("Other")) is None


@pytest.mark.parametrize("operator, expected", [("X", "[-]"), ("X/", "[2/3]"), ("X%", "[67%]")])
def test_checkbox_columns(outline, operator, expected):
    engine = _engine(outline, f"%ITEM %DONE{{{operator}}}")
    engine.compute_all()
    assert engine.cache.get(1, outline.find("Project")) == expected


def test_duration_column_summarises_without_writing_missing_property(outline):
    engine = _engine(outline, "%ITEM %EFFORT{:}")
    engine.compute_all()

    project = outline.find("Project")
    assert engine.cache.get(1, project) == "4:15"
    assert "EFFORT" not in project.properties


def test_summaries_are_written_back_to_existing_properties(outline):
    engine = _engine(outline, "%ITEM %POINTS{+} %POINTS(Top){max}")
    engine.compute_all()

    project = outline.find("Project")
    assert project.properties["POINTS"] == "6"
    assert engine.cache.get(2, project) == "3"


def test_write_back_can_be_disabled(outline):
    engine = _engine(outline, "%ITEM %POINTS{+}", write_back=False)
    engine.compute_all()
    assert outline.find("Project").properties["POINTS"] == ""


def test_grandparents_aggregate_through_intermediate_summaries():
    outline = Outline.from_tree(
        [
            {
                "heading": "Root",
                "children": [
                    {"heading": "A", "children": [{"heading": "a1", "properties": {"N": "1"}}, {"heading": "a2", "properties": {"N": "2"}}]},
                    {"heading": "B", "properties": {"N": "4"}},
                    {"heading": "C", "children": [{"heading": "c1", "children": [{"heading": "c11", "properties": {"N": "8"}}]}]},
                ],
            }
        ]
    )
    engine = _engine(outline, "%ITEM %N{+}")
    engine.compute_all()

    assert engine.cache.get(1, outline.find("A")) == "3"
    assert engine.cache.get(1, outline.find("c1")) == "8"
    assert engine.cache.get(1, outline.find("C")) == "8"
    assert engine.cache.get(1, outline.find("Root")) == "15"


def test_compute_all_is_idempotent(outline):
    engine = _engine(outline, "%ITEM %POINTS{+} %DONE{X/} %EFFORT{:}")
    engine.compute_all()
    first = engine.cache.snapshot()
    engine.compute_all()
    assert engine.cache.snapshot() == first


def test_localized_recompute_only_touches_that_property(outline):
    engine = _engine(outline, "%ITEM %POINTS{+} %EFFORT{:}")
    engine.compute_all()
    before = engine.cache.snapshot()

    outline.set_property(outline.find("Ship"), "POINTS", "5")
    outline.set_property(outline.find("Ship"), "EFFORT", "9:00")
    engine.compute("points")
    after = engine.cache.snapshot()

    project = outline.find("Project")
    changed = {key for key in after if after[key] != before.get(key)}
    assert changed == {(1, project.node_id)}
    assert after[(1, project.node_id)] == "8"
    assert after[(2, project.node_id)] == "4:15"


def test_failed_recompute_keeps_previous_cache(outline):
    engine = _engine(outline, "%ITEM %POINTS{+}")
    engine.compute_all()

    outline.set_property(outline.find("Ship"), "POINTS", "many")
    with pytest.raises(AggregateError) as excinfo:
        engine.compute("POINTS")

    error = excinfo.value
    assert error.spec.property == "POINTS"
    assert error.node is outline.find("Project")
    assert isinstance(error.__cause__, NotANumber)
    assert engine.cache.get(1, outline.find("Project")) == "6"


def test_compute_all_reports_first_failure_after_other_columns(outline):
    engine = _engine(outline, "%ITEM %POINTS{nope} %DONE{X/}")
    with pytest.raises(UnknownOperator):
        engine.compute_all()
    assert engine.cache.get(2, outline.find("Project")) == "[2/3]"


def test_compute_one_without_write_back(outline):
    engine = _engine(outline, "%ITEM %POINTS{+}")
    engine.compute_one(engine.specs[1])
    assert engine.cache.get(1, outline.find("Project")) == "6"
    assert outline.find("Project").properties["POINTS"] == ""


def test_anchor_limits_the_walk(outline):
    other = outline.find("Other")
    engine = _engine(outline, "%ITEM %POINTS{+}", anchor=other)
    engine.compute_all()
    assert len(engine.cache) == 0


def test_clock_sums_use_clocked_time():
    outline = Outline.from_tree(
        [
            {
                "heading": "Root",
                "clock": 15,
                "children": [
                    {"heading": "A", "clock": "0:30", "clock_today": 10},
                    {"heading": "B", "clock": "1:30"},
                    {"heading": "C"},
                ],
            }
        ]
    )
    engine = _engine(outline, "%ITEM %CLOCKSUM{+} %CLOCKSUM_T")
    engine.compute_all()

    assert engine.cache.get(1, outline.find("Root")) == "2:15"
    assert engine.cache.get(1, outline.find("A")) == "0:30"
    assert engine.cache.get(1, outline.find("C")) is None
    assert engine.cache.get(2, outline.find("Root")) == "0:10"
    assert engine.is_computed(1, outline.find("C"))


def test_age_columns_use_injected_clock(outline, clock):
    outline.set_property(outline.find("Design"), "SEEN", "<2024-03-14 Thu>")
    outline.set_property(outline.find("Build"), "SEEN", "<2024-03-10 Sun>")
    engine = _engine(outline, "%ITEM %SEEN{@min}", clock=clock)
    engine.compute_all()
    assert engine.cache.get(1, outline.find("Project")) == "1d 12h 00m 00s"


def test_summary_cache_export_and_load():
    cache = SummaryCache()
    cache.replace(0, {1: "a"})
    saved = cache.export()
    cache.replace(0, {1: "b"})
    cache.load(saved)
    assert cache.snapshot() == {(0, 1): "a"}


def test_operators_on_entry_properties_are_ignored(outline):
    project = outline.find("Project")
    before = (project.heading, project.todo, list(project.tags))
    engine = _engine(outline, "%ITEM{X/} %TODO{+} %ALLTAGS{X} %POINTS{+}")
    engine.compute_all()

    assert (project.heading, project.todo, list(project.tags)) == before
    assert engine.cache.get(0, project) is None
    assert engine.cache.get(2, project) is None
    assert not engine.is_computed(0, project)
    assert engine.cache.get(3, project) == "6"


def test_printf_with_text_still_feeds_grandparents():
    outline = Outline.from_tree(
        [
            {
                "heading": "Root",
                "children": [
                    {"heading": "A", "children": [{"heading": "a1", "properties": {"COST": "1"}}, {"heading": "a2", "properties": {"COST": "2"}}]},
                    {"heading": "B", "properties": {"COST": "4"}},
                ],
            }
        ]
    )
    engine = _engine(outline, "%ITEM %COST{+;%.2f EUR}")
    engine.compute_all()

    assert engine.cache.get(1, outline.find("A")) == "3.00 EUR"
    assert engine.cache.get(1, outline.find("Root")) == "7.00 EUR"


def _picky(values, printf=None):
    if "99" in values:
        raise NotANumber("99 is not accepted")
    return str(len(values))


def test_compute_stores_nothing_when_a_later_column_fails(outline):
    registry = SummaryRegistry()
    registry.register("picky", _picky)
    engine = _engine(outline, "%ITEM %POINTS{+} %POINTS(Count){picky}", registry=registry)
    engine.compute_all()
    project = outline.find("Project")
    assert engine.cache.get(2, project) == "3"

    outline.set_property(outline.find("Ship"), "POINTS", "99")
    with pytest.raises(AggregateError):
        engine.compute("POINTS")

    assert engine.cache.get(1, project) == "6"
    assert project.properties["POINTS"] == "6"
