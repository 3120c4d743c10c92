import pytest

from colview.errors import (
    IndexOutOfRange,
    InvalidFormat,
    NoActiveSession,
    UnknownColumn,
    UnknownOperator,
)
from colview.session import SessionState, ViewSession

FORMAT = "%ITEM %POINTS{+}"


def test_activation_renders_every_row(session, surface, outline):
    session.activate(columns=FORMAT)

    assert session.state is SessionState.ACTIVE
    assert len(session.rows) == len(outline)
    assert surface.read_only == {node.node_id for node in outline}
    assert session.widths == [9, 6]
    assert session.title == "ITEM      | POINTS | "
    assert surface.header == session.title
    assert surface.line(outline.find("Project").node_id).startswith("* Project | 6 ")
    assert surface.line(outline.find("Ship").node_id).startswith("** Ship   | 3 ")


def test_quit_releases_everything(session, surface):
    session.activate(columns=FORMAT)
    session.quit()

    assert session.state is SessionState.INACTIVE
    assert surface.is_clean
    assert session.rows == {}
    assert len(session.cache) == 0


def test_session_is_a_context_manager(session, surface):
    with session.activate(columns=FORMAT):
        assert not surface.is_clean
    assert surface.is_clean
    assert not session.active


def test_reactivation_tears_down_previous_regions(session, surface, outline):
    session.activate(columns=FORMAT)
    other = outline.find("Other")
    session.activate(other, columns=FORMAT)

    assert session.anchor is other
    assert set(surface.regions) == {other.node_id}
    assert surface.read_only == {other.node_id}


def test_failed_activation_leaves_session_inactive(session, surface):
    with pytest.raises(UnknownOperator):
        session.activate(columns="%ITEM %POINTS{nope}")
    assert session.state is SessionState.INACTIVE
    assert surface.is_clean

    with pytest.raises(InvalidFormat):
        session.activate(columns="%ITEM %%")
    assert surface.is_clean


def test_anchor_and_format_come_from_columns_property(session, outline):
    project = outline.find("Project")
    outline.set_property(project, "COLUMNS", "%ITEM %POINTS{max}")

    session.activate(outline.find("Design"))

    assert session.anchor is project
    assert session.format == "%ITEM %POINTS{max}"
    assert session.value_at(project, "POINTS") == "3"
    assert outline.find("Other").node_id not in session.rows


def test_document_format_and_default_format(session, outline):
    session.activate()
    assert [spec.property for spec in session.specs] == ["ITEM", "TODO", "PRIORITY", "TAGS"]
    assert session.value_at(outline.find("Design"), "PRIORITY") == "B"

    outline.columns = "%ITEM %DONE{X/}"
    session.activate()
    assert session.value_at(outline.find("Project"), "DONE") == "[2/3]"


def test_update_refreshes_only_that_column(session, surface, outline):
    session.activate(columns="%ITEM %POINTS{+} %DONE{X/}")
    outline.set_property(outline.find("Ship"), "POINTS", "4")
    outline.set_property(outline.find("Ship"), "DONE", "[X]")

    before = surface.updates
    session.update("POINTS")

    assert surface.updates - before == len(outline)
    assert session.value_at(outline.find("Project"), "POINTS") == "7"
    assert session.value_at(outline.find("Project"), "DONE") == "[2/3]"


def test_redo_recomputes_everything(session, outline):
    session.activate(columns="%ITEM %POINTS{+} %DONE{X/}")
    outline.set_property(outline.find("Ship"), "POINTS", "10")
    outline.set_property(outline.find("Ship"), "DONE", "[X]")

    session.redo()

    assert session.value_at(outline.find("Project"), "POINTS") == "13"
    assert session.value_at(outline.find("Project"), "DONE") == "[3/3]"


def test_lookups_require_an_active_session(session, outline):
    with pytest.raises(NoActiveSession):
        session.update("POINTS")
    with pytest.raises(NoActiveSession):
        session.value_at(outline.find("Ship"), "POINTS")

    session.activate(columns=FORMAT)
    with pytest.raises(UnknownColumn):
        session.value_at(outline.find("Ship"), "EFFORT")


def test_horizontal_scroll_moves_the_title(session, surface):
    session.activate(columns=FORMAT)
    assert session.set_hscroll(5) == session.title[5:]
    assert surface.header == session.title[5:]
    assert session.set_hscroll(-3) == session.title


def test_column_format_editing(session, outline):
    session.activate(columns=FORMAT)

    session.insert_column(1, "%TODO")
    assert [spec.property for spec in session.specs] == ["ITEM", "TODO", "POINTS"]

    assert session.move_column(2, -1) == 1
    assert [spec.property for spec in session.specs] == ["ITEM", "POINTS", "TODO"]

    assert session.widen_column(0, -3) == 6
    assert session.specs[0].width == 6
    assert session.widths[0] == 6

    removed = session.delete_column(2)
    assert removed.property == "TODO"
    assert session.format == "%6ITEM %POINTS{+}"
    assert session.value_at(outline.find("Project"), "POINTS") == "6"


def test_column_editing_errors_keep_the_format(session):
    session.activate(columns="%ITEM")
    with pytest.raises(InvalidFormat):
        session.delete_column(0)
    with pytest.raises(IndexOutOfRange):
        session.move_column(0, 1)
    with pytest.raises(IndexOutOfRange):
        session.widen_column(3, 1)
    with pytest.raises(UnknownOperator):
        session.insert_column(1, "%POINTS{nope}")
    assert session.format == "%ITEM"
    assert [spec.property for spec in session.specs] == ["ITEM"]


def test_store_format_writes_to_the_format_source(session, outline):
    session.activate(columns=FORMAT)
    session.widen_column(1, 2)
    assert session.store_format() == "%ITEM %8POINTS{+}"
    assert outline.columns == "%ITEM %8POINTS{+}"

    project = outline.find("Project")
    outline.set_property(project, "COLUMNS", "%ITEM %POINTS")
    session.activate(project)
    session.insert_column(2, "%DONE{X}")
    session.store_format()
    assert project.properties["COLUMNS"] == "%ITEM %POINTS %DONE{X}"


def test_activation_writes_back_summaries(outline, clock):
    session = ViewSession(outline, clock=clock)
    session.activate(columns=FORMAT)
    assert outline.find("Project").properties["POINTS"] == "6"
    assert session.now is not None


def test_operators_on_headings_and_tags_leave_them_alone(session, surface, outline):
    project = outline.find("Project")
    session.activate(columns="%ITEM{X/} %ALLTAGS{X} %POINTS{+}")

    assert project.heading == "Project"
    assert session.value_at(project, "ITEM") == "Project"
    assert session.value_at(project, "POINTS") == "6"
    assert surface.line(project.node_id).startswith("* Project")


def test_summaries_with_printf_text_are_displayed_once(session, surface, outline):
    session.activate(columns="%ITEM %POINTS{+;%d pts}")

    project = outline.find("Project")
    assert session.value_at(project, "POINTS") == "6 pts"
    assert "6 pts" in surface.line(project.node_id)
    assert "3 pts" in surface.line(outline.find("Ship").node_id)
