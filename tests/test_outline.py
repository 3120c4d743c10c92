import pytest

from colview.errors import ReadOnlyColumn
from colview.outline import Node, Outline, format_tags, parse_tags


def test_special_properties(outline):
    design = outline.find("Design")
    design.todo = "TODO"

    assert outline.get_property(design, "item") == "Design"
    assert outline.get_property(design, "TODO") == "TODO"
    assert outline.get_property(design, "PRIORITY") == "B"
    assert outline.get_property(design, "TAGS") is None
    assert outline.get_property(design, "ALLTAGS") == ":work:"
    assert outline.get_property(design, "LEVEL") == "2"
    assert outline.get_property(design, "CLOCKSUM") is None


def test_inheritance_and_categories(outline):
    project = outline.find("Project")
    ship = outline.find("Ship")
    outline.set_property(project, "OWNER", "ana")
    outline.category = "plan"

    assert outline.get_property(ship, "OWNER") is None
    assert outline.get_property(ship, "OWNER", inherit=True) == "ana"
    assert outline.get_property(ship, "STATUS_ALL", inherit=True) == "a b c"
    assert outline.get_property(ship, "CATEGORY") == "plan"
    assert outline.inherited_from(ship, "OWNER") is project
    assert outline.inherited_from(ship, "MISSING") is None


def test_tree_navigation(outline):
    project = outline.find("Project")
    ship = outline.find("Ship")

    assert outline.parent(ship) is project
    assert outline.ancestors(ship) == [project]
    assert outline.top_level(ship) is project
    assert [node.heading for node in outline.subtree(project)] == ["Project", "Design", "Build", "Ship"]
    assert len(outline.subtree()) == len(outline)
    with pytest.raises(KeyError):
        outline.find("Nowhere")


def test_set_property_maps_special_names(outline):
    ship = outline.find("Ship")
    outline.set_property(ship, "ITEM", "Launch")
    outline.set_property(ship, "TAGS", ":a:b:")
    outline.set_property(ship, "PRIORITY", "A")
    outline.set_property(ship, "todo", "DONE")

    assert (ship.heading, ship.tags, ship.priority, ship.todo) == ("Launch", ["a", "b"], "A", "DONE")
    with pytest.raises(ReadOnlyColumn):
        outline.set_property(ship, "CLOCKSUM", "1:00")
    with pytest.raises(ReadOnlyColumn):
        outline.set_property(ship, "ALLTAGS", ":x:")

    outline.delete_property(ship, "points")
    assert "POINTS" not in ship.properties


def test_allowed_values_sources(outline):
    ship = outline.find("Ship")
    outline.set_property(outline.find("Project"), "OWNER_ALL", 'ana "bo b"')

    assert outline.allowed_values(ship, "status") == ["a", "b", "c"]
    assert outline.allowed_values(ship, "OWNER") == ["ana", "bo b"]
    assert outline.allowed_values(ship, "TODO") == ["TODO", "DONE", ""]
    assert outline.allowed_values(ship, "PRIORITY") == ["A", "B", "C"]
    assert outline.allowed_values(ship, "COLOR") is None


def test_nodes_normalise_keys_and_levels():
    node = Node("Task", properties={"effort": 1})
    assert node.properties == {"EFFORT": "1"}
    with pytest.raises(ValueError):
        Node("Bad", level=-1)
    assert parse_tags(":a:b:") == ["a", "b"]
    assert format_tags([]) is None


def test_from_tree_assigns_levels_and_ids():
    outline = Outline.from_tree([{"heading": "A", "children": [{"heading": "B", "duration": "1:30"}]}])
    assert [(node.node_id, node.level) for node in outline] == [(0, 1), (1, 2)]
    assert outline[1].duration_hint == 90
