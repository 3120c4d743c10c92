from colview.capture import capture_view

FORMAT = "%ITEM %POINTS{+} %EFFORT"


def test_capture_returns_header_and_rows(outline):
    capture = capture_view(outline, columns=FORMAT)

    assert capture.header_row == ["ITEM", "POINTS", "EFFORT"]
    assert capture.body_rows == [
        (1, ["Project", "6", ""]),
        (2, ["Design", "1", "1:00"]),
        (2, ["Build", "2", "2:30"]),
        (2, ["Ship", "3", "0:45"]),
        (1, ["Other", "10", ""]),
    ]


def test_capture_filters(outline):
    assert [values[0] for _, values in capture_view(outline, columns=FORMAT, max_level=1).body_rows] == [
        "Project",
        "Other",
    ]
    assert len(capture_view(outline, columns="%ITEM %EFFORT", skip_empty_rows=True)) == 3
    assert [values[0] for _, values in capture_view(outline, columns=FORMAT, exclude_tags=["work"]).body_rows] == [
        "Other"
    ]
    assert len(capture_view(outline, columns=FORMAT, match="work")) == 4
    assert [
        values[0]
        for _, values in capture_view(
            outline, columns=FORMAT, match=lambda node: node.heading.startswith("S")
        ).body_rows
    ] == ["Ship"]


def test_capture_uses_display_values_outside_item(outline):
    outline.set_property(outline.find("Ship"), "DEADLINE", "<2024-03-14 Thu>")
    capture = capture_view(outline, columns="%ITEM %DEADLINE %POINTS{+;%.1f}", anchor=outline.find("Ship"))

    assert capture.body_rows[0] == (1, ["Project", "", "6.0"])
    assert capture.body_rows[3] == (2, ["Ship", "2024-03-14 Thu", "3.0"])


def test_capture_to_frame(outline):
    frame = capture_view(outline, columns=FORMAT).to_frame()

    assert list(frame.columns) == ["level", "ITEM", "POINTS", "EFFORT"]
    assert frame["level"].tolist() == [1, 2, 2, 2, 1]
    assert frame.loc[0, "POINTS"] == "6"
