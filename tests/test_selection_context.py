"""Tests for selection snapshots."""

from __future__ import annotations

from inkflow.editor.selection_context import SelectionContextExtractor, SelectionInfo, capture_selection


class FakeEditor:
    def __init__(self, text: str, span: tuple[int, int] | None) -> None:
        self._text = text
        self._span = span

    def text(self) -> str:
        return self._text

    def selection_span(self) -> tuple[int, int] | None:
        return self._span


def test_capture_partitions_content() -> None:
    info = capture_selection("Hello brave world", 6, 11)

    assert info.selected_text == "brave"
    assert info.before_selection == "Hello "
    assert info.after_selection == " world"
    assert info.before_selection + info.selected_text + info.after_selection == "Hello brave world"
    assert info.has_selection
    assert info.is_well_formed()


def test_reversed_offsets_are_swapped() -> None:
    info = capture_selection("abcdef", 4, 1)

    assert (info.selection_start, info.selection_end) == (1, 4)
    assert info.selected_text == "bcd"


def test_out_of_range_offsets_are_clamped() -> None:
    info = capture_selection("abc", -5, 99)

    assert (info.selection_start, info.selection_end) == (0, 3)
    assert info.selected_text == "abc"


def test_without_offsets_caret_sits_at_end() -> None:
    info = capture_selection("abc")

    assert info.is_caret
    assert not info.has_selection
    assert info.before_selection == "abc"
    assert info.after_selection == ""


def test_single_offset_gives_a_caret() -> None:
    info = capture_selection("abc", 1)

    assert info.is_caret
    assert info.before_selection == "a"


def test_matches_detects_drift() -> None:
    info = capture_selection("A. B.", 3, 5)

    assert info.matches("A. B.")
    assert not info.matches("A. B. more")
    assert not info.matches("X. B.")


def test_malformed_selection_is_detected() -> None:
    info = SelectionInfo(
        selected_text="abc",
        selection_start=0,
        selection_end=1,
        before_selection="",
        after_selection="",
    )

    assert not info.is_well_formed()
    assert not info.matches("abc")


def test_from_mapping_accepts_camel_case() -> None:
    info = SelectionInfo.from_mapping(
        {
            "selectedText": "B.",
            "selectionStart": "3",
            "selectionEnd": 5,
            "beforeSelection": "A. ",
            "afterSelection": None,
        }
    )

    assert info == capture_selection("A. B.", 3, 5)
    assert info.as_dict()["selection_start"] == 3


def test_extractor_reads_live_source() -> None:
    editor = FakeEditor("one two", (4, 7))

    info = SelectionContextExtractor(editor).capture()

    assert info.selected_text == "two"


def test_extractor_without_span() -> None:
    info = SelectionContextExtractor(FakeEditor("one", None)).capture()

    assert info.selection_start == 3
