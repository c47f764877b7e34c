"""Tests for text cells and the cell sequence."""

import pytest
from prompt_toolkit.buffer import EditReadOnlyBuffer

from repl_notebook.cells import CellSequence, collapse_submission
from repl_notebook.text_cell import CellRole, InlineTextDisplay, TextCell


class TestCollapseSubmission:
    """Multi-line inputs are sent as one logical line."""

    def test_lines_joined_with_space(self):
        assert collapse_submission(["print(1", "+1)"]) == "print(1 +1)"

    def test_single_line_unchanged(self):
        assert collapse_submission(["x = 1"]) == "x = 1"

    def test_line_terminators_stripped(self):
        assert collapse_submission(["a\r\n", "b\n", "c"]) == "a b c"

    def test_empty_input(self):
        assert collapse_submission([""]) == ""


class TestInlineTextDisplay:
    """Tests for the buffer wrapper inside each cell."""

    def test_append_moves_cursor_to_end(self):
        display = InlineTextDisplay()
        display.append("ab")
        display.buffer.cursor_position = 0
        display.append("cd")
        assert display.text == "abcd"
        assert display.buffer.cursor_position == 4

    def test_line_count(self):
        display = InlineTextDisplay()
        assert display.line_count == 1
        display.append("a\nb\nc")
        assert display.line_count == 3
        assert display.lines == ["a", "b", "c"]

    def test_edit_actions(self):
        display = InlineTextDisplay()
        display.insert_text("ab")
        assert display.edit("newline")
        display.insert_text("cd")
        assert display.text == "ab\ncd"
        assert display.edit("backspace")
        assert display.text == "ab\nc"
        assert display.edit("home")
        assert display.cursor_row_col() == (1, 0)
        assert display.edit("up")
        assert display.cursor_row_col()[0] == 0
        assert display.edit("end")
        assert display.cursor_row_col() == (0, 2)
        assert display.edit("delete")
        assert display.text == "abc"

    def test_unknown_action(self):
        assert InlineTextDisplay().edit("teleport") is False

    def test_set_cursor_is_clamped(self):
        display = InlineTextDisplay()
        display.append("abc\nde")
        display.set_cursor(0, 99)
        assert display.cursor_row_col() == (0, 3)
        display.set_cursor(1, -5)
        assert display.cursor_row_col() == (1, 0)
        display.set_cursor(99, 1)
        assert display.cursor_row_col() == (1, 2)
        display.set_cursor(-3, 2)
        assert display.cursor_row_col() == (0, 0)

    def test_selection(self):
        display = InlineTextDisplay()
        display.append("hello world")
        display.set_cursor(0, 0)
        display.start_selection()
        display.set_cursor(0, 5)
        assert display.selection_range() == (0, 5)
        assert display.selected_text() == "hello"
        display.exit_selection()
        assert display.selection_range() is None
        assert display.selected_text() == ""

    def test_select_word_at_cursor(self):
        display = InlineTextDisplay()
        display.append("x = foo_bar(1)")
        display.set_cursor(0, 6)
        assert display.select_word_at_cursor() == "foo_bar"
        assert display.selection_range() == (4, 11)
        display.set_cursor(0, 3)
        assert display.select_word_at_cursor() == ""
        assert display.selection_range() is None


class TestTextCell:
    """Tests for cell roles and the frozen state."""

    def test_roles(self):
        output = TextCell(CellRole.OUTPUT, panel_id=1, cell_id=0)
        input_cell = TextCell(CellRole.INPUT, panel_id=1, cell_id=1)
        assert output.is_output and not output.is_input
        assert input_cell.is_input and not input_cell.is_output
        assert not output.accepts_input
        assert input_cell.accepts_input

    def test_output_cell_rejects_user_edits(self):
        cell = TextCell(CellRole.OUTPUT, panel_id=1, cell_id=0)
        with pytest.raises(EditReadOnlyBuffer):
            cell.display.insert_text("x")

    def test_output_cell_accepts_appends(self):
        cell = TextCell(CellRole.OUTPUT, panel_id=1, cell_id=0)
        cell.append("Python 3\n>>> ")
        assert cell.text == "Python 3\n>>> "

    def test_frozen_input_is_read_only(self):
        cell = TextCell(CellRole.INPUT, panel_id=1, cell_id=1)
        cell.display.insert_text("x = 1")
        cell.freeze()
        assert cell.frozen
        assert not cell.accepts_input
        with pytest.raises(EditReadOnlyBuffer):
            cell.display.insert_text("2")
        assert cell.text == "x = 1"

    def test_repr(self):
        cell = TextCell(CellRole.INPUT, panel_id=1, cell_id=7)
        cell.freeze()
        assert repr(cell) == "<TextCell #7 input frozen lines=1>"


class TestCellSequence:
    """Tests for ordering, rotation and focus."""

    def test_initial_pair(self):
        cells = CellSequence(panel_id=3)
        assert len(cells) == 2
        assert cells[0].is_output
        assert cells[1].is_input
        assert cells.output_cell is cells[0]
        assert cells.input_cell is cells[1]
        assert cells.active_cell is cells.input_cell
        assert all(cell.panel_id == 3 for cell in cells)

    def test_rotate_adds_two_cells(self):
        cells = CellSequence()
        for n in range(1, 4):
            before = len(cells)
            cells.rotate()
            assert len(cells) == before + 2
            assert cells.submissions == n
            assert len(cells.output_cells()) == n + 1

    def test_rotate_freezes_submitted_input(self):
        cells = CellSequence()
        cells.input_cell.display.insert_text("1 + 1")
        submitted = cells.rotate()
        assert submitted is cells[1]
        assert submitted.frozen
        assert cells[-1] is cells.input_cell
        assert cells[-2] is cells.output_cell
        assert cells.active_cell is cells.input_cell
        assert cells.output_cell.scroll_to_bottom

    def test_only_last_input_is_editable(self):
        cells = CellSequence()
        cells.rotate()
        cells.rotate()
        inputs = cells.input_cells()
        assert [cell.frozen for cell in inputs] == [True, True, False]

    def test_earlier_cells_unchanged_by_rotation(self):
        cells = CellSequence()
        cells.append_output("banner\n")
        cells.input_cell.display.insert_text("x")
        cells.rotate()
        cells.append_output("result")
        assert cells[0].text == "banner\n"
        assert cells[1].text == "x"
        assert cells[2].text == "result"

    def test_append_output_goes_to_trailing_output(self):
        cells = CellSequence()
        cells.rotate()
        cells.append_output("2")
        assert cells[0].text == ""
        assert cells[2].text == "2"

    def test_cell_ids_are_unique(self):
        cells = CellSequence()
        cells.rotate()
        ids = [cell.cell_id for cell in cells]
        assert len(set(ids)) == len(ids)
        assert cells.find(ids[2]) is cells[2]
        assert cells.find(999) is None

    def test_focus(self):
        cells = CellSequence()
        cells.rotate()
        cells.focus(cells[0])
        assert cells.active_cell is cells[0]
        assert not cells[0].frozen
        cells.focus_input()
        assert cells.active_cell is cells.input_cell

    def test_focus_foreign_cell(self):
        cells = CellSequence()
        other = CellSequence()
        with pytest.raises(ValueError):
            cells.focus(other[0])
        assert other[0] not in cells

    def test_index_of(self):
        cells = CellSequence()
        assert cells.index_of(cells[1]) == 1
        with pytest.raises(ValueError):
            cells.index_of(CellSequence()[0])

    def test_line_counts(self):
        cells = CellSequence()
        cells.append_output("a\nb\nc")
        assert cells.line_counts() == [3, 1]
