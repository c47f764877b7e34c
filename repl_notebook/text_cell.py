"""Text cells: one block of the notebook panel.

A TextCell pairs a role tag (output or input) with an InlineTextDisplay,
the bounded text display that holds the cell's prompt_toolkit Buffer. The
display never scrolls itself and draws no gutter; the panel lays cells out
and scrolls them as a whole.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

from prompt_toolkit.buffer import Buffer
from prompt_toolkit.document import Document
from prompt_toolkit.filters import Condition
from prompt_toolkit.selection import SelectionType

logger = logging.getLogger(__name__)

# Actions that change the text (only allowed on editable input cells)
EDIT_ACTIONS = frozenset({"backspace", "delete", "newline"})
# Actions that only move the cursor
CURSOR_ACTIONS = frozenset({"left", "right", "up", "down", "home", "end"})


class CellRole(Enum):
    OUTPUT = "output"
    INPUT = "input"


class InlineTextDisplay:
    """A prompt_toolkit Buffer sized and positioned by its owner.

    Programmatic appends bypass the read-only filter; user edits go through
    the Buffer's normal editing API and respect it.
    """

    def __init__(self, read_only: Optional[Condition] = None):
        self.buffer = Buffer(
            multiline=True,
            read_only=read_only if read_only is not None else False,
        )

    @property
    def text(self) -> str:
        return self.buffer.text

    @property
    def lines(self) -> List[str]:
        return self.buffer.document.lines

    @property
    def line_count(self) -> int:
        return self.buffer.document.line_count

    def append(self, text: str) -> None:
        """Insert text at the end of the buffer and leave the cursor there."""
        if not text:
            return
        # move to end, then insert at the cursor position
        self.buffer.cursor_position = len(self.buffer.text)
        position = self.buffer.cursor_position
        new_text = self.buffer.text[:position] + text
        self.buffer.set_document(
            Document(new_text, cursor_position=len(new_text)),
            bypass_readonly=True,
        )

    def insert_text(self, text: str) -> None:
        self.buffer.insert_text(text)

    def edit(self, action: str) -> bool:
        """Apply a named editing or cursor action to the buffer.

        Returns:
            False if the action is unknown.
        """
        buffer = self.buffer
        document = buffer.document
        if action == "backspace":
            buffer.delete_before_cursor(1)
        elif action == "delete":
            buffer.delete(1)
        elif action == "newline":
            buffer.newline(copy_margin=False)
        elif action == "left":
            buffer.cursor_left()
        elif action == "right":
            buffer.cursor_right()
        elif action == "up":
            buffer.cursor_up()
        elif action == "down":
            buffer.cursor_down()
        elif action == "home":
            buffer.cursor_position += document.get_start_of_line_position()
        elif action == "end":
            buffer.cursor_position += document.get_end_of_line_position()
        else:
            return False
        return True

    def cursor_row_col(self) -> Tuple[int, int]:
        document = self.buffer.document
        return document.cursor_position_row, document.cursor_position_col

    def set_cursor(self, row: int, col: int) -> None:
        """Move the cursor to (row, col), clamped to the existing text.

        Rows above the text map to its start, rows below it to its end.
        """
        lines = self.lines
        if row < 0:
            row, col = 0, 0
        elif row >= len(lines):
            row = len(lines) - 1
            col = len(lines[row])
        col = max(0, min(col, len(lines[row])))
        self.buffer.cursor_position = self.buffer.document.translate_row_col_to_index(row, col)

    def start_selection(self) -> None:
        self.buffer.start_selection(selection_type=SelectionType.CHARACTERS)

    def exit_selection(self) -> None:
        self.buffer.exit_selection()

    def selected_text(self) -> str:
        state = self.buffer.selection_state
        if state is None:
            return ""
        start = min(self.buffer.cursor_position, state.original_cursor_position)
        end = max(self.buffer.cursor_position, state.original_cursor_position)
        return self.buffer.text[start:end]

    def select_word_at_cursor(self) -> str:
        """Select the word (alphanumerics and underscore) under the cursor.

        Returns the selected word, or "" when the cursor is not on a word.
        """
        text = self.buffer.text
        pos = self.buffer.cursor_position

        def is_word_char(c):
            return c.isalnum() or c == '_'

        start = pos
        while start > 0 and is_word_char(text[start - 1]):
            start -= 1
        end = pos
        while end < len(text) and is_word_char(text[end]):
            end += 1

        self.exit_selection()
        if start == end:
            return ""
        self.buffer.cursor_position = start
        self.start_selection()
        self.buffer.cursor_position = end
        return text[start:end]

    def selection_range(self) -> Optional[Tuple[int, int]]:
        """Absolute (start, end) offsets of the current selection, if any."""
        state = self.buffer.selection_state
        if state is None:
            return None
        start = min(self.buffer.cursor_position, state.original_cursor_position)
        end = max(self.buffer.cursor_position, state.original_cursor_position)
        return start, end


class TextCell:
    """One output or input block of the notebook.

    Attributes:
        role: CellRole.OUTPUT or CellRole.INPUT.
        panel_id: Handle of the owning panel. Used for routing only; the
            cell holds no reference to the panel object.
        cell_id: Position-independent identifier, unique within the panel.
        frozen: Set once an input cell has been submitted. Never cleared.
        scroll_to_bottom: Hint that the panel should reveal this cell.
    """

    def __init__(self, role: CellRole, panel_id: int, cell_id: int):
        self.role = role
        self.panel_id = panel_id
        self.cell_id = cell_id
        self.frozen = False
        self.scroll_to_bottom = False
        self.display = InlineTextDisplay(read_only=Condition(lambda: not self.accepts_input))

    def __repr__(self) -> str:
        state = " frozen" if self.frozen else ""
        return f"<TextCell #{self.cell_id} {self.role.value}{state} lines={self.line_count}>"

    @property
    def is_output(self) -> bool:
        return self.role is CellRole.OUTPUT

    @property
    def is_input(self) -> bool:
        return self.role is CellRole.INPUT

    @property
    def accepts_input(self) -> bool:
        """Only unsubmitted input cells can be edited by the user."""
        return self.role is CellRole.INPUT and not self.frozen

    @property
    def text(self) -> str:
        return self.display.text

    @property
    def lines(self) -> List[str]:
        return self.display.lines

    @property
    def line_count(self) -> int:
        return self.display.line_count

    def append(self, text: str) -> None:
        self.display.append(text)

    def freeze(self) -> None:
        if not self.frozen:
            logger.debug(f"Freezing cell #{self.cell_id}")
        self.frozen = True
