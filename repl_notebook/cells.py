"""Ordered cell sequence of a notebook panel.

The sequence always reads top to bottom in chronological order:

    output 0 (banner) | input 0 | output 1 | input 1 | ... | output N | input N

It ends with exactly one editable input cell, every earlier input cell is
frozen, and there are exactly ``submissions + 1`` output cells. The
trailing output cell is the one stream readers append to.
"""

import logging
from typing import Iterator, List, Optional, Sequence

from .text_cell import CellRole, TextCell

logger = logging.getLogger(__name__)

LINE_TERMINATORS = "\r\n"


def collapse_submission(lines: Sequence[str]) -> str:
    """Collapse a multi-line input into a single logical line.

    Line terminators at the end of each line are dropped and the lines are
    joined with a single space. The caller appends the one trailing line
    terminator when transmitting.

    Args:
        lines: Lines of the input cell.

    Returns:
        The single-line payload, e.g. ["print(1", "+1)"] -> "print(1 +1)".
    """
    return " ".join(line.rstrip(LINE_TERMINATORS) for line in lines)


class CellSequence:
    """Cells of one panel plus the active/trailing cell pointers."""

    def __init__(self, panel_id: int = 0):
        self.panel_id = panel_id
        self._cells: List[TextCell] = []
        self._next_id = 0
        self.submissions = 0

        self.output_cell = self._new_cell(CellRole.OUTPUT)
        self.input_cell = self._new_cell(CellRole.INPUT)
        self.active_cell = self.input_cell

    def _new_cell(self, role: CellRole) -> TextCell:
        cell = TextCell(role, panel_id=self.panel_id, cell_id=self._next_id)
        self._next_id += 1
        self._cells.append(cell)
        return cell

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[TextCell]:
        return iter(self._cells)

    def __getitem__(self, index: int) -> TextCell:
        return self._cells[index]

    def __contains__(self, cell: object) -> bool:
        return any(c is cell for c in self._cells)

    @property
    def cells(self) -> List[TextCell]:
        return list(self._cells)

    def index_of(self, cell: TextCell) -> int:
        for i, candidate in enumerate(self._cells):
            if candidate is cell:
                return i
        raise ValueError(f"{cell!r} is not part of this panel")

    def line_counts(self) -> List[int]:
        return [cell.line_count for cell in self._cells]

    def output_cells(self) -> List[TextCell]:
        return [cell for cell in self._cells if cell.is_output]

    def input_cells(self) -> List[TextCell]:
        return [cell for cell in self._cells if cell.is_input]

    def append_output(self, text: str) -> None:
        """Append stream text to the trailing output cell."""
        self.output_cell.append(text)

    def rotate(self) -> TextCell:
        """Freeze the trailing input and open a new output/input pair.

        Returns:
            The input cell that was just frozen.
        """
        submitted = self.input_cell
        submitted.freeze()

        self.output_cell = self._new_cell(CellRole.OUTPUT)
        self.output_cell.scroll_to_bottom = True
        self.input_cell = self._new_cell(CellRole.INPUT)
        self.active_cell = self.input_cell
        self.submissions += 1

        logger.debug(f"Rotated cells after submission {self.submissions}: {len(self._cells)} cells")
        return submitted

    def focus(self, cell: TextCell) -> None:
        """Make ``cell`` the active cell without touching order or frozen state."""
        if cell not in self:
            raise ValueError(f"{cell!r} is not part of this panel")
        self.active_cell = cell

    def focus_input(self) -> None:
        self.active_cell = self.input_cell

    def find(self, cell_id: int) -> Optional[TextCell]:
        for cell in self._cells:
            if cell.cell_id == cell_id:
                return cell
        return None
