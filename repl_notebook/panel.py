"""Notebook panel: the composition root of the REPL view.

NotebookPanel ties a Session (child process + stream readers), a
CellSequence and a LayoutEngine together and exposes the contract a host
application needs from an embeddable view:

    get_name()                 tab/title name
    update()                   once per frame, before draw
    draw(width, height)        PanelFrame with fragments and cursor
    on_mouse_pressed/moved/released(x, y)
    on_mouse_scroll(dy)
    on_text_input(text)
    on_key(action)
    run_command(name)          named commands bound by the host keymap

Session errors never escape to the host as crashes: spawn failures and
writes after exit are shown in the status line and the panel stays
displayable (and closable) without a live session.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from prompt_toolkit.formatted_text import StyleAndTextTuples

from .cells import CellSequence, collapse_submission
from .config import NotebookConfig
from .errors import NotebookError, SessionClosed, SpawnError
from .layout import CellRect, LayoutEngine
from .render import Canvas, Fragment, highlight_lines
from .session import Session
from .text_cell import CURSOR_ACTIONS, EDIT_ACTIONS, TextCell
from .theme import ThemeConfig

logger = logging.getLogger(__name__)

PANEL_NAME = "-- Notebook"

# Rows reserved at the bottom of the panel for the status line
STATUS_HEIGHT = 1

# Lines scrolled per mouse wheel step
WHEEL_LINES = 3

SessionFactory = Callable[..., Session]


@dataclass
class StatusMessage:
    text: str
    error: bool = False
    expires_at: Optional[float] = None


@dataclass
class PanelFrame:
    """Result of one draw pass.

    Attributes:
        fragments: prompt_toolkit formatted text for the whole panel.
        cursor: (x, y) of the text cursor, or None when no input cell is
            visible and active.
        width: Panel width the frame was drawn for.
        height: Panel height the frame was drawn for.
    """
    fragments: StyleAndTextTuples
    cursor: Optional[Tuple[int, int]]
    width: int
    height: int


class NotebookPanel:
    """Interactive session panel made of stacked output/input cells."""

    _panel_ids = itertools.count(1)

    def __init__(
        self,
        config: Optional[NotebookConfig] = None,
        theme: Optional[ThemeConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        clock: Callable[[], float] = time.monotonic,
        submit_hint: str = "",
        on_selection_complete: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or NotebookConfig()
        self.theme = theme or ThemeConfig()
        self.panel_id = next(NotebookPanel._panel_ids)
        self.cells = CellSequence(self.panel_id)
        self.layout = LayoutEngine(self.config.layout_metrics())
        self.session: Optional[Session] = None
        self.status: Optional[StatusMessage] = None
        self.submit_hint = submit_hint
        # Called with the selected text when a drag selection ends
        self.on_selection_complete = on_selection_complete

        self._session_factory = session_factory or Session.start
        self._clock = clock
        self._pressed_cell: Optional[TextCell] = None
        self._pressed_cursor: Optional[int] = None

        self._commands: Dict[str, Callable[[], None]] = {
            "notebook:submit": self.submit,
            "notebook:newline": lambda: self.on_key("newline"),
            "notebook:focus-input": self.focus_input,
            "notebook:scroll-up": lambda: self.scroll_page(-1),
            "notebook:scroll-down": lambda: self.scroll_page(1),
        }

    # ==================== Session ====================

    def get_name(self) -> str:
        return PANEL_NAME

    @property
    def is_alive(self) -> bool:
        return self.session is not None and self.session.is_alive

    def start(self) -> bool:
        """Spawn the configured command.

        Must be called with the event loop running. A spawn failure leaves
        the panel inert with an error status instead of raising.

        Returns:
            True if the session started.
        """
        try:
            self.session = self._session_factory(
                self.config.command,
                sink=self.append_output,
                cwd=self.config.cwd,
                backoff=self.config.backoff_interval,
                on_exit=self._on_session_exit,
            )
        except SpawnError as e:
            logger.error(f"Notebook session not started: {e}")
            self.set_status(str(e), error=True)
            return False

        self.set_status(f"Started {self.config.command}")
        return True

    def append_output(self, text: str) -> None:
        """Sink for merged stream text: append to the trailing output cell."""
        self.cells.append_output(text)

    def _on_session_exit(self, returncode: Optional[int]) -> None:
        message = "Process exited"
        if returncode is not None:
            message += f" with code {returncode}"
        self.set_status(message, error=True)

    def submit(self) -> None:
        """Send the trailing input cell to the process and open a new cell pair.

        Raises:
            SessionClosed: If there is no live session. The cell sequence is
                left unchanged and the error is shown in the status line.
        """
        if not self.is_alive:
            returncode = self.session.returncode if self.session else None
            error = SessionClosed("No running session", returncode)
            self.set_status(str(error), error=True)
            raise error

        submitted = self.cells.input_cell
        payload = collapse_submission(submitted.lines)
        try:
            self.session.write_line(payload)
        except SessionClosed as e:
            self.set_status(str(e), error=True)
            raise

        self.cells.rotate()
        self.session.reset_pending()
        self.cells.output_cell.scroll_to_bottom = False
        self.scroll_to_cell(self.cells.output_cell)
        logger.debug(f"Submitted {payload!r}")

    def run_command(self, name: str) -> bool:
        """Run a named panel command.

        Returns:
            False if the command is unknown or failed; failures are already
            reported in the status line.
        """
        command = self._commands.get(name)
        if command is None:
            logger.warning(f"Unknown notebook command '{name}'")
            return False
        try:
            command()
        except NotebookError as e:
            logger.info(f"Command {name} failed: {e}")
            return False
        return True

    def terminate(self) -> None:
        if self.session:
            self.session.terminate()

    async def close(self) -> None:
        """Stop the session and wait for its reader tasks to finish."""
        if self.session:
            await self.session.close()

    # ==================== Status ====================

    def set_status(self, text: str, error: bool = False, timeout: Optional[float] = None) -> None:
        """Show a message in the status line.

        Errors stay until replaced; other messages expire after ``timeout``
        (default: config.status_timeout).
        """
        expires_at = None
        if not error:
            expires_at = self._clock() + (self.config.status_timeout if timeout is None else timeout)
        self.status = StatusMessage(text, error=error, expires_at=expires_at)

    # ==================== Update / scrolling ====================

    def update(self) -> None:
        """Per-frame housekeeping: reveal new output, expire status messages."""
        if self.session and self.session.consume_pending_output():
            self.scroll_to_cell(self.cells.output_cell)

        for cell in self.cells:
            if cell.scroll_to_bottom:
                cell.scroll_to_bottom = False
                self.scroll_to_cell(cell)

        if self.status and self.status.expires_at is not None and self._clock() >= self.status.expires_at:
            self.status = None

    def scroll_to_cell(self, cell: TextCell) -> None:
        self.layout.scroll_to_reveal(self.cells.index_of(cell), self.cells.line_counts())

    def scroll_page(self, direction: int) -> None:
        page = max(1, self.layout.viewport_height - 1)
        self.layout.scroll_by(direction * page, self.cells.line_counts())

    def on_mouse_scroll(self, dy: int) -> None:
        self.layout.scroll_by(dy * WHEEL_LINES, self.cells.line_counts())

    # ==================== Pointer events ====================

    def get_overlapping_cell(self, x: int, y: int) -> Optional[Tuple[TextCell, CellRect]]:
        """Cell under the panel point (x, y) together with its on-screen rectangle."""
        if y >= self.layout.viewport_height:
            return None
        rects = self.layout.layout(self.cells.line_counts())
        for cell, rect in zip(self.cells, rects):
            if rect.contains(x, y):
                return cell, rect
        return None

    def _cell_rect(self, cell: TextCell) -> CellRect:
        rects = self.layout.layout(self.cells.line_counts())
        return rects[self.cells.index_of(cell)]

    def _place_cursor(self, cell: TextCell, rect: CellRect, x: int, y: int) -> None:
        row, col = rect.to_inner(x, y, self.layout.metrics.line_height)
        cell.display.set_cursor(row, col)

    def on_mouse_pressed(self, x: int, y: int, clicks: int = 1) -> bool:
        """Focus the cell under the pointer and place its cursor.

        A single press starts a character selection that later moves extend.
        A double press selects the word under the pointer and reports it
        through ``on_selection_complete``.
        """
        hit = self.get_overlapping_cell(x, y)
        if hit is None:
            return False
        cell, rect = hit
        self.cells.focus(cell)

        if self._pressed_cell is not None and self._pressed_cell is not cell:
            self._pressed_cell.display.exit_selection()
        cell.display.exit_selection()
        self._place_cursor(cell, rect, x, y)

        if clicks >= 2:
            self._pressed_cell = None
            self._pressed_cursor = None
            word = cell.display.select_word_at_cursor()
            if word and self.on_selection_complete:
                self.on_selection_complete(word)
            return True

        cell.display.start_selection()
        self._pressed_cell = cell
        self._pressed_cursor = cell.display.buffer.cursor_position
        return True

    def on_mouse_moved(self, x: int, y: int) -> bool:
        if self._pressed_cell is not None:
            # Dragging extends the selection inside the pressed cell only
            self._place_cursor(self._pressed_cell, self._cell_rect(self._pressed_cell), x, y)
            return True
        return self.get_overlapping_cell(x, y) is not None

    def on_mouse_released(self, x: int, y: int) -> bool:
        pressed = self._pressed_cell
        self._pressed_cell = None
        if pressed is not None:
            self._place_cursor(pressed, self._cell_rect(pressed), x, y)
            if pressed.display.buffer.cursor_position == self._pressed_cursor:
                # Click without drag
                pressed.display.exit_selection()
            elif self.on_selection_complete:
                self.on_selection_complete(pressed.display.selected_text())
            self._pressed_cursor = None
            return True

        hit = self.get_overlapping_cell(x, y)
        if hit is None:
            return False
        self.cells.focus(hit[0])
        return True

    # ==================== Keyboard ====================

    def _editable_target(self) -> TextCell:
        active = self.cells.active_cell
        if active.accepts_input:
            return active
        self.cells.focus_input()
        return self.cells.input_cell

    def on_text_input(self, text: str) -> None:
        """Insert typed text into the active input cell.

        Output and submitted input cells never accept text; typing while one
        of them is active goes to the trailing input cell instead.
        """
        target = self._editable_target()
        target.display.exit_selection()
        target.display.insert_text(text)
        self.scroll_to_cell(target)

    def on_key(self, action: str) -> bool:
        """Apply an editing or cursor action (see text_cell.EDIT_ACTIONS)."""
        if action in EDIT_ACTIONS:
            target = self._editable_target()
            target.display.exit_selection()
            handled = target.display.edit(action)
            self.scroll_to_cell(target)
            return handled
        if action in CURSOR_ACTIONS:
            return self.cells.active_cell.display.edit(action)
        return False

    def focus_input(self) -> None:
        self.cells.active_cell.display.exit_selection()
        self.cells.focus_input()
        self.scroll_to_cell(self.cells.input_cell)

    # ==================== Drawing ====================

    def _cell_lines(self, cell: TextCell) -> List[List[Fragment]]:
        if cell.is_input:
            return highlight_lines(cell.text, self.config.syntax, self.theme.syntax_theme)
        return [[("", line)] if line else [] for line in cell.lines]

    def _cell_style(self, cell: TextCell) -> str:
        if cell.is_output:
            return "class:notebook.output"
        if cell.frozen:
            return "class:notebook.input.frozen"
        return "class:notebook.input"

    def _draw_cell(self, canvas: Canvas, cell: TextCell, rect: CellRect, viewport_height: int) -> None:
        active = cell is self.cells.active_cell
        border_style = "class:notebook.border.active" if active else "class:notebook.border"
        base_style = self._cell_style(cell)

        canvas.draw_rect(rect.x, rect.y, rect.width, rect.height, "class:notebook")
        border = self.layout.metrics.border
        if border:
            canvas.draw_border(rect.x, rect.y, rect.width, rect.height, border_style)

        inner_x, inner_y, inner_w, _ = rect.inner()
        line_height = self.layout.metrics.line_height
        for row, fragments in enumerate(self._cell_lines(cell)):
            y = inner_y + row * line_height
            if 0 <= y < viewport_height:
                canvas.draw_fragments(inner_x, y, fragments, max_width=inner_w, base_style=base_style)

        selection = cell.display.selection_range()
        if selection:
            self._draw_selection(canvas, cell, rect, selection, viewport_height)

    def _draw_selection(
        self,
        canvas: Canvas,
        cell: TextCell,
        rect: CellRect,
        selection: Tuple[int, int],
        viewport_height: int,
    ) -> None:
        document = cell.display.buffer.document
        inner_x, inner_y, inner_w, _ = rect.inner()
        start_row, start_col = document.translate_index_to_position(selection[0])
        end_row, end_col = document.translate_index_to_position(selection[1])
        for row in range(start_row, end_row + 1):
            y = inner_y + row * self.layout.metrics.line_height
            if not 0 <= y < viewport_height:
                continue
            first = start_col if row == start_row else 0
            last = end_col if row == end_row else len(document.lines[row])
            for col in range(first, min(last, inner_w)):
                x = inner_x + col
                if 0 <= x < canvas.width:
                    style = f"{canvas.style_at(x, y)} class:notebook.selection".strip()
                    canvas.put(x, y, canvas.char_at(x, y), style)

    def _draw_status(self, canvas: Canvas, width: int, y: int) -> None:
        canvas.draw_rect(0, y, width, STATUS_HEIGHT, "class:notebook.status")
        col = canvas.draw_text(0, y, f" {self.get_name()} ", "class:notebook.title")
        if self.status:
            style = "class:notebook.status.error" if self.status.error else "class:notebook.status"
            canvas.draw_text(col, y, self.status.text, style, max_width=max(0, width - col))
        elif self.submit_hint:
            canvas.draw_text(col, y, self.submit_hint, "class:notebook.status", max_width=max(0, width - col))

    def draw(self, width: int, height: int) -> PanelFrame:
        """Lay out and paint the panel into a fresh canvas."""
        viewport_height = max(0, height - STATUS_HEIGHT)
        self.layout.set_viewport(width, viewport_height)
        counts = self.cells.line_counts()
        self.layout.clamp_scroll(counts)

        canvas = Canvas(width, height, "class:notebook")
        cursor = None
        for cell, rect in zip(self.cells, self.layout.layout(counts)):
            if rect.bottom <= 0 or rect.y >= viewport_height:
                continue
            self._draw_cell(canvas, cell, rect, viewport_height)
            if cell is self.cells.active_cell and cell.accepts_input:
                row, col = cell.display.cursor_row_col()
                inner_x, inner_y, _, _ = rect.inner()
                cursor_y = inner_y + row * self.layout.metrics.line_height
                if 0 <= cursor_y < viewport_height:
                    cursor = (min(inner_x + col, max(0, width - 1)), cursor_y)

        if height > 0:
            self._draw_status(canvas, width, height - STATUS_HEIGHT)

        return PanelFrame(canvas.to_formatted_text(), cursor, width, height)
