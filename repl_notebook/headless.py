"""Headless runner: drive a notebook panel from a line stream.

Each line read from the input becomes one submission. After every
submission the runner waits ``settle`` seconds for the interpreter to
answer, then prints the whole cell sequence as a Rich transcript:

    ╭─ In [1] ──────────────╮
    │ print(1 + 1)          │
    ╰───────────────────────╯
    2

Useful for scripting, CI logs and non-TTY environments.
"""

import asyncio
import logging
from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from .cells import CellSequence
from .config import NotebookConfig
from .errors import SessionClosed
from .panel import NotebookPanel, SessionFactory
from .theme import ThemeConfig

logger = logging.getLogger(__name__)


class TranscriptRenderer:
    """Prints the cells of a panel to a Rich console."""

    def __init__(self, console: Console, theme: ThemeConfig, syntax: Optional[str]):
        self.console = console
        self.theme = theme
        self.syntax = syntax

    def render(self, cells: CellSequence) -> None:
        number = 0
        for cell in cells:
            if cell.is_output:
                if cell.text:
                    self.console.print(Text(cell.text, style=self.theme.get_rich_style("notebook.output")))
                continue
            if not cell.frozen and not cell.text:
                continue

            number += 1
            if self.syntax:
                body = Syntax(cell.text, self.syntax, theme=self.theme.syntax_theme, background_color="default")
            else:
                body = Text(cell.text, style=self.theme.get_rich_style("notebook.input"))
            self.console.print(Panel(
                body,
                title=f"[bold]In [{number}][/bold]",
                title_align="left",
                border_style=self.theme.get_rich_style("notebook.border"),
                expand=True,
            ))

    def render_status(self, panel: NotebookPanel) -> None:
        if panel.status and panel.status.error:
            self.console.print(Text(panel.status.text, style=self.theme.get_rich_style("notebook.status.error")))


async def run_headless(
    config: NotebookConfig,
    lines: Iterable[str],
    settle: float = 0.5,
    theme: Optional[ThemeConfig] = None,
    console: Optional[Console] = None,
    session_factory: Optional[SessionFactory] = None,
) -> int:
    """Submit each line to a fresh session and print the transcript.

    Returns:
        Process exit status: 0 on success, 1 if the session could not be
        started or stopped accepting input before all lines were sent.
    """
    theme = theme or ThemeConfig()
    console = console or Console(highlight=False)
    renderer = TranscriptRenderer(console, theme, config.syntax or None)

    panel = NotebookPanel(config, theme, session_factory=session_factory)
    if not panel.start():
        renderer.render_status(panel)
        return 1

    status = 0
    loop = asyncio.get_running_loop()
    source = iter(lines)
    try:
        # Let the interpreter print its banner first
        await asyncio.sleep(settle)
        while True:
            # Blocking reads (an interactive stdin) must not stall the readers
            line = await loop.run_in_executor(None, next, source, None)
            if line is None:
                break
            panel.on_text_input(line.rstrip("\r\n"))
            try:
                panel.submit()
            except SessionClosed as e:
                logger.warning(f"Stopped submitting: {e}")
                status = 1
                break
            await asyncio.sleep(settle)
            panel.update()
    finally:
        await panel.close()

    renderer.render(panel.cells)
    renderer.render_status(panel)
    return status
