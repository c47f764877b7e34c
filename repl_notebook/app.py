"""Terminal host for the notebook panel.

Runs a full-screen prompt_toolkit Application whose only window is a
NotebookPanelControl. The control asks the panel to draw itself on every
render and forwards mouse events; key bindings translate keys into panel
commands and editing actions. A periodic task calls panel.update() and
invalidates the app so output from the child process shows up while the
user is idle.

Usage:
    repl-notebook                       # python3 -i -u -q
    repl-notebook --command "lua -i" --syntax lua
    echo "print(1)" | repl-notebook --headless
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import Optional

from dotenv import load_dotenv
from prompt_toolkit.application import Application
from prompt_toolkit.data_structures import Point
from prompt_toolkit.formatted_text.utils import split_lines
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout, Window
from prompt_toolkit.layout.controls import UIContent, UIControl
from prompt_toolkit.mouse_events import MouseEvent, MouseEventType

from .config import NotebookConfig, load_config
from .keybindings import KeybindingConfig, format_key_for_display, load_keybindings
from .panel import NotebookPanel
from .theme import ThemeConfig, load_theme

logger = logging.getLogger(__name__)

# Editing keys handled by the panel itself (prompt_toolkit key -> panel action)
EDIT_KEYS = {
    "backspace": "backspace",
    "delete": "delete",
    "left": "left",
    "right": "right",
    "up": "up",
    "down": "down",
    "home": "home",
    "end": "end",
}


class NotebookPanelControl(UIControl):
    """UIControl that renders a NotebookPanel and routes mouse events to it."""

    # Double-click threshold in seconds
    DOUBLE_CLICK_THRESHOLD = 0.4

    def __init__(self, panel: NotebookPanel, clock=time.monotonic):
        self.panel = panel
        self._clock = clock
        self._last_click_time = 0.0
        self._last_click_pos = None

    def _click_count(self, x: int, y: int) -> int:
        """Return 2 for a second press at the same spot within the threshold."""
        now = self._clock()
        is_double_click = (
            self._last_click_pos == (x, y) and
            (now - self._last_click_time) < self.DOUBLE_CLICK_THRESHOLD
        )
        if is_double_click:
            # Reset so a third press starts over
            self._last_click_time = 0.0
            self._last_click_pos = None
            return 2
        self._last_click_time = now
        self._last_click_pos = (x, y)
        return 1

    def is_focusable(self) -> bool:
        return True

    def create_content(self, width: int, height: int) -> UIContent:
        frame = self.panel.draw(width, height)
        lines = list(split_lines(frame.fragments))

        cursor = frame.cursor
        return UIContent(
            get_line=lambda i: lines[i] if i < len(lines) else [],
            line_count=len(lines),
            cursor_position=Point(x=cursor[0], y=cursor[1]) if cursor else Point(x=0, y=0),
            show_cursor=cursor is not None,
        )

    def mouse_handler(self, mouse_event: MouseEvent):
        x, y = mouse_event.position.x, mouse_event.position.y
        event_type = mouse_event.event_type

        if event_type == MouseEventType.SCROLL_UP:
            self.panel.on_mouse_scroll(-1)
        elif event_type == MouseEventType.SCROLL_DOWN:
            self.panel.on_mouse_scroll(1)
        elif event_type == MouseEventType.MOUSE_DOWN:
            if not self.panel.on_mouse_pressed(x, y, clicks=self._click_count(x, y)):
                return NotImplemented
        elif event_type == MouseEventType.MOUSE_MOVE:
            if not self.panel.on_mouse_moved(x, y):
                return NotImplemented
        elif event_type == MouseEventType.MOUSE_UP:
            if not self.panel.on_mouse_released(x, y):
                return NotImplemented
        else:
            return NotImplemented
        return None


class NotebookApp:
    """Full-screen application hosting one NotebookPanel."""

    def __init__(
        self,
        config: NotebookConfig,
        keys: Optional[KeybindingConfig] = None,
        theme: Optional[ThemeConfig] = None,
    ):
        self.config = config
        self.keys = keys or KeybindingConfig()
        self.theme = theme or ThemeConfig()

        hint = (
            f"{format_key_for_display(self.keys.submit)} to run, "
            f"{format_key_for_display(self.keys.exit)} to quit"
        )
        self.panel = NotebookPanel(
            config,
            self.theme,
            submit_hint=hint,
            on_selection_complete=self._copy_selection,
        )
        self.control = NotebookPanelControl(self.panel)
        self._app: Optional[Application] = None
        self._build_app()

    def _copy_selection(self, text: str) -> None:
        if text and self._app:
            self._app.clipboard.set_text(text)

    def _invalidate(self) -> None:
        if self._app:
            self._app.invalidate()

    def _build_app(self) -> None:
        kb = KeyBindings()
        panel = self.panel

        for command, key_args_list in self.keys.bindings().items():
            for key_args in key_args_list:
                self._bind_command(kb, key_args, command)

        for key, action in EDIT_KEYS.items():
            self._bind_action(kb, key, action)

        @kb.add("<any>")
        def _(event):
            text = event.data
            if text and text.isprintable():
                panel.on_text_input(text)
                self._invalidate()

        @kb.add("c-c")
        def _(event):
            event.app.exit()

        self._app = Application(
            layout=Layout(Window(content=self.control, wrap_lines=False)),
            key_bindings=kb,
            full_screen=True,
            mouse_support=True,
            style=self.theme.get_prompt_toolkit_style(),
        )

    def _bind_command(self, kb: KeyBindings, key_args: tuple, command: str) -> None:
        @kb.add(*key_args)
        def _(event):
            if command == "notebook:exit":
                event.app.exit()
                return
            self.panel.run_command(command)
            self._invalidate()

    def _bind_action(self, kb: KeyBindings, key: str, action: str) -> None:
        @kb.add(key)
        def _(event):
            self.panel.on_key(action)
            self._invalidate()

    async def _tick(self) -> None:
        """Per-frame update loop: pull new output into view and redraw."""
        while True:
            self.panel.update()
            self._invalidate()
            await asyncio.sleep(self.config.frame_interval)

    async def run_async(self) -> None:
        if not self.panel.start():
            logger.warning("Running without a session; see status line")
        ticker = asyncio.get_running_loop().create_task(self._tick())
        try:
            await self._app.run_async()
        finally:
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)
            await self.panel.close()


def configure_logging(log_file: Optional[str], headless: bool = False) -> None:
    """Route the package's log records.

    A trace file (``--log-file`` or NOTEBOOK_TRACE_LOG) receives everything
    at DEBUG level. Without one, the full-screen UI stays silent and headless
    runs report warnings on stderr.
    """
    root = logging.getLogger("repl_notebook")
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.propagate = False

    log_file = log_file or os.environ.get("NOTEBOOK_TRACE_LOG")
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        ))
        root.setLevel(logging.DEBUG)
    elif headless:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.setLevel(logging.WARNING)
    else:
        handler = logging.NullHandler()
    root.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repl-notebook",
        description="Notebook-style terminal front end for interactive interpreters",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration:
  Settings are read from ~/.repl-notebook/config.json, then
  .repl-notebook/config.json, then NOTEBOOK_* environment variables.
  Command-line flags override all of them.
        """,
    )
    parser.add_argument(
        "--command", "-c",
        type=str,
        help="Interpreter command line (default: python3 -i -u -q)"
    )
    parser.add_argument(
        "--cwd",
        type=str,
        help="Working directory of the interpreter"
    )
    parser.add_argument(
        "--syntax",
        type=str,
        help="Lexer used to highlight input cells, e.g. 'python' or 'lua' ('none' to disable)"
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Write a debug trace to this file (overrides NOTEBOOK_TRACE_LOG)"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Read submissions from stdin and print the transcript instead of opening the UI"
    )
    parser.add_argument(
        "--settle",
        type=float,
        default=0.5,
        help="Headless mode: seconds to wait for output after each submission (default: 0.5)"
    )
    return parser


def config_from_args(args: argparse.Namespace, config: NotebookConfig) -> NotebookConfig:
    overrides = {}
    if args.command:
        overrides["command"] = args.command
    if args.cwd:
        overrides["cwd"] = args.cwd
    if args.syntax:
        overrides["syntax"] = "" if args.syntax.lower() == "none" else args.syntax
    return config.merged(overrides) if overrides else config


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv(args.env_file)
    configure_logging(args.log_file, headless=args.headless)

    config = config_from_args(args, load_config())
    theme = load_theme()

    if args.headless:
        from .headless import run_headless
        sys.exit(asyncio.run(run_headless(config, sys.stdin, settle=args.settle, theme=theme)))

    # Check TTY before proceeding
    if not sys.stdout.isatty():
        sys.exit(
            "Error: repl-notebook requires an interactive terminal.\n"
            "Use --headless for non-TTY environments."
        )

    app = NotebookApp(config, load_keybindings(), theme)
    asyncio.run(app.run_async())


if __name__ == "__main__":
    main()
