"""Drawing primitives for the notebook panel.

The panel paints into a Canvas, a character grid of (style, char) pairs,
which is then handed to prompt_toolkit as formatted text. Input cells are
syntax highlighted with Rich: the highlighted Text is rendered to ANSI and
converted back to prompt_toolkit fragments.
"""

from functools import lru_cache
from io import StringIO
from typing import List, Optional, Sequence, Tuple

from prompt_toolkit.formatted_text import ANSI, to_formatted_text
from rich.console import Console
from rich.syntax import Syntax

Fragment = Tuple[str, str]

# Box drawing characters for cell frames
BOX_TOP_LEFT = "┌"
BOX_TOP_RIGHT = "┐"
BOX_BOTTOM_LEFT = "└"
BOX_BOTTOM_RIGHT = "┘"
BOX_HORIZONTAL = "─"
BOX_VERTICAL = "│"

TAB_SIZE = 4


def consolidate_fragments(fragments: Sequence[Fragment]) -> List[Fragment]:
    """Merge consecutive fragments that share a style."""
    result: List[Fragment] = []
    current_style = None
    current_text: List[str] = []
    for fragment in fragments:
        style, text = fragment[0], fragment[1]
        if style == current_style:
            current_text.append(text)
        else:
            if current_text:
                result.append((current_style, "".join(current_text)))
            current_style = style
            current_text = [text]
    if current_text:
        result.append((current_style, "".join(current_text)))
    return result


def ansi_to_fragments(ansi_str: str) -> List[Fragment]:
    """Convert an ANSI string to consolidated prompt_toolkit fragments."""
    return consolidate_fragments(to_formatted_text(ANSI(ansi_str)))


def split_fragment_lines(fragments: Sequence[Fragment]) -> List[List[Fragment]]:
    """Split a fragment list on newlines into one fragment list per line."""
    lines: List[List[Fragment]] = [[]]
    for style, text in fragments:
        parts = text.split("\n")
        for i, part in enumerate(parts):
            if i > 0:
                lines.append([])
            if part:
                lines[-1].append((style, part))
    return lines


@lru_cache(maxsize=256)
def _highlight(text: str, syntax: str, theme: str) -> Tuple[Tuple[Fragment, ...], ...]:
    highlighted = Syntax(text, syntax, theme=theme, background_color="default").highlight(text)
    buffer = StringIO()
    console = Console(
        file=buffer,
        width=10_000,
        force_terminal=True,
        color_system="truecolor",
    )
    console.print(highlighted, end="", soft_wrap=True)
    lines = split_fragment_lines(ansi_to_fragments(buffer.getvalue()))
    return tuple(tuple(line) for line in lines)


def highlight_lines(text: str, syntax: Optional[str], theme: str = "ansi_dark") -> List[List[Fragment]]:
    """Syntax highlight text and return styled fragments per line.

    Args:
        text: Source text of an input cell.
        syntax: Pygments lexer name (e.g. "python", "lua"); None for plain text.
        theme: Pygments/Rich theme name.

    Returns:
        One fragment list per line of ``text`` (same line count).
    """
    plain = text.split("\n")
    if not syntax or not text:
        return [[("", line)] if line else [] for line in plain]

    lines = [list(line) for line in _highlight(text, syntax, theme)]
    # Lexers may add or drop a trailing newline; align with the source lines
    lines = lines[:len(plain)]
    while len(lines) < len(plain):
        lines.append([])
    return lines


class Canvas:
    """Fixed-size character grid the panel draws into."""

    def __init__(self, width: int, height: int, style: str = ""):
        self.width = max(0, width)
        self.height = max(0, height)
        self.default_style = style
        self._grid: List[List[Fragment]] = [
            [(style, " ") for _ in range(self.width)] for _ in range(self.height)
        ]

    def put(self, x: int, y: int, char: str, style: str = "") -> None:
        if 0 <= x < self.width and 0 <= y < self.height:
            self._grid[y][x] = (style, char)

    def char_at(self, x: int, y: int) -> str:
        return self._grid[y][x][1]

    def style_at(self, x: int, y: int) -> str:
        return self._grid[y][x][0]

    def row_text(self, y: int) -> str:
        return "".join(char for _, char in self._grid[y])

    def draw_rect(self, x: int, y: int, w: int, h: int, style: str = "", char: str = " ") -> None:
        """Fill a rectangle, clipped to the canvas."""
        for row in range(max(0, y), min(self.height, y + h)):
            for col in range(max(0, x), min(self.width, x + w)):
                self._grid[row][col] = (style, char)

    def draw_border(self, x: int, y: int, w: int, h: int, style: str = "") -> None:
        """Draw a one-character box frame around a rectangle."""
        if w < 2 or h < 2:
            return
        right, bottom = x + w - 1, y + h - 1
        for col in range(x + 1, right):
            self.put(col, y, BOX_HORIZONTAL, style)
            self.put(col, bottom, BOX_HORIZONTAL, style)
        for row in range(y + 1, bottom):
            self.put(x, row, BOX_VERTICAL, style)
            self.put(right, row, BOX_VERTICAL, style)
        self.put(x, y, BOX_TOP_LEFT, style)
        self.put(right, y, BOX_TOP_RIGHT, style)
        self.put(x, bottom, BOX_BOTTOM_LEFT, style)
        self.put(right, bottom, BOX_BOTTOM_RIGHT, style)

    def draw_text(self, x: int, y: int, text: str, style: str = "", max_width: Optional[int] = None) -> int:
        """Draw a single line of text, clipped to ``max_width`` columns.

        Returns:
            Number of columns drawn.
        """
        return self.draw_fragments(x, y, [(style, text)], max_width)

    def draw_fragments(
        self,
        x: int,
        y: int,
        fragments: Sequence[Fragment],
        max_width: Optional[int] = None,
        base_style: str = "",
    ) -> int:
        limit = self.width - x if max_width is None else max_width
        col = 0
        for style, text in fragments:
            for char in text.expandtabs(TAB_SIZE):
                if col >= limit:
                    return col
                if char in "\r\n":
                    continue
                full_style = f"{base_style} {style}".strip()
                self.put(x + col, y, char, full_style)
                col += 1
        return col

    def to_formatted_text(self) -> List[Fragment]:
        """Return the grid as prompt_toolkit fragments, rows separated by newlines."""
        fragments: List[Fragment] = []
        for index, row in enumerate(self._grid):
            if index > 0:
                fragments.append(("", "\n"))
            fragments.extend(row)
        return consolidate_fragments(fragments)
