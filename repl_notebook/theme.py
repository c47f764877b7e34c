"""Theme configuration for the notebook panel.

Colors can be customized via:
1. JSON config file: .repl-notebook/theme.json (project-level)
                     ~/.repl-notebook/theme.json (user-level fallback)
2. Environment variable: NOTEBOOK_THEME=dark|light (preset selection)

Themes use a two-tier color system: a small base palette, and semantic
styles for each panel element that reference palette colors. Both the
prompt_toolkit style (TUI) and Rich styles (headless transcript) are
derived from the same ThemeConfig.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from prompt_toolkit.styles import Style

logger = logging.getLogger(__name__)

HEX_COLOR_PATTERN = re.compile(r'^#[0-9A-Fa-f]{6}$')


def is_hex_color(value: str) -> bool:
    """Check if a string is a valid hex color."""
    return bool(HEX_COLOR_PATTERN.match(value))


@dataclass
class StyleSpec:
    """Foreground/background colors plus text modifiers for one element.

    Colors can be hex values (#RRGGBB) or palette references (e.g. "border").
    """
    fg: Optional[str] = None
    bg: Optional[str] = None
    bold: bool = False
    italic: bool = False
    reverse: bool = False

    def _resolve(self, value: str, palette: Dict[str, str]) -> str:
        return value if is_hex_color(value) else palette.get(value, value)

    def to_prompt_toolkit(self, palette: Dict[str, str]) -> str:
        """Convert to a prompt_toolkit style string like "bg:#333333 #ffffff bold"."""
        parts = []
        if self.bg:
            parts.append(f"bg:{self._resolve(self.bg, palette)}")
        if self.fg:
            parts.append(self._resolve(self.fg, palette))
        if self.bold:
            parts.append("bold")
        if self.italic:
            parts.append("italic")
        if self.reverse:
            parts.append("reverse")
        return " ".join(parts)

    def to_rich(self, palette: Dict[str, str]) -> str:
        """Convert to a Rich style string like "bold #ffffff on #333333"."""
        parts = []
        if self.bold:
            parts.append("bold")
        if self.italic:
            parts.append("italic")
        if self.reverse:
            parts.append("reverse")
        if self.fg:
            parts.append(self._resolve(self.fg, palette))
        if self.bg:
            parts.append(f"on {self._resolve(self.bg, palette)}")
        return " ".join(parts)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StyleSpec":
        return cls(
            fg=data.get("fg"),
            bg=data.get("bg"),
            bold=bool(data.get("bold", False)),
            italic=bool(data.get("italic", False)),
            reverse=bool(data.get("reverse", False)),
        )


DARK_PALETTE = {
    "background": "#1e1e1e",
    "text": "#d4d4d4",
    "muted": "#808080",
    "border": "#4e4e4e",
    "accent": "#569cd6",
    "error": "#f44747",
    "selection": "#264f78",
}

LIGHT_PALETTE = {
    "background": "#ffffff",
    "text": "#1e1e1e",
    "muted": "#6e6e6e",
    "border": "#b0b0b0",
    "accent": "#0066b8",
    "error": "#c72e0f",
    "selection": "#add6ff",
}

# prompt_toolkit class name -> semantic style
DEFAULT_SEMANTIC_STYLES: Dict[str, StyleSpec] = {
    "notebook": StyleSpec(fg="text", bg="background"),
    "notebook.title": StyleSpec(fg="accent", bold=True),
    "notebook.border": StyleSpec(fg="border"),
    "notebook.border.active": StyleSpec(fg="accent", bold=True),
    "notebook.output": StyleSpec(fg="text"),
    "notebook.input": StyleSpec(fg="text"),
    "notebook.input.frozen": StyleSpec(fg="muted"),
    "notebook.selection": StyleSpec(bg="selection"),
    "notebook.status": StyleSpec(fg="muted"),
    "notebook.status.error": StyleSpec(fg="error", bold=True),
}

PRESETS = {
    "dark": DARK_PALETTE,
    "light": LIGHT_PALETTE,
}


@dataclass
class ThemeConfig:
    """Palette plus semantic styles for the panel.

    Attributes:
        name: Theme name for display.
        colors: Base palette mapping color names to hex values.
        semantic: Panel element styles keyed by prompt_toolkit class name.
        syntax_theme: Pygments theme used to highlight input cells.
    """
    name: str = "dark"
    colors: Dict[str, str] = field(default_factory=lambda: DARK_PALETTE.copy())
    semantic: Dict[str, StyleSpec] = field(default_factory=lambda: dict(DEFAULT_SEMANTIC_STYLES))
    syntax_theme: str = "ansi_dark"

    def get_prompt_toolkit_style(self) -> Style:
        return Style.from_dict({
            class_name: spec.to_prompt_toolkit(self.colors)
            for class_name, spec in self.semantic.items()
        })

    def get_rich_style(self, class_name: str) -> str:
        spec = self.semantic.get(class_name)
        return spec.to_rich(self.colors) if spec else ""

    @classmethod
    def preset(cls, name: str) -> "ThemeConfig":
        palette = PRESETS.get(name, DARK_PALETTE)
        syntax_theme = "ansi_light" if name == "light" else "ansi_dark"
        return cls(name=name, colors=palette.copy(), syntax_theme=syntax_theme)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThemeConfig":
        base = cls.preset(data.get("base", "dark"))
        base.name = data.get("name", "custom")

        for key, value in data.get("colors", {}).items():
            if key in base.colors and is_hex_color(value):
                base.colors[key] = value
            else:
                logger.warning(f"Ignoring theme color '{key}': {value!r}")

        for key, value in data.get("semantic", {}).items():
            if key not in base.semantic:
                logger.warning(f"Unknown theme style '{key}' - ignoring")
            elif isinstance(value, dict):
                base.semantic[key] = StyleSpec.from_dict(value)
            elif isinstance(value, str):
                base.semantic[key] = StyleSpec(fg=value)

        if "syntax_theme" in data:
            base.syntax_theme = data["syntax_theme"]
        return base

    @classmethod
    def from_file(cls, path: Path) -> Optional["ThemeConfig"]:
        if not path.exists():
            return None
        try:
            with open(path, 'r') as f:
                data = json.load(f)
            config = cls.from_dict(data)
            logger.info(f"Loaded theme '{config.name}' from {path}")
            return config
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in theme file {path}: {e}")
        except OSError as e:
            logger.warning(f"Error reading theme file {path}: {e}")
        return None


def load_theme(
    project_path: str = ".repl-notebook/theme.json",
    user_path: Optional[str] = None,
) -> ThemeConfig:
    """Load the theme with fallback chain.

    Priority order:
    1. NOTEBOOK_THEME environment variable (preset name)
    2. Project-level theme file
    3. User-level theme file
    4. Built-in "dark" preset
    """
    if user_path is None:
        user_path = str(Path.home() / ".repl-notebook" / "theme.json")

    preset = os.environ.get("NOTEBOOK_THEME", "").strip().lower()
    if preset in PRESETS:
        logger.info(f"Using theme preset '{preset}' from NOTEBOOK_THEME")
        return ThemeConfig.preset(preset)

    for path in (project_path, user_path):
        config = ThemeConfig.from_file(Path(path))
        if config:
            return config

    return ThemeConfig.preset("dark")
