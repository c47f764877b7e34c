"""Keybinding configuration for the notebook panel.

Users can customize keybindings via:
1. JSON config file: .repl-notebook/keybindings.json (project-level)
                     ~/.repl-notebook/keybindings.json (user-level fallback)
2. Environment variables: NOTEBOOK_KEY_<ACTION>=<key>

Key syntax follows prompt_toolkit conventions:
- Simple keys: "enter", "tab", "pageup"
- Control: "c-s", "c-d" (Ctrl+S, Ctrl+D)
- Multi-key sequences: ["escape", "enter"] for Escape then Enter (Alt+Enter)

Each action maps to a named panel command; "submit" is bound to the
"notebook:submit" command.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# Either a single key or a sequence
KeyBinding = Union[str, List[str]]

ENV_PREFIX = "NOTEBOOK_KEY_"


def normalize_key(key: KeyBinding) -> KeyBinding:
    """Normalize a keybinding: "escape enter" -> ["escape", "enter"]."""
    if isinstance(key, list):
        return key
    if " " in key and not key.startswith(" ") and not key.endswith(" "):
        parts = key.split()
        if len(parts) > 1:
            return parts
    return key


def key_to_args(key: KeyBinding) -> tuple:
    """Convert a KeyBinding to args suitable for kb.add()."""
    if isinstance(key, list):
        return tuple(key)
    return (key,)


def format_key_for_display(key: KeyBinding) -> str:
    """Format a keybinding for the status line.

    - "c-s" -> "Ctrl+S"
    - ["escape", "enter"] -> "Esc Enter"
    """
    if isinstance(key, list):
        return " ".join(format_key_for_display(k) for k in key)

    key_str = str(key).lower()
    if key_str.startswith("c-"):
        return f"Ctrl+{key_str[2:].upper()}"
    if key_str.startswith("s-"):
        return f"Shift+{key_str[2:].capitalize()}"
    if key_str.startswith("f") and key_str[1:].isdigit():
        return key_str.upper()

    special_keys = {
        "escape": "Esc",
        "enter": "Enter",
        "tab": "Tab",
        "pageup": "PgUp",
        "pagedown": "PgDn",
    }
    if key_str in special_keys:
        return special_keys[key_str]
    if len(key_str) == 1:
        return key_str.upper()
    return key_str.capitalize()


DEFAULT_KEYBINDINGS: Dict[str, KeyBinding] = {
    "submit": ["escape", "enter"],
    "submit_alt": "c-s",
    "newline": "enter",
    "exit": "c-d",
    "scroll_up": "pageup",
    "scroll_down": "pagedown",
    "focus_input": "escape",
}

# Action -> panel command name
ACTION_COMMANDS: Dict[str, str] = {
    "submit": "notebook:submit",
    "submit_alt": "notebook:submit",
    "newline": "notebook:newline",
    "exit": "notebook:exit",
    "scroll_up": "notebook:scroll-up",
    "scroll_down": "notebook:scroll-down",
    "focus_input": "notebook:focus-input",
}


def _default(action: str):
    value = DEFAULT_KEYBINDINGS[action]
    return lambda: value.copy() if isinstance(value, list) else value


@dataclass
class KeybindingConfig:
    """Keybindings for the notebook panel actions.

    Values are a single key string ("c-s") or a list for multi-key
    sequences (["escape", "enter"]).
    """
    submit: KeyBinding = field(default_factory=_default("submit"))
    submit_alt: KeyBinding = field(default_factory=_default("submit_alt"))
    newline: KeyBinding = field(default_factory=_default("newline"))
    exit: KeyBinding = field(default_factory=_default("exit"))
    scroll_up: KeyBinding = field(default_factory=_default("scroll_up"))
    scroll_down: KeyBinding = field(default_factory=_default("scroll_down"))
    focus_input: KeyBinding = field(default_factory=_default("focus_input"))

    _source: str = field(default="default")

    def get_key_args(self, action: str) -> tuple:
        """Key arguments for kb.add() for a given action."""
        if action not in DEFAULT_KEYBINDINGS:
            raise ValueError(f"Unknown keybinding action: {action}")
        return key_to_args(getattr(self, action))

    @classmethod
    def from_dict(cls, data: Dict[str, KeyBinding]) -> "KeybindingConfig":
        """Create config from a dictionary. Unknown keys are ignored."""
        kwargs = {}
        for key, value in data.items():
            if key.startswith("_"):
                continue
            if key in DEFAULT_KEYBINDINGS:
                kwargs[key] = normalize_key(value)
            else:
                logger.warning(f"Unknown keybinding action '{key}' - ignoring")
        return cls(**kwargs)

    @classmethod
    def from_file(
        cls,
        project_path: str = ".repl-notebook/keybindings.json",
        user_path: Optional[str] = None,
    ) -> Optional["KeybindingConfig"]:
        """Load keybindings from the first JSON file found.

        Returns:
            KeybindingConfig if a file was found and loaded, None otherwise.
        """
        if user_path is None:
            user_path = str(Path.home() / ".repl-notebook" / "keybindings.json")

        for path in [project_path, user_path]:
            config_path = Path(path)
            if not config_path.exists():
                continue
            try:
                with open(config_path, 'r') as f:
                    data = json.load(f)
                logger.info(f"Loaded keybindings from {path}")
                config = cls.from_dict(data)
                config._source = path
                return config
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON in keybindings file {path}: {e}")
            except OSError as e:
                logger.warning(f"Error reading keybindings file {path}: {e}")
        return None

    @staticmethod
    def read_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, KeyBinding]:
        """Collect NOTEBOOK_KEY_<ACTION> overrides."""
        environ = os.environ if environ is None else environ
        data: Dict[str, KeyBinding] = {}
        for env_key, value in environ.items():
            if env_key.startswith(ENV_PREFIX):
                data[env_key[len(ENV_PREFIX):].lower()] = normalize_key(value)
        return data

    @property
    def source(self) -> str:
        return self._source

    def to_dict(self) -> Dict[str, KeyBinding]:
        return {action: getattr(self, action) for action in DEFAULT_KEYBINDINGS}

    def bindings(self) -> Dict[str, List[tuple]]:
        """Map each command name to the key args bound to it."""
        result: Dict[str, List[tuple]] = {}
        for action, command in ACTION_COMMANDS.items():
            result.setdefault(command, []).append(self.get_key_args(action))
        return result


def load_keybindings(
    project_path: str = ".repl-notebook/keybindings.json",
    user_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> KeybindingConfig:
    """Load keybindings with fallback chain.

    Priority order:
    1. Environment variables (NOTEBOOK_KEY_*)
    2. Project-level file
    3. User-level file
    4. Default values
    """
    config = KeybindingConfig.from_file(project_path, user_path) or KeybindingConfig()

    env_data = KeybindingConfig.read_env(environ)
    if env_data:
        merged = config.to_dict()
        merged.update(env_data)
        source = config.source
        config = KeybindingConfig.from_dict(merged)
        config._source = source
        logger.info(f"Applied environment keybinding overrides: {sorted(env_data)}")
    return config
