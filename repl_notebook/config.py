"""Configuration for the notebook panel.

Settings are merged from, lowest to highest priority:
1. Built-in defaults
2. User-level file: ~/.repl-notebook/config.json
3. Project-level file: .repl-notebook/config.json
4. Environment variables: NOTEBOOK_<FIELD>=<value> (an .env file is
   loaded into the environment by the entry point)
5. Command-line flags (applied by the entry point)

Example .repl-notebook/config.json:
    {
        "command": "lua -i",
        "syntax": "lua",
        "backoff_interval": 0.05
    }
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .layout import LayoutMetrics

logger = logging.getLogger(__name__)

ENV_PREFIX = "NOTEBOOK_"

DEFAULT_COMMAND = "python3 -i -u -q"


@dataclass
class NotebookConfig:
    """Runtime settings of the notebook panel.

    Attributes:
        command: Command line of the child process.
        cwd: Working directory of the child process (None = current).
        backoff_interval: Seconds a reader waits when its stream has no data.
        frame_interval: Seconds between redraw ticks of the host loop.
        syntax: Pygments lexer name used to highlight input cells.
        margin_x: Horizontal gap between panel edge and cell frames.
        margin_y: Vertical gap between cells.
        padding_x: Horizontal space between frame edge and text.
        padding_y: Vertical space between frame edge and text.
        status_timeout: Seconds an informational status message stays visible.
    """
    command: str = DEFAULT_COMMAND
    cwd: Optional[str] = None
    backoff_interval: float = 0.1
    frame_interval: float = 0.05
    syntax: str = "python"
    margin_x: int = 1
    margin_y: int = 1
    padding_x: int = 2
    padding_y: int = 1
    status_timeout: float = 3.0

    def layout_metrics(self) -> LayoutMetrics:
        return LayoutMetrics(
            margin_x=self.margin_x,
            margin_y=self.margin_y,
            padding_x=self.padding_x,
            padding_y=self.padding_y,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged(self, data: Dict[str, Any]) -> "NotebookConfig":
        """Return a copy with the known keys of ``data`` applied.

        Unknown keys and values that cannot be converted are logged and
        ignored.
        """
        updates: Dict[str, Any] = {}
        defaults = {f.name: f.default for f in fields(self)}
        for key, value in data.items():
            if key not in defaults:
                logger.warning(f"Unknown config key '{key}' - ignoring")
                continue
            try:
                updates[key] = _coerce(value, defaults[key])
            except (TypeError, ValueError) as e:
                logger.warning(f"Invalid value for config key '{key}': {value!r} ({e})")
        return replace(self, **updates)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotebookConfig":
        return cls().merged(data)

    @staticmethod
    def read_file(path: Path) -> Dict[str, Any]:
        """Read a JSON config file, returning {} if missing or invalid."""
        if not path.exists():
            return {}
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in config file {path}: {e}")
            return {}
        except OSError as e:
            logger.warning(f"Error reading config file {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Config file {path} must contain a JSON object")
            return {}
        logger.info(f"Loaded config from {path}")
        return data

    @staticmethod
    def read_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Collect NOTEBOOK_<FIELD> variables (keybinding variables excluded)."""
        environ = os.environ if environ is None else environ
        names = {f.name for f in fields(NotebookConfig)}
        data: Dict[str, Any] = {}
        for env_key, value in environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue
            name = env_key[len(ENV_PREFIX):].lower()
            if name in names:
                data[name] = value
        return data


def _coerce(value: Any, default: Any) -> Any:
    """Convert a JSON or environment value to the type of the field default.

    Fields defaulting to None are optional strings.
    """
    if value is None:
        if default is None:
            return None
        raise ValueError("value may not be null")
    if isinstance(default, bool):
        return str(value).lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_config(
    project_path: str = ".repl-notebook/config.json",
    user_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> NotebookConfig:
    """Load configuration with the fallback chain described above.

    Args:
        project_path: Project-level config path.
        user_path: User-level config path (default: ~/.repl-notebook/config.json).
        environ: Environment mapping (default: os.environ).

    Returns:
        Merged NotebookConfig.
    """
    if user_path is None:
        user_path = str(Path.home() / ".repl-notebook" / "config.json")

    config = NotebookConfig()
    config = config.merged(NotebookConfig.read_file(Path(user_path)))
    config = config.merged(NotebookConfig.read_file(Path(project_path)))

    env_data = NotebookConfig.read_env(environ)
    if env_data:
        logger.info(f"Applied environment config overrides: {sorted(env_data)}")
        config = config.merged(env_data)
    return config
