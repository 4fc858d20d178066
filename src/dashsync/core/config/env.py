"""Layered .env loading for the dashsync CLI.

Server credentials can be kept in ~/.config/dashsync/.env or in a project
.env / .env.local instead of config files. Shell exports always win, and
project files win over the user file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values


def _read_env(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    return {
        str(k): str(v) for k, v in dotenv_values(path).items() if k is not None and v is not None
    }


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> set[str]:
    """Copy DASHSYNC_* style settings from .env files into os.environ.

    Returns the names of the variables this call set, so callers and tests
    can tell file-provided values from exported ones.
    """
    if project_dir is None:
        project_dir = Path.cwd()

    if user_env_paths is None:
        xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        user_env_paths = [xdg_home / "dashsync" / ".env"]

    if project_env_paths is None:
        project_env_paths = [project_dir / ".env", project_dir / ".env.local"]

    # Later files win; anything already exported is left alone
    file_values: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        file_values.update(_read_env(Path(path)))

    loaded = {k: v for k, v in file_values.items() if k not in os.environ}
    os.environ.update(loaded)
    return set(loaded)
