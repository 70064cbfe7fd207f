"""
.env support for PORTALKEYS_* settings.

Precedence, highest first: the process environment, the project's
``.env.local`` and ``.env``, then ``$XDG_CONFIG_HOME/portalkeys/.env``.
Only variables the shell did not export are ever written.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values


def _user_env_files() -> list[Path]:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return [Path(config_home) / "portalkeys" / ".env"]


def _env_file_values(paths: Iterable[Path]) -> dict[str, str]:
    """Merge .env files in order; later files win. Valueless entries are skipped."""
    merged: dict[str, str] = {}
    for path in map(Path, paths):
        if path.is_file():
            merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
    return merged


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> None:
    """
    Export settings from user and project .env files into os.environ.

    Args:
        project_dir: Directory holding the project .env files (default: cwd)
        user_env_paths: Override the user-level files
        project_env_paths: Override the project-level files
    """
    if user_env_paths is None:
        user_env_paths = _user_env_files()
    if project_env_paths is None:
        base = project_dir or Path.cwd()
        project_env_paths = [base / ".env", base / ".env.local"]

    layered = _env_file_values(user_env_paths)
    layered.update(_env_file_values(project_env_paths))

    for name, value in layered.items():
        os.environ.setdefault(name, value)
