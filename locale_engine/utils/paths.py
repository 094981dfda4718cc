"""Locating the project root and the engine config file."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional

# Files that mark a directory as the project root
ROOT_MARKERS = ("pyproject.toml", ".git", "config.yaml")


def _ancestors(start: Path) -> Iterator[Path]:
    yield start
    yield from start.parents


def find_project_root(start: Optional[Path] = None) -> Path:
    """
    Nearest directory, walking up, that holds one of ROOT_MARKERS.

    LOCALE_ENGINE_ROOT, when it names an existing directory, wins. The walk
    starts from `start`, then the working directory, then this package;
    without any marker the working directory is returned.
    """
    override = os.getenv("LOCALE_ENGINE_ROOT")
    if override and Path(override).expanduser().is_dir():
        return Path(override).expanduser().resolve()

    origins = [Path.cwd(), Path(__file__).resolve().parent]
    if start is not None:
        origins.insert(0, Path(start).resolve())

    visited = set()
    for origin in origins:
        for directory in _ancestors(origin):
            if directory in visited:
                break
            visited.add(directory)
            if any((directory / marker).exists() for marker in ROOT_MARKERS):
                return directory
    return Path.cwd()


def resolve_config_path(config_path: str = "config.yaml") -> Path:
    """
    Resolve the engine config file.

    LOCALE_ENGINE_CONFIG wins over the argument. A relative path that does not
    exist under the working directory is looked up in the project root.
    """
    env_cfg = os.getenv("LOCALE_ENGINE_CONFIG")
    cfg_path = Path(env_cfg).expanduser() if env_cfg else Path(config_path)
    if not cfg_path.exists() and not cfg_path.is_absolute():
        candidate = find_project_root() / cfg_path.name
        if candidate.exists():
            return candidate
    return cfg_path
