"""Locating the executable a command name refers to."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping

from minishell.environment import Environment


def find_in_dirs(dirs: Iterable[str], name: str) -> str | None:
    """Return the first ``dir/name`` that exists, or None."""
    for directory in dirs:
        candidate = f"{directory}/{name}"
        if os.path.lexists(candidate):
            return candidate
    return None


def resolve_command(name: str | None, env: Environment | Mapping[str, str]) -> str | None:
    """Return the path to run for ``name``, or None if it cannot be found.

    Names starting with ``/`` or ``./`` are used as they are when executable;
    other names are looked up in the directories of PATH.
    """
    if not name:
        return None
    if name.startswith("/") or name.startswith("./"):
        return name if os.access(name, os.F_OK | os.X_OK) else None
    path = env.get("PATH")
    if path is None:
        return None
    dirs = [part for part in path.split(":") if part]
    return find_in_dirs(dirs, name)