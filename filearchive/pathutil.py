from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from .constants import TEMP_PREFIX

PathArg = Union[str, "os.PathLike[str]"]


def norm_entry_name(p: PathArg) -> str:
    """Normalize archive entry names to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = os.fspath(p).replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Entry name may not contain '..'")
    return "/".join(parts)


def resolve_path(root: Optional[PathArg], p: PathArg) -> Path:
    """Resolve ``p`` against ``root`` (or the cwd when no root is set)."""
    if root:
        return (Path(root) / p).resolve()
    return Path(p).resolve()


def temp_sibling(resolved: Path, counter: int) -> Path:
    return resolved.parent / f"{TEMP_PREFIX}{counter}"


def is_within(child: PathArg, parent: PathArg) -> bool:
    """True when ``child`` equals ``parent`` or lies somewhere below it."""
    child_path = Path(child).resolve()
    parent_path = Path(parent).resolve()
    return child_path == parent_path or parent_path in child_path.parents


def check_path_arg(name: str, value) -> None:
    if not isinstance(value, (str, os.PathLike)):
        raise TypeError(f"'{name}' is not a 'str'.")
    if not os.fspath(value):
        raise ValueError(f"'{name}' is empty.")
