from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def parse_optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    result = parse_int(value, 0)
    return result if result > 0 else None


def relative_url(path: str | Path, start: str | Path) -> str:
    """Return ``path`` relative to ``start`` as a posix string."""
    return Path(os.path.relpath(path, start or ".")).as_posix()


def site_root_from(target: str) -> str:
    parent = os.path.dirname(target) or "."
    rel = relative_url(".", parent)
    return rel or "."


def is_inside(path: Path, root: Path) -> bool:
    return path.resolve().is_relative_to(root.resolve())


def map_in_order(func: Callable[[T], R], items: Iterable[T], workers: int = 1) -> list[R]:
    items = list(items)
    workers = max(1, min(int(workers or 1), 32))
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as executor:
        return list(executor.map(func, items))
