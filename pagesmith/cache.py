from __future__ import annotations

import datetime as dt
import json
import sys
from pathlib import Path
from typing import Iterable, Optional

from .exceptions import CacheWriteError
from .models import Page


def file_mtime(path: str | Path) -> dt.datetime:
    return dt.datetime.fromtimestamp(Path(path).stat().st_mtime)


def optional_mtime(path: str | Path) -> Optional[dt.datetime]:
    try:
        return file_mtime(path)
    except OSError:
        return None


def load_pages(path: Path) -> list[Page]:
    if not path.is_file():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        print(f"Ignoring unreadable page cache {path}: {exc}", file=sys.stderr)
        return []
    if not isinstance(data, list):
        print(f"Ignoring page cache {path}: expected a list of pages", file=sys.stderr)
        return []
    pages = []
    for record in data:
        if isinstance(record, dict) and record.get("filename"):
            pages.append(Page.from_record(record))
    return pages


def save_pages(path: Path, pages: Iterable[Page]) -> int:
    records = [page.to_record() for page in pages]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(records, indent=2, ensure_ascii=True), encoding="utf-8")
    except OSError as exc:
        raise CacheWriteError(f"Cannot write page cache {path}: {exc}") from exc
    return len(records)
