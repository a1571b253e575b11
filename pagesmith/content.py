from __future__ import annotations

import datetime as dt
import re
import unicodedata
from pathlib import Path
from typing import Iterable

import markdown
import yaml

from .exceptions import SourceReadError

SLUG_RE = re.compile(r"[^a-z0-9]+")
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "codehilite"]
MARKDOWN_EXTENSION_CONFIGS = {"codehilite": {"guess_lang": False}}


def find_sources(directory: str | Path, exts: Iterable[str], recursive: bool = False) -> list[str]:
    root = Path(directory) if directory else Path(".")
    if not root.is_dir():
        return []
    found: list[str] = []
    for ext in exts:
        pattern = f"**/*{ext}" if recursive else f"*{ext}"
        matches = sorted((path for path in root.glob(pattern) if path.is_file()), key=lambda p: p.as_posix())
        found.extend(str(path) for path in matches)
    return found


def collect_sources(
    paths: Iterable[str | Path],
    content_dir: str,
    exts: Iterable[str],
    recursive: bool = False,
) -> list[str]:
    """Expand explicit paths and the content directory into unique source files.

    Explicit files come first in the order given; the first occurrence of a
    duplicate keeps its position.
    """
    exts = tuple(exts)
    candidates: list[str] = []
    for item in paths:
        path = Path(item)
        if path.is_file():
            candidates.append(str(path))
        elif path.is_dir():
            candidates.extend(find_sources(path, exts, recursive))
    if content_dir:
        candidates.extend(find_sources(content_dir, exts, recursive))
    seen = set()
    unique = []
    for candidate in candidates:
        key = str(Path(candidate))
        if key in seen:
            continue
        seen.add(key)
        unique.append(key)
    return unique


def split_front_matter(text: str) -> tuple[str, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return "", clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            end = i
            break
    if end is None:
        return "", clean_text
    return "\n".join(lines[1:end]), "\n".join(lines[end + 1 :])


def parse_front_matter(text: str, source: str = "<string>") -> tuple[dict, str]:
    header, body = split_front_matter(text)
    if not header.strip():
        return {}, body
    try:
        meta = yaml.safe_load(header)
    except yaml.YAMLError as exc:
        raise SourceReadError(source, f"invalid front matter: {exc}") from exc
    if meta is None:
        return {}, body
    if not isinstance(meta, dict):
        raise SourceReadError(source, "front matter must be a mapping")
    return {str(key): value for key, value in meta.items()}, body


def read_source(path: str | Path) -> tuple[dict, str]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceReadError(path, f"cannot read source: {exc}") from exc
    return parse_front_matter(text, str(path))


def escape_non_ascii(text: str) -> str:
    """Replace every character above code point 127 with ``&#NNN;``."""
    return text.encode("ascii", "xmlcharrefreplace").decode("ascii")


def convert_markdown(text: str) -> str:
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_EXTENSION_CONFIGS)
    return escape_non_ascii(md.convert(text))


def normalize_text(text: str) -> str:
    return unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")


def slugify(text: str) -> str:
    text = normalize_text(str(text)).lower()
    text = SLUG_RE.sub("-", text).strip("-")
    return text or "page"


def parse_date(value: object, source: str = "<string>") -> dt.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return dt.datetime.fromtimestamp(value)
        except (ValueError, OverflowError, OSError) as exc:
            raise SourceReadError(source, f"unrecognized date: {value!r}") from exc
    if isinstance(value, str):
        text = value.strip()
        try:
            return dt.datetime.fromisoformat(text)
        except ValueError:
            pass
        try:
            return dt.datetime.combine(dt.date.fromisoformat(text), dt.time())
        except ValueError:
            pass
    raise SourceReadError(source, f"unrecognized date: {value!r}")
