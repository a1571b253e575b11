from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigLoadError
from .utils import parse_bool, parse_int

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

DEFAULT_READ_EXTS = (".md", ".txt", ".mkd", ".markdown")

CONFIG_ALIASES = {
    "outputDir": "output_dir",
    "contentDir": "content_dir",
    "templateDir": "template_dir",
    "mediaDir": "media_dir",
    "cachedPages": "cached_pages",
    "readExts": "read_exts",
    "writeExt": "write_ext",
    "dateFormatString": "date_format",
}


def load_config(path: Path) -> dict:
    """Read a TOML, YAML or JSON site file into a mapping."""
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"Cannot read config file {path}: {exc}") from exc
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigLoadError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigLoadError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigLoadError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Config must be a mapping: {path}")
    return data


def parse_exts(value: object) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_READ_EXTS
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    else:
        items = [str(item).strip() for item in value]
    exts = []
    for item in items:
        if not item:
            continue
        ext = item if item.startswith(".") else f".{item}"
        if ext not in exts:
            exts.append(ext)
    return tuple(exts)


@dataclass(frozen=True)
class SiteConfig:
    url: str = ""
    output_dir: str = "."
    content_dir: str = ""
    template_dir: str = "."
    media_dir: str = ""
    cached_pages: str = ""
    read_exts: tuple[str, ...] = DEFAULT_READ_EXTS
    write_ext: str = ".html"
    date_format: str = "fullDate"
    recursive: bool = False
    force: bool = False
    workers: int = 1
    prune: bool = True
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SiteConfig:
        known = {item.name for item in fields(cls)} - {"extra"}
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            name = CONFIG_ALIASES.get(key, key)
            if name in known:
                values[name] = value
            else:
                extra[key] = value

        def text(key: str, default: str) -> str:
            value = values.get(key)
            return default if value is None else str(value)

        defaults = cls()
        write_ext = text("write_ext", defaults.write_ext)
        if write_ext and not write_ext.startswith("."):
            write_ext = f".{write_ext}"
        return cls(
            url=text("url", defaults.url),
            output_dir=text("output_dir", defaults.output_dir),
            content_dir=text("content_dir", defaults.content_dir),
            template_dir=text("template_dir", defaults.template_dir),
            media_dir=text("media_dir", defaults.media_dir),
            cached_pages=text("cached_pages", defaults.cached_pages),
            read_exts=parse_exts(values.get("read_exts")),
            write_ext=write_ext,
            date_format=text("date_format", defaults.date_format),
            recursive=parse_bool(values.get("recursive", defaults.recursive)),
            force=parse_bool(values.get("force", defaults.force)),
            workers=max(1, parse_int(values.get("workers"), defaults.workers)),
            prune=parse_bool(values.get("prune", defaults.prune)),
            extra=extra,
        )

    def with_overrides(self, **changes: Any) -> SiteConfig:
        changes = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **changes)
