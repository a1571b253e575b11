"""Data model for one build run.

A ``Page`` is created per source document. The ``Site`` owns the pages for the
duration of a run; index pages only reference other pages via ``subpages``.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, fields
from typing import Any

from .config import SiteConfig

DEFAULT_TEMPLATE = "default.jinja2"

PAGE_ALIASES = {
    "writeTime": "write_time",
    "relSiteUrl": "rel_site_url",
    "sortKey": "sort_key",
    "sortReverse": "sort_reverse",
    "maxSubpages": "max_subpages",
    "dateFormatString": "date_format",
}

TIMESTAMP_FIELDS = ("date", "modified", "write_time")


@dataclass
class Page:
    filename: str = ""
    template: str = DEFAULT_TEMPLATE
    content: str = ""
    excerpt: str = ""
    title: str = ""
    category: str = ""
    date: dt.datetime | None = None
    modified: dt.datetime | None = None
    write_time: dt.datetime | None = None
    slug: str | None = None
    url: str = ""
    target: str = ""
    rel_site_url: str = ""
    index: bool = False
    sort_key: str | None = None
    sort_reverse: bool = True
    max_subpages: int | None = None
    date_format: str | None = None
    listing: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    subpages: list[Page] = field(default_factory=list, repr=False, compare=False)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(item.name for item in fields(cls))

    def get(self, name: str, default: Any = None) -> Any:
        key = PAGE_ALIASES.get(name, name)
        if key in self.field_names():
            return getattr(self, key)
        return self.meta.get(name, default)

    def __getitem__(self, name: str) -> Any:
        key = PAGE_ALIASES.get(name, name)
        if key in self.field_names():
            return getattr(self, key)
        return self.meta[name]

    def update(self, values: dict[str, Any]) -> None:
        """Assign known fields by name or alias and keep the rest in ``meta``."""
        for key, value in values.items():
            name = PAGE_ALIASES.get(key, key)
            if name in ("subpages", "meta"):
                continue
            if name in self.field_names():
                setattr(self, name, value)
            else:
                self.meta[key] = value

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for name in self.field_names():
            value = getattr(self, name)
            if name == "subpages":
                value = []
            elif name == "meta":
                value = _jsonable(value)
            elif isinstance(value, (dt.datetime, dt.date)):
                value = value.isoformat()
            record[name] = value
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Page:
        page = cls()
        values = {PAGE_ALIASES.get(key, key): value for key, value in record.items()}
        meta = values.pop("meta", None)
        values.pop("subpages", None)
        for name in TIMESTAMP_FIELDS:
            value = values.get(name)
            if isinstance(value, str) and value:
                try:
                    values[name] = dt.datetime.fromisoformat(value)
                except ValueError:
                    values[name] = None
        page.update(values)
        if isinstance(meta, dict):
            page.meta.update(meta)
        page.filename = str(page.filename or "")
        return page


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


@dataclass
class BuildReport:
    discovered: int = 0
    parsed: int = 0
    read_skipped: int = 0
    written: int = 0
    write_skipped: int = 0
    pruned: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    cache_error: str = ""

    def fail(self, filename: str, message: str) -> None:
        self.failures.append((filename, message))

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cache_error


@dataclass
class Site:
    """Run-scoped build context.

    Templates receive this object as ``site``; names not defined here fall back
    to the configuration and then to the free-form keys of the site file.
    """

    config: SiteConfig
    files: list[str] = field(default_factory=list)
    pages: list[Page] = field(default_factory=list)
    cached: dict[str, Page] = field(default_factory=dict)
    changed: set[str] = field(default_factory=set)
    report: BuildReport = field(default_factory=BuildReport)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name == "config":
            raise AttributeError(name)
        config = self.config
        if hasattr(config, name):
            return getattr(config, name)
        try:
            return config.extra[name]
        except KeyError:
            raise AttributeError(name) from None
