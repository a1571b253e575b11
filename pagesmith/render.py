from __future__ import annotations

import datetime as dt
import shutil
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError

from .content import slugify
from .exceptions import OutputWriteError, TemplateResolutionError
from .models import Page

DEFAULTS_DIR = Path(__file__).resolve().parent / "defaults"
TEMPLATE_EXTS = {".j2", ".jinja", ".jinja2"}

# Named formats print unpadded day and month numbers.
NAMED_DATE_FORMATS = {
    "fullDate": lambda value: f"{value:%A, %B} {value.day}, {value:%Y}",
    "longDate": lambda value: f"{value:%B} {value.day}, {value:%Y}",
    "mediumDate": lambda value: f"{value:%b} {value.day}, {value:%Y}",
    "shortDate": lambda value: f"{value.month}/{value.day}/{value:%y}",
    "isoDate": lambda value: f"{value:%Y-%m-%d}",
    "isoTime": lambda value: f"{value:%H:%M:%S}",
    "isoDateTime": lambda value: f"{value:%Y-%m-%dT%H:%M:%S}",
}


def format_date(value: Optional[dt.datetime], fmt: str) -> str:
    if value is None or value == "":
        return ""
    if not isinstance(value, (dt.date, dt.datetime)):
        return str(value)
    named = NAMED_DATE_FORMATS.get(fmt)
    if named is not None:
        return named(value)
    return value.strftime(fmt)


class PageView:
    """Read-only view of a page as a template sees it.

    ``date`` is already formatted, and subpages are formatted with the date
    format of the page that lists them.
    """

    def __init__(self, page: Page, date_format: str, depth: int = 1) -> None:
        self._page = page
        self.date = format_date(page.date, date_format)
        if depth > 0:
            self.subpages = [PageView(sub, date_format, depth - 1) for sub in page.subpages]
        else:
            self.subpages = []

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        page = self._page
        if hasattr(page, name):
            return getattr(page, name)
        try:
            return page[name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, name: str) -> Any:
        if name in ("date", "subpages"):
            return getattr(self, name)
        return self._page[name]


def find_template(page: Page, template_dir: str) -> Path:
    search_dirs = [Path(page.filename).parent, Path(template_dir or "."), DEFAULTS_DIR]
    for directory in search_dirs:
        candidate = directory / page.template
        if candidate.is_file():
            return candidate
    searched = ", ".join(str(directory) for directory in search_dirs)
    raise TemplateResolutionError(page.filename, f"template {page.template!r} not found in {searched}")


def is_engine_template(path: Path) -> bool:
    return path.suffix.lower() in TEMPLATE_EXTS


@lru_cache(maxsize=None)
def get_environment(search_path: tuple[str, ...]) -> Environment:
    env = Environment(
        loader=FileSystemLoader(list(search_path)),
        autoescape=False,
        keep_trailing_newline=True,
        auto_reload=True,
    )
    env.filters["date"] = format_date
    env.filters["slugify"] = slugify
    return env


def render_page(template: Path, page: PageView, site: Any, template_dir: str) -> str:
    if not is_engine_template(template):
        return page.content
    search_path = tuple(dict.fromkeys([str(template.parent), str(Path(template_dir or ".")), str(DEFAULTS_DIR)]))
    env = get_environment(search_path)
    try:
        return env.get_template(template.name).render(page=page, site=site)
    except TemplateError as exc:
        raise TemplateResolutionError(page.filename, f"cannot render {template}: {exc}") from exc
    except Exception as exc:
        raise TemplateResolutionError(page.filename, f"cannot render {template}: {exc!r}") from exc


def write_text(path: Path, text: str, filename: str = "") -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputWriteError(filename or path, f"cannot write {path}: {exc}") from exc


def copy_media(media_dir: str, output_dir: str) -> bool:
    if not media_dir:
        return False
    source = Path(media_dir)
    dest = Path(output_dir)
    if not source.is_dir():
        return False
    source_resolved = source.resolve()
    dest_resolved = dest.resolve()
    if source_resolved == dest_resolved:
        return False

    def ignore(directory: str, names: list[str]) -> set[str]:
        base = Path(directory).resolve()
        return {name for name in names if (base / name) == dest_resolved}

    shutil.copytree(source, dest, ignore=ignore, dirs_exist_ok=True)
    return True
