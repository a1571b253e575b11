from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path
from typing import Any, Optional

from .cache import file_mtime, optional_mtime
from .content import convert_markdown, parse_date, read_source, slugify
from .exceptions import PageError, SourceReadError
from .models import DEFAULT_TEMPLATE, PAGE_ALIASES, Page, Site
from .render import PageView, find_template, render_page, write_text
from .utils import is_inside, map_in_order, parse_bool, parse_optional_int, relative_url, site_root_from

# Bookkeeping fields that front matter may not set.
RESERVED_FIELDS = {"filename", "content", "modified", "write_time", "rel_site_url", "listing", "subpages", "meta"}


def reconcile(default: Page, cached: Optional[Page] = None, front_matter: Optional[dict] = None) -> Page:
    """Combine a fresh page, its cached record and newly parsed front matter.

    Without front matter the source is unchanged: every cached field is kept
    except ``subpages`` and ``rel_site_url``, which are recomputed each run.

    With front matter the source changed: the page is rebuilt from the
    defaults and the front matter alone, so metadata removed from the source
    (and slug, url or target derived from it) is not carried over from the
    cache. Only ``write_time`` and ``listing`` survive, because they describe
    the existing output file.
    """
    page = dataclasses.replace(default, meta=dict(default.meta), listing=list(default.listing), subpages=[])
    if front_matter is None:
        if cached is not None:
            for name in Page.field_names():
                if name in ("subpages", "rel_site_url"):
                    continue
                value = getattr(cached, name)
                if isinstance(value, (dict, list)):
                    value = type(value)(value)
                setattr(page, name, value)
    else:
        if cached is not None:
            page.write_time = cached.write_time
            page.listing = list(cached.listing)
        page.update(
            {key: value for key, value in front_matter.items() if PAGE_ALIASES.get(key, key) not in RESERVED_FIELDS}
        )
    page.subpages = []
    return page


def coerce_fields(page: Page) -> None:
    page.index = parse_bool(page.index)
    page.sort_reverse = parse_bool(page.sort_reverse)
    page.max_subpages = parse_optional_int(page.max_subpages)
    page.template = str(page.template or DEFAULT_TEMPLATE)
    page.sort_key = str(page.sort_key) if page.sort_key else None
    page.date_format = str(page.date_format) if page.date_format else None
    page.slug = str(page.slug) if page.slug else None
    for name in ("title", "category", "excerpt", "url", "target"):
        value = getattr(page, name)
        setattr(page, name, "" if value is None else str(value))


def derive_locations(page: Page, content_dir: str, write_ext: str) -> None:
    if not page.slug:
        page.slug = slugify(Path(page.filename).stem)
    if not page.url:
        full_url = os.path.join(os.path.dirname(page.filename), page.slug + write_ext)
        page.url = relative_url(full_url, content_dir or ".")
    if not page.target:
        page.target = page.url
    page.rel_site_url = site_root_from(page.target)


def resolve_page(filename: str, cached: Optional[Page], content_dir: str, write_ext: str) -> tuple[Page, bool]:
    """Build the page for ``filename``; the flag is true when the source was re-parsed."""
    try:
        modified = file_mtime(filename)
    except OSError as exc:
        raise SourceReadError(filename, f"cannot stat source: {exc}") from exc

    stale = cached is None or cached.modified != modified
    if stale:
        meta, body = read_source(filename)
        page = reconcile(Page(), cached, meta)
        page.content = convert_markdown(body)
        page.modified = modified
    else:
        page = reconcile(Page(), cached)

    page.filename = filename
    coerce_fields(page)
    page.date = parse_date(page.date, filename)
    derive_locations(page, content_dir, write_ext)
    return page, stale


def resolve_pages(site: Site) -> list[Page]:
    config = site.config
    report = site.report
    print(f"Resolving {len(site.files)} files")

    def resolve(filename: str) -> Any:
        try:
            return resolve_page(filename, site.cached.get(filename), config.content_dir, config.write_ext)
        except PageError as exc:
            return exc

    pages = []
    for filename, result in zip(site.files, map_in_order(resolve, site.files, config.workers)):
        if isinstance(result, PageError):
            print(f"Failed {filename}: {result.message}", file=sys.stderr)
            report.fail(filename, result.message)
            continue
        page, stale = result
        if stale:
            report.parsed += 1
            site.changed.add(filename)
        else:
            report.read_skipped += 1
        pages.append(page)

    if report.read_skipped:
        print(f"No changes in {report.read_skipped} files")
    site.pages = pages
    return pages


def sort_pages(pages: list[Page], key: str, reverse: bool) -> list[Page]:
    def value_key(page: Page) -> tuple:
        value = page.get(key)
        return (value is not None, value)

    def text_key(page: Page) -> tuple:
        value = page.get(key)
        return (value is not None, "" if value is None else str(value))

    try:
        return sorted(pages, key=value_key, reverse=reverse)
    except TypeError:
        return sorted(pages, key=text_key, reverse=reverse)


def select_subpages(index_page: Page, pages: list[Page]) -> list[Page]:
    subpages = [page for page in pages if not page.index]
    if index_page.category:
        subpages = [page for page in subpages if page.category == index_page.category]
    if index_page.sort_key:
        subpages = sort_pages(subpages, index_page.sort_key, index_page.sort_reverse)
    elif index_page.sort_reverse:
        subpages = list(reversed(subpages))
    if index_page.max_subpages:
        subpages = subpages[: index_page.max_subpages]
    return subpages


def aggregate_indexes(site: Site) -> None:
    for page in site.pages:
        if not page.index:
            continue
        page.subpages = select_subpages(page, site.pages)
        print(f"Index {page.url}: {len(page.subpages)} subpages")


def output_path(site: Site, page: Page) -> Path:
    return Path(site.config.output_dir) / page.target


def is_unchanged(page: Page, output: Path, template: Path, changed: set[str]) -> bool:
    write_time = optional_mtime(output)
    if write_time is None or page.write_time is None:
        return False
    if page.filename in changed:
        return False
    if write_time != page.write_time:
        return False
    if page.modified is not None and write_time < page.modified:
        return False
    template_time = optional_mtime(template)
    if template_time is not None and template_time > write_time:
        return False
    if page.index:
        listing = [sub.filename for sub in page.subpages]
        if listing != page.listing:
            return False
        if any(filename in changed for filename in listing):
            return False
    return True


def write_page(site: Site, page: Page) -> bool:
    """Render and write one page; returns False when the output was up to date."""
    config = site.config
    output = output_path(site, page)
    template = find_template(page, config.template_dir)
    if is_unchanged(page, output, template, site.changed):
        return False

    view = PageView(page, page.date_format or config.date_format)
    text = render_page(template, view, site, config.template_dir)
    print(f"Wrote ({template}) => {output}")
    write_text(output, text, page.filename)
    page.write_time = file_mtime(output)
    page.listing = [sub.filename for sub in page.subpages]
    return True


def write_pages(site: Site) -> None:
    report = site.report

    def write(page: Page) -> Any:
        try:
            return write_page(site, page)
        except PageError as exc:
            return exc

    for page, result in zip(site.pages, map_in_order(write, site.pages, site.config.workers)):
        if isinstance(result, PageError):
            print(f"Failed {page.filename}: {result.message}", file=sys.stderr)
            report.fail(page.filename, result.message)
        elif result:
            report.written += 1
        else:
            report.write_skipped += 1

    if report.write_skipped:
        print(f"Unchanged output for {report.write_skipped} pages")


def prune_outputs(site: Site) -> int:
    """Delete outputs of deleted sources and of pages whose target moved."""
    root = Path(site.config.output_dir)
    current = {page.filename: page for page in site.pages}
    targets = {page.target for page in site.pages}
    removed = 0
    for filename, cached in site.cached.items():
        if not cached.target or cached.target in targets:
            continue
        page = current.get(filename)
        if page is None and Path(filename).exists():
            continue
        path = root / cached.target
        if not path.is_file() or not is_inside(path, root):
            continue
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        print(f"Removed {path}")
        removed += 1
    site.report.pruned += removed
    return removed
