from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

from .cache import load_pages, save_pages
from .config import SiteConfig, load_config
from .content import collect_sources
from .exceptions import CacheWriteError, ConfigLoadError
from .models import Site
from .pages import aggregate_indexes, prune_outputs, resolve_pages, write_pages
from .render import copy_media


def load_cached_pages(site: Site) -> None:
    config = site.config
    if config.force or not config.cached_pages:
        return
    cache_path = Path(config.cached_pages)
    if not cache_path.is_file():
        return
    pages = load_pages(cache_path)
    site.cached = {str(Path(page.filename)): page for page in pages}
    print(f"Loaded {len(pages)} cached pages from {cache_path}")


def save_cached_pages(site: Site) -> None:
    config = site.config
    if not config.cached_pages:
        return
    cache_path = Path(config.cached_pages)
    try:
        count = save_pages(cache_path, site.pages)
    except CacheWriteError as exc:
        print(str(exc), file=sys.stderr)
        site.report.cache_error = str(exc)
        return
    print(f"Saved {count} pages to {cache_path}")


def build_site(config: SiteConfig, paths: Iterable[str] = ()) -> Site:
    """Run one build: discover, resolve, aggregate, write, then save the cache.

    Each phase finishes for every page before the next starts, because index
    pages draw their subpages from the full resolved page set.
    """
    site = Site(config=config)
    load_cached_pages(site)

    site.files = collect_sources(paths, config.content_dir, config.read_exts, config.recursive)
    site.report.discovered = len(site.files)

    resolve_pages(site)
    aggregate_indexes(site)
    if config.prune and site.cached:
        prune_outputs(site)
    write_pages(site)

    try:
        copy_media(config.media_dir, config.output_dir)
    except OSError as exc:
        print(f"Failed to copy media from {config.media_dir}: {exc}", file=sys.stderr)
        site.report.fail(config.media_dir, str(exc))

    save_cached_pages(site)
    return site


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pagesmith",
        description="Build HTML pages from Markdown sources with YAML front matter.",
    )
    parser.add_argument("paths", nargs="*", help="Source files or directories to build.")
    parser.add_argument("-s", "--site", help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        default=None,
        help="Search subdirectories for sources.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=None,
        help="Ignore the page cache and process every file.",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads for reading and writing pages.",
    )
    args = parser.parse_args(argv)

    if not args.site and not args.paths:
        parser.print_usage(sys.stdout)
        return 0

    data: dict = {}
    if args.site:
        print(f"Load site config {args.site}")
        try:
            data = load_config(Path(args.site))
        except ConfigLoadError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    config = SiteConfig.from_mapping(data).with_overrides(
        recursive=args.recursive,
        force=args.force,
        workers=max(1, args.workers) if args.workers is not None else None,
    )

    start = time.perf_counter()
    site = build_site(config, args.paths)
    elapsed = time.perf_counter() - start
    report = site.report
    print(
        f"Build completed in {elapsed:.2f}s: {report.written} written, "
        f"{report.write_skipped} unchanged, {len(report.failures)} failed."
    )
    return 0 if report.ok else 1
