"""Shared fixtures for the pagesmith tests."""

import os
import textwrap

import pytest

from pagesmith.config import SiteConfig

SOURCE_MTIME = 1_600_000_000


def write_source(path, text, mtime=SOURCE_MTIME):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def site_dirs(tmp_path):
    content = tmp_path / "content"
    output = tmp_path / "out"
    templates = tmp_path / "templates"
    content.mkdir()
    templates.mkdir()
    return content, output, templates


@pytest.fixture
def make_config(tmp_path, site_dirs):
    content, output, templates = site_dirs

    def factory(**overrides):
        values = {
            "content_dir": str(content),
            "output_dir": str(output),
            "template_dir": str(templates),
            "cached_pages": str(tmp_path / "cache" / "pages.json"),
        }
        values.update(overrides)
        return SiteConfig(**values)

    return factory
