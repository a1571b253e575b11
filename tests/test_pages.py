"""Tests for page resolution, index aggregation and the page writer."""

import datetime as dt
import os

import pytest

from pagesmith.cache import file_mtime
from pagesmith.exceptions import TemplateResolutionError
from pagesmith.models import Page, Site
from pagesmith.pages import (
    aggregate_indexes,
    reconcile,
    resolve_page,
    resolve_pages,
    select_subpages,
    write_page,
    write_pages,
)
from pagesmith.render import PageView, find_template, format_date

from conftest import SOURCE_MTIME, write_source


class TestReconcile:
    def test_defaults_only(self):
        page = reconcile(Page())
        assert page.template == "default.jinja2"
        assert page.sort_reverse is True
        assert page.subpages == []

    def test_cached_fields_kept_when_unchanged(self):
        cached = Page(filename="a.md", title="A", slug="a", url="a.html", target="a.html", rel_site_url="stale")
        cached.subpages = [Page(filename="x.md")]
        page = reconcile(Page(), cached)
        assert (page.title, page.slug, page.url, page.target) == ("A", "a", "a.html", "a.html")
        assert page.rel_site_url == ""
        assert page.subpages == []

    def test_front_matter_replaces_cached_metadata(self):
        written = dt.datetime(2024, 5, 1)
        cached = Page(
            filename="a.md",
            title="Old",
            category="news",
            slug="old-slug",
            url="old-slug.html",
            target="old-slug.html",
            write_time=written,
            meta={"author": "someone"},
        )
        page = reconcile(Page(), cached, {"title": "New", "sortKey": "date"})
        assert page.title == "New"
        assert page.sort_key == "date"
        assert page.category == ""
        assert page.slug is None
        assert page.url == "" and page.target == ""
        assert page.meta == {}
        assert page.write_time == written

    def test_front_matter_may_set_derived_fields(self):
        page = reconcile(Page(), None, {"slug": "custom", "target": "x/y.html"})
        assert page.slug == "custom"
        assert page.target == "x/y.html"

    def test_reserved_keys_ignored(self):
        page = reconcile(Page(), None, {"filename": "evil.md", "writeTime": "now", "author": "me"})
        assert page.filename == ""
        assert page.write_time is None
        assert page.meta == {"author": "me"}


class TestResolvePage:
    def test_derives_locations(self, tmp_path):
        source = write_source(tmp_path / "posts" / "My First Post.md", "---\ntitle: First\n---\nHello")
        page, stale = resolve_page(str(source), None, str(tmp_path), ".html")
        assert stale is True
        assert page.slug == "my-first-post"
        assert page.url == "posts/my-first-post.html"
        assert page.target == page.url
        assert page.rel_site_url == ".."
        assert page.content.strip() == "<p>Hello</p>"
        assert page.modified == dt.datetime.fromtimestamp(SOURCE_MTIME)

    def test_top_level_rel_site_url(self, tmp_path):
        source = write_source(tmp_path / "a.md", "text")
        page, _ = resolve_page(str(source), None, str(tmp_path), ".html")
        assert page.url == "a.html"
        assert page.rel_site_url == "."

    def test_unchanged_source_reuses_cache(self, tmp_path):
        source = write_source(tmp_path / "a.md", "---\ntitle: A\n---\noriginal")
        first, _ = resolve_page(str(source), None, str(tmp_path), ".html")
        write_source(source, "---\ntitle: B\n---\nedited")
        second, stale = resolve_page(str(source), first, str(tmp_path), ".html")
        assert stale is False
        assert second.title == "A"
        assert second.content == first.content

    def test_new_mtime_reparses(self, tmp_path):
        source = write_source(tmp_path / "a.md", "---\ntitle: A\n---\noriginal")
        first, _ = resolve_page(str(source), None, str(tmp_path), ".html")
        write_source(source, "---\ntitle: B\n---\nedited", mtime=SOURCE_MTIME + 60)
        second, stale = resolve_page(str(source), first, str(tmp_path), ".html")
        assert stale is True
        assert second.title == "B"
        assert "edited" in second.content

    def test_date_normalized(self, tmp_path):
        source = write_source(tmp_path / "a.md", "---\ndate: 2020-01-01\n---\n")
        page, _ = resolve_page(str(source), None, str(tmp_path), ".html")
        assert page.date == dt.datetime(2020, 1, 1)

    def test_non_positive_max_subpages_means_no_cap(self, tmp_path):
        source = write_source(tmp_path / "idx.md", "---\nindex: true\nmaxSubpages: -1\n---\n")
        page, _ = resolve_page(str(source), None, str(tmp_path), ".html")
        assert page.max_subpages is None
        assert len(select_subpages(page, make_pages())) == 5

    def test_failed_page_is_isolated(self, tmp_path, make_config, site_dirs):
        content, _, _ = site_dirs
        good = write_source(content / "good.md", "fine")
        bad = write_source(content / "bad.md", "---\ntitle: [oops\n---\n")
        site = Site(config=make_config(), files=[str(bad), str(good)])
        pages = resolve_pages(site)
        assert [page.filename for page in pages] == [str(good)]
        assert site.report.failures[0][0] == str(bad)
        assert site.report.parsed == 1

    def test_workers_keep_discovery_order(self, make_config, site_dirs):
        content, _, _ = site_dirs
        files = [str(write_source(content / f"p{i}.md", f"page {i}")) for i in range(8)]
        site = Site(config=make_config(workers=4), files=files)
        pages = resolve_pages(site)
        assert [page.filename for page in pages] == files


def make_pages():
    pages = [
        Page(filename="p1.md", category="blog", meta={"rank": 3}),
        Page(filename="p2.md", category="blog", meta={"rank": 5}),
        Page(filename="p3.md", category="news", meta={"rank": 9}),
        Page(filename="p4.md", category="blog", meta={"rank": 5}),
        Page(filename="p5.md", category="blog", meta={"rank": 1}),
    ]
    return pages


class TestAggregation:
    def test_top_k_of_category_descending(self):
        pages = make_pages()
        index = Page(filename="idx.md", index=True, category="blog", sort_key="rank", max_subpages=3)
        subpages = select_subpages(index, pages + [index])
        assert [page.filename for page in subpages] == ["p2.md", "p4.md", "p1.md"]

    def test_ascending_when_not_reversed(self):
        index = Page(index=True, sort_key="rank", sort_reverse=False)
        subpages = select_subpages(index, make_pages())
        assert [page.filename for page in subpages] == ["p5.md", "p1.md", "p2.md", "p4.md", "p3.md"]

    def test_other_indexes_excluded(self):
        other = Page(filename="other.md", index=True)
        index = Page(filename="idx.md", index=True, sort_reverse=False)
        subpages = select_subpages(index, [other, index] + make_pages())
        assert other not in subpages
        assert len(subpages) == 5

    def test_no_sort_key_keeps_discovery_order(self):
        index = Page(index=True, sort_reverse=False)
        assert [p.filename for p in select_subpages(index, make_pages())][:2] == ["p1.md", "p2.md"]
        index.sort_reverse = True
        assert [p.filename for p in select_subpages(index, make_pages())][:2] == ["p5.md", "p4.md"]

    def test_missing_sort_values_sort_first(self):
        pages = [Page(filename="a.md", date=dt.datetime(2020, 1, 1)), Page(filename="b.md")]
        index = Page(index=True, sort_key="date", sort_reverse=False)
        assert [p.filename for p in select_subpages(index, pages)] == ["b.md", "a.md"]

    def test_aggregate_assigns_subpages(self, make_config):
        pages = make_pages()
        index = Page(filename="idx.md", url="idx.html", index=True, category="news")
        site = Site(config=make_config(), pages=pages + [index])
        aggregate_indexes(site)
        assert index.subpages == [pages[2]]
        assert all(page.subpages == [] for page in pages)


class TestDateFormatting:
    def test_named_format(self):
        assert format_date(dt.datetime(2020, 1, 1), "isoDate") == "2020-01-01"
        assert format_date(dt.datetime(2020, 1, 1), "fullDate") == "Wednesday, January 1, 2020"

    def test_named_formats_do_not_pad_days(self):
        value = dt.datetime(2021, 3, 7, 8, 5)
        assert format_date(value, "longDate") == "March 7, 2021"
        assert format_date(value, "mediumDate") == "Mar 7, 2021"
        assert format_date(value, "shortDate") == "3/7/21"
        assert format_date(value, "isoDateTime") == "2021-03-07T08:05:00"

    def test_strftime_format(self):
        assert format_date(dt.datetime(2020, 1, 1, 9, 30), "%H:%M") == "09:30"

    def test_none_date(self):
        assert format_date(None, "isoDate") == ""

    def test_subpages_use_container_format(self):
        sub = Page(filename="s.md", date=dt.datetime(2021, 2, 3), date_format="%Y")
        index = Page(filename="i.md", date=dt.datetime(2021, 4, 5), index=True, subpages=[sub])
        view = PageView(index, "isoDate")
        assert view.date == "2021-04-05"
        assert view.subpages[0].date == "2021-02-03"
        assert sub.date == dt.datetime(2021, 2, 3)

    def test_view_exposes_meta(self):
        view = PageView(Page(meta={"author": "kim"}), "isoDate")
        assert view.author == "kim"
        assert view["author"] == "kim"


class TestTemplates:
    def test_search_order(self, tmp_path, site_dirs):
        content, _, templates = site_dirs
        (templates / "post.jinja2").write_text("global", encoding="utf-8")
        page = Page(filename=str(content / "a.md"), template="post.jinja2")
        assert find_template(page, str(templates)) == templates / "post.jinja2"
        (content / "post.jinja2").write_text("local", encoding="utf-8")
        assert find_template(page, str(templates)) == content / "post.jinja2"

    def test_builtin_default(self, site_dirs):
        content, _, templates = site_dirs
        page = Page(filename=str(content / "a.md"))
        assert find_template(page, str(templates)).name == "default.jinja2"

    def test_missing_template(self, site_dirs):
        content, _, templates = site_dirs
        page = Page(filename=str(content / "a.md"), template="nope.jinja2")
        with pytest.raises(TemplateResolutionError):
            find_template(page, str(templates))


class TestWritePage:
    def make_site(self, make_config, site_dirs, template_text="{{ page.title }}|{{ page.date }}"):
        content, _, templates = site_dirs
        (templates / "t.jinja2").write_text(template_text, encoding="utf-8")
        os.utime(templates / "t.jinja2", (SOURCE_MTIME, SOURCE_MTIME))
        page = Page(
            filename=str(content / "a.md"),
            template="t.jinja2",
            title="A",
            content="<p>body</p>",
            date=dt.datetime(2020, 1, 1),
            modified=dt.datetime.fromtimestamp(SOURCE_MTIME),
            url="a.html",
            target="a.html",
        )
        return Site(config=make_config(date_format="isoDate"), pages=[page]), page

    def test_writes_and_records_time(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        _, output, _ = site_dirs
        assert write_page(site, page) is True
        assert (output / "a.html").read_text(encoding="utf-8") == "A|2020-01-01"
        assert page.write_time == file_mtime(output / "a.html")

    def test_page_format_overrides_site(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        _, output, _ = site_dirs
        page.date_format = "%d/%m/%Y"
        write_page(site, page)
        assert (output / "a.html").read_text(encoding="utf-8") == "A|01/01/2020"

    def test_skips_unchanged_output(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        write_page(site, page)
        assert write_page(site, page) is False

    def test_rewrites_when_output_touched(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        _, output, _ = site_dirs
        write_page(site, page)
        os.utime(output / "a.html", (SOURCE_MTIME + 5, SOURCE_MTIME + 5))
        assert write_page(site, page) is True

    def test_rewrites_when_template_newer(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        _, _, templates = site_dirs
        write_page(site, page)
        later = page.write_time.timestamp() + 100
        os.utime(templates / "t.jinja2", (later, later))
        assert write_page(site, page) is True

    def test_raw_template_passes_content(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        _, output, templates = site_dirs
        (templates / "raw.html").write_text("ignored", encoding="utf-8")
        page.template = "raw.html"
        write_page(site, page)
        assert (output / "a.html").read_text(encoding="utf-8") == "<p>body</p>"

    def test_write_failures_are_reported(self, make_config, site_dirs):
        site, page = self.make_site(make_config, site_dirs)
        page.template = "missing.jinja2"
        write_pages(site)
        assert site.report.failures and site.report.failures[0][0] == page.filename
        assert site.report.written == 0
