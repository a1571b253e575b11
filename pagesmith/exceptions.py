"""Exceptions raised by the build pipeline."""

from __future__ import annotations


class PagesmithError(Exception):
    """Base exception for all pagesmith errors."""


class ConfigLoadError(PagesmithError):
    """The site configuration file could not be read or parsed."""


class PageError(PagesmithError):
    """An error confined to a single page."""

    def __init__(self, filename: object, message: str) -> None:
        super().__init__(f"{filename}: {message}")
        self.filename = str(filename)
        self.message = message


class SourceReadError(PageError):
    """A source document could not be read or its front matter parsed."""


class TemplateResolutionError(PageError):
    """No template file matched in any search location."""


class OutputWriteError(PageError):
    """The output directory or file could not be written."""


class CacheWriteError(PagesmithError):
    """The page cache could not be saved."""
