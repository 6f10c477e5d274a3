#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Error types
===========
Every failure the index, extractor and renderer can surface to a caller.

Each error carries an HTTP ``status_code`` and a human-readable ``detail`` so
the application layer can turn it into a response without inspecting the
error kind.  ``CacheLoadFailed`` and ``TemplateDepthError`` are recovered
inside the services and never reach a caller.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional


# -----------------------------------------------------------------------------

class WikiError(Exception):
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Index
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TitleNotFound(WikiError):
    status_code = 404

    def __init__(self, title: str) -> None:
        super().__init__(f"No article titled '{title}'")
        self.title = title


class IndexSourceNotFound(WikiError):
    status_code = 503

    def __init__(self, path: str) -> None:
        super().__init__(f"Index listing '{path}' does not exist")
        self.path = path


class CacheLoadFailed(WikiError):
    """Snapshot missing or unusable.  Callers rebuild instead of surfacing this."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot load index snapshot '{path}': {reason}")
        self.path = path
        self.reason = reason


class IndexNotLoaded(WikiError):
    status_code = 503

    def __init__(self) -> None:
        super().__init__("The article index is not loaded")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Extraction
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class InvalidRange(WikiError):
    status_code = 400

    def __init__(self, start: int, end: Optional[int]) -> None:
        super().__init__(f"Invalid byte range start={start} end={end}")
        self.start = start
        self.end = end


class ArchiveNotFound(WikiError):
    status_code = 503

    def __init__(self, path: str) -> None:
        super().__init__(f"Archive '{path}' does not exist")
        self.path = path


class DecompressError(WikiError):
    status_code = 502

    def __init__(self, path: str, offset: int, reason: str) -> None:
        super().__init__(f"Cannot decompress '{path}' at offset {offset}: {reason}")
        self.path = path
        self.offset = offset
        self.reason = reason


class ParseError(WikiError):
    status_code = 502

    def __init__(self, reason: str) -> None:
        super().__init__(f"Malformed page data: {reason}")
        self.reason = reason


class PageNotFound(WikiError):
    status_code = 404

    def __init__(self, page_id: int) -> None:
        super().__init__(f"Page with id {page_id} not found in block")
        self.page_id = page_id


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Rendering
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TemplateDepthError(WikiError):
    def __init__(self, name: str, depth: int) -> None:
        super().__init__(f"Template '{name}' nested deeper than {depth} levels")
        self.name = name
        self.depth = depth


# -----------------------------------------------------------------------------
