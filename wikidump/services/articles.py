#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Article service
===============
Title → index entry → compressed block → page → HTML.

``WikiService`` bundles the read-only pieces a request needs: the offset
index, the archive path and the markup engine.  It is built once at startup
and shared by every request; each call opens its own archive handle.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from wikidump.core.config import Settings
from wikidump.core.errors import WikiError
from wikidump.services import index as offset_index
from wikidump.services.extractor import Page, extract_range, find_page
from wikidump.services.index import IndexEntry, IndexTable
from wikidump.services.renderer import MarkupEngine, extract_categories, parse_redirect


log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Article:
    entry: IndexEntry
    page: Page

    @property
    def title(self) -> str:
        return self.page.title or self.entry.title

    @property
    def text(self) -> str:
        return self.page.text

    @property
    def redirect(self) -> Optional[str]:
        # The <redirect> element drops any #section, the wikitext keeps it.
        return parse_redirect(self.page.text) or self.page.redirect


@dataclass(frozen=True)
class RenderedArticle:
    entry: IndexEntry
    title: str
    html: str = ""
    redirect: Optional[str] = None
    categories: list[str] = field(default_factory=list)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Service
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class WikiService:

    def __init__(
        self,
        index: IndexTable,
        archive_path: Path,
        engine: Optional[MarkupEngine] = None,
        random_count: int = 25,
        search_limit: int = 100,
    ) -> None:
        self.index = index
        self.archive_path = Path(archive_path)
        self.engine = engine or MarkupEngine()
        self.random_count = random_count
        self.search_limit = search_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "WikiService":
        """Load (or build) the index and set up the engine described by *settings*."""
        table = offset_index.build_or_load_index(
            settings.index_path,
            settings.index_cache_resolved,
            skip_prefixes=settings.skip_prefixes,
        )
        engine = MarkupEngine(max_depth=settings.max_template_depth, base_url=settings.base_url)
        return cls(
            table,
            settings.archive_path,
            engine,
            random_count=settings.random_count,
            search_limit=settings.search_limit,
        )

    # ── articles ────────────────────────────────────────────────────────────

    def fetch_article(self, title: str) -> Article:
        """Look *title* up and pull its page out of the archive."""
        entry = offset_index.lookup(self.index, title.partition("#")[0])
        try:
            block = extract_range(self.archive_path, entry.offsets.start, entry.offsets.end)
            page = find_page(block, entry.page_id)
        except WikiError as exc:
            log.warning("Cannot load '%s' (page %d): %s", entry.title, entry.page_id, exc.detail)
            raise
        return Article(entry, page)

    def render_article(self, title: str) -> RenderedArticle:
        """Fetch and convert *title*.  Redirect pages report their target instead."""
        article = self.fetch_article(title)
        redirect = article.redirect
        if redirect:
            return RenderedArticle(article.entry, article.title, redirect=redirect)
        return RenderedArticle(
            article.entry,
            article.title,
            html=self.engine.convert(article.text),
            categories=extract_categories(article.text),
        )

    def render(self, text: str) -> str:
        return self.engine.convert(text)

    def href(self, title: str) -> str:
        return self.engine.href(title)

    # ── browsing ────────────────────────────────────────────────────────────

    def search(self, query: str, limit: Optional[int] = None) -> list[IndexEntry]:
        return offset_index.search(self.index, query, limit or self.search_limit)

    def random_entries(self, count: Optional[int] = None) -> list[IndexEntry]:
        return offset_index.sample(self.index, self.random_count if count is None else count)


# -----------------------------------------------------------------------------
