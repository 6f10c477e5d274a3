#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pydantic v2 schemas for response serialisation.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from wikidump.services.index import IndexEntry


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shared
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    app: str
    entries: int = 0
    blocks: int = 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Index
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class IndexEntryResponse(BaseModel):
    title: str
    page_id: int
    start: int
    end: Optional[int] = None
    href: str = ""

    @classmethod
    def from_entry(cls, entry: IndexEntry, href: str = "") -> "IndexEntryResponse":
        return cls(
            title=entry.title,
            page_id=entry.page_id,
            start=entry.offsets.start,
            end=entry.offsets.end,
            href=href,
        )


# -----------------------------------------------------------------------------

class SearchResult(BaseModel):
    query: str
    count: int
    results: list[IndexEntryResponse] = Field(default_factory=list)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Articles
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ArticleResponse(BaseModel):
    title: str
    page_id: int
    html: str = ""
    redirect: Optional[str] = None
    categories: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------

class RawArticleResponse(BaseModel):
    title: str
    page_id: int
    text: str
    redirect: Optional[str] = None


# -----------------------------------------------------------------------------

class RenderResponse(BaseModel):
    html: str
    format: str = "wikitext"


# -----------------------------------------------------------------------------
