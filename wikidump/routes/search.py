#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Search router
=============
GET /api/v1/search?q=...&limit=...     case-insensitive title search
GET /api/v1/random?count=...           random sample of articles
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from wikidump.core.dependencies import get_wiki
from wikidump.schemas import IndexEntryResponse, SearchResult
from wikidump.services.articles import WikiService


# -----------------------------------------------------------------------------

router = APIRouter(tags=["search"])


# -----------------------------------------------------------------------------

@router.get("/search", response_model=SearchResult)
async def search(
    q:     str           = Query(..., min_length=1, max_length=256, description="Search query"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    wiki:  WikiService   = Depends(get_wiki),
):
    # A substring scan over millions of titles is CPU-bound; keep it off the loop.
    entries = await run_in_threadpool(wiki.search, q, limit)
    return SearchResult(
        query=q,
        count=len(entries),
        results=[IndexEntryResponse.from_entry(e, wiki.href(e.title)) for e in entries],
    )


@router.get("/random", response_model=list[IndexEntryResponse])
async def random_articles(
    count: Optional[int] = Query(None, ge=1, le=500),
    wiki:  WikiService   = Depends(get_wiki),
):
    return [IndexEntryResponse.from_entry(e, wiki.href(e.title)) for e in wiki.random_entries(count)]


# -----------------------------------------------------------------------------
