#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Render endpoint: converts a wikitext snippet, e.g. for a live preview.

GET /api/v1/render?content=...
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from wikidump.core.dependencies import get_wiki
from wikidump.schemas import RenderResponse
from wikidump.services.articles import WikiService


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/render", tags=["render"])


# -----------------------------------------------------------------------------

@router.get("", response_model=RenderResponse)
async def render_preview(
    content: str         = Query(default="", max_length=1_000_000),
    wiki:    WikiService = Depends(get_wiki),
):
    """Return rendered HTML for a snippet of wikitext."""
    html = await run_in_threadpool(wiki.render, content)
    return RenderResponse(html=html)


# -----------------------------------------------------------------------------
