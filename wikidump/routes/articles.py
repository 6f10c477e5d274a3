#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Articles router
===============
GET /api/v1/articles/{title}          rendered article (or its redirect target)
GET /api/v1/articles/{title}/raw      stored wikitext
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from wikidump.core.dependencies import get_wiki
from wikidump.schemas import ArticleResponse, RawArticleResponse
from wikidump.services.articles import WikiService


# -----------------------------------------------------------------------------

router = APIRouter(prefix="/articles", tags=["articles"])


# -----------------------------------------------------------------------------

@router.get("/{title:path}/raw", response_model=RawArticleResponse)
async def get_raw_article(title: str, wiki: WikiService = Depends(get_wiki)):
    article = await run_in_threadpool(wiki.fetch_article, title)
    return RawArticleResponse(
        title=article.title,
        page_id=article.entry.page_id,
        text=article.text,
        redirect=article.redirect,
    )


@router.get("/{title:path}", response_model=ArticleResponse)
async def get_article(title: str, wiki: WikiService = Depends(get_wiki)):
    rendered = await run_in_threadpool(wiki.render_article, title)
    return ArticleResponse(
        title=rendered.title,
        page_id=rendered.entry.page_id,
        html=rendered.html,
        redirect=rendered.redirect,
        categories=rendered.categories,
    )


# -----------------------------------------------------------------------------
