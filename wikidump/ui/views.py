#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Jinja2 UI views (server-rendered HTML pages)
============================================
GET  /                       a random selection of articles
GET  /wiki/{title}           view an article (302 to the target for redirects)
GET  /search?q=...           title search results
GET  /special/status         index and renderer statistics
GET  /robots.txt             keep crawlers out
GET  /pygments.css           stylesheet for highlighted code blocks
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from wikidump.core.config import get_settings
from wikidump.core.dependencies import get_wiki
from wikidump.services.articles import WikiService
from wikidump.services.renderer import pygments_css


# -----------------------------------------------------------------------------

router = APIRouter(tags=["ui"])
templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _ctx(**extra) -> dict:
    """Base template context (request passed separately as first arg to TemplateResponse)."""
    settings = get_settings()
    return {
        "site_name": settings.site_name,
        "app_version": settings.app_version,
        "base_url": settings.base_url,
        **extra,
    }


def _links(wiki: WikiService, entries) -> list[dict]:
    return [{"title": e.title, "href": wiki.href(e.title)} for e in entries]


def error_page(request: Request, status_code: int, message: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "error.html",
        _ctx(status_code=status_code,
             heading="Article not found" if status_code == 404 else "Something went wrong",
             message=message),
        status_code=status_code,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Home
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.get("/", response_class=HTMLResponse)
async def home(request: Request, wiki: WikiService = Depends(get_wiki)):
    return templates.TemplateResponse(
        request,
        "index.html",
        _ctx(random_pages=_links(wiki, wiki.random_entries()),
             total=len(wiki.index)),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Articles
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.get("/wiki/{title:path}", response_class=HTMLResponse)
async def view_article(
    request: Request,
    title: str,
    redirect: Optional[str] = None,
    redirected_from: Optional[str] = None,
    wiki: WikiService = Depends(get_wiki),
):
    # ?redirect=no shows the redirect page itself instead of following it
    if redirect == "no":
        article = await run_in_threadpool(wiki.fetch_article, title)
        return templates.TemplateResponse(
            request,
            "article.html",
            _ctx(title=article.title,
                 content="" if article.redirect else await run_in_threadpool(wiki.render, article.text),
                 categories=[],
                 redirect_target=article.redirect,
                 redirect_href=wiki.href(article.redirect) if article.redirect else None,
                 redirected_from=None),
        )

    rendered = await run_in_threadpool(wiki.render_article, title)
    if rendered.redirect:
        target = wiki.href(rendered.redirect)
        path, sep, fragment = target.partition("#")
        url = f"{path}?redirected_from={quote(rendered.title)}{sep}{fragment}"
        return RedirectResponse(url=url, status_code=302)

    return templates.TemplateResponse(
        request,
        "article.html",
        _ctx(title=rendered.title,
             content=rendered.html,
             categories=rendered.categories,
             redirect_target=None,
             redirect_href=None,
             redirected_from=redirected_from,
             redirected_from_href=f"{wiki.href(redirected_from)}?redirect=no" if redirected_from else None),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Search
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.get("/search", response_class=HTMLResponse)
async def search_view(
    request: Request,
    q: Optional[str] = None,
    wiki: WikiService = Depends(get_wiki),
):
    results = []
    if q:
        results = _links(wiki, await run_in_threadpool(wiki.search, q))
    return templates.TemplateResponse(
        request,
        "search.html",
        _ctx(q=q or "",
             results=results,
             limit=wiki.search_limit),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Special pages
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.get("/special/status", response_class=HTMLResponse)
async def site_status(request: Request, wiki: WikiService = Depends(get_wiki)):
    stats = wiki.index.stats
    return templates.TemplateResponse(
        request,
        "special_status.html",
        _ctx(total_entries=len(wiki.index),
             total_blocks=len(wiki.index.pairs),
             lines=stats.lines,
             malformed=stats.malformed,
             skipped_namespace=stats.skipped_namespace,
             archive_path=str(wiki.archive_path),
             template_count=len(wiki.engine.registry)),
    )


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    return "User-agent: *\nDisallow: /\n"


@router.get("/pygments.css")
async def code_stylesheet():
    return Response(content=pygments_css(), media_type="text/css")


# -----------------------------------------------------------------------------
