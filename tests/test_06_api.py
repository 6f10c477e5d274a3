#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for the JSON API: articles, search, random, render and health."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from tests.conftest import ALPHA_TEXT


# =============================================================================
# Health
# =============================================================================

@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["entries"] == 5
    assert data["blocks"] == 3


@pytest.mark.asyncio
async def test_health_without_index(empty_client):
    resp = await empty_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "unavailable"
    assert resp.json()["entries"] == 0


# =============================================================================
# Articles
# =============================================================================

@pytest.mark.asyncio
async def test_get_article(client):
    resp = await client.get("/api/v1/articles/Alpha")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["title"] == "Alpha"
    assert data["page_id"] == 10
    assert data["redirect"] is None
    assert data["categories"] == ["Letters"]
    assert "<b>Alpha</b>" in data["html"]
    assert '<h2 id="history">History</h2>' in data["html"]
    assert '<a href="/wiki/Beta" class="wikilink">Beta</a>' in data["html"]
    assert '<sup class="reference">' in data["html"]
    assert "Greek alphabet</li>" in data["html"]
    assert 'class="template-unknown"' in data["html"]


@pytest.mark.asyncio
async def test_get_article_case_insensitive_with_fragment(client):
    resp = await client.get("/api/v1/articles/alpha%23History")
    assert resp.status_code == 200
    assert resp.json()["page_id"] == 10


@pytest.mark.asyncio
async def test_get_article_from_last_block(client):
    resp = await client.get("/api/v1/articles/Delta")
    assert resp.status_code == 200
    assert "<i>friends</i> live in the last block." in resp.json()["html"]


@pytest.mark.asyncio
async def test_case_sensitive_title_wins(client):
    resp = await client.get("/api/v1/articles/gamma")
    assert resp.status_code == 200
    assert resp.json()["page_id"] == 13
    assert "<i>gamma</i>" in resp.json()["html"]


@pytest.mark.asyncio
async def test_redirect_reports_target(client):
    resp = await client.get("/api/v1/articles/Gamma")
    assert resp.status_code == 200
    data = resp.json()
    assert data["page_id"] == 12
    assert data["redirect"] == "Alpha#History"
    assert data["html"] == ""


@pytest.mark.asyncio
async def test_raw_article(client):
    resp = await client.get("/api/v1/articles/Alpha/raw")
    assert resp.status_code == 200
    data = resp.json()
    assert data["text"] == ALPHA_TEXT
    assert data["redirect"] is None


@pytest.mark.asyncio
async def test_raw_redirect(client):
    resp = await client.get("/api/v1/articles/Gamma/raw")
    assert resp.json()["text"] == "#REDIRECT [[Alpha#History]]"
    assert resp.json()["redirect"] == "Alpha#History"


@pytest.mark.asyncio
async def test_unknown_title_is_404(client):
    resp = await client.get("/api/v1/articles/Omega")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "No article titled 'Omega'"}


@pytest.mark.asyncio
async def test_namespace_titles_not_indexed(client):
    resp = await client.get("/api/v1/articles/Category:Letters")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_missing_archive_is_503(client, app, tmp_path):
    app.state.wiki.archive_path = tmp_path / "gone.xml.bz2"
    resp = await client.get("/api/v1/articles/Alpha")
    assert resp.status_code == 503
    assert "does not exist" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_index_not_loaded_is_503(empty_client):
    resp = await empty_client.get("/api/v1/articles/Alpha")
    assert resp.status_code == 503
    assert resp.json() == {"detail": "The article index is not loaded"}


# =============================================================================
# Search and random
# =============================================================================

@pytest.mark.asyncio
async def test_search(client, dump):
    _, _, offsets = dump
    resp = await client.get("/api/v1/search", params={"q": "ALP"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["query"] == "ALP"
    assert data["count"] == 1
    hit = data["results"][0]
    assert hit["title"] == "Alpha"
    assert hit["page_id"] == 10
    assert hit["start"] == offsets[0]
    assert hit["end"] == offsets[1]
    assert hit["href"] == "/wiki/Alpha"


@pytest.mark.asyncio
async def test_search_limit(client):
    resp = await client.get("/api/v1/search", params={"q": "a", "limit": 2})
    assert resp.json()["count"] == 2


@pytest.mark.asyncio
async def test_search_requires_query(client):
    resp = await client.get("/api/v1/search")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_search_no_hits(client):
    resp = await client.get("/api/v1/search", params={"q": "zzz"})
    assert resp.json() == {"query": "zzz", "count": 0, "results": []}


@pytest.mark.asyncio
async def test_random_default_count(client):
    resp = await client.get("/api/v1/random")
    assert resp.status_code == 200
    titles = [r["title"] for r in resp.json()]
    assert len(titles) == 3
    assert len(set(titles)) == 3


@pytest.mark.asyncio
async def test_random_count_capped_by_index(client):
    resp = await client.get("/api/v1/random", params={"count": 50})
    assert len(resp.json()) == 5


@pytest.mark.asyncio
async def test_random_rejects_zero(client):
    resp = await client.get("/api/v1/random", params={"count": 0})
    assert resp.status_code == 422


# =============================================================================
# Render
# =============================================================================

@pytest.mark.asyncio
async def test_render_snippet(client):
    resp = await client.get("/api/v1/render", params={"content": "'''bold''' [[Foo]]"})
    assert resp.status_code == 200
    assert resp.json() == {
        "html": '<p><b>bold</b> <a href="/wiki/Foo" class="wikilink">Foo</a></p>',
        "format": "wikitext",
    }


@pytest.mark.asyncio
async def test_render_deeply_nested_links(client):
    resp = await client.get("/api/v1/render", params={"content": "[[" * 1500 + "x" + "]]" * 1500})
    assert resp.status_code == 200
    assert 'class="wikilink"' in resp.json()["html"]


@pytest.mark.asyncio
async def test_render_empty(client):
    resp = await client.get("/api/v1/render")
    assert resp.json()["html"] == ""


# -----------------------------------------------------------------------------
