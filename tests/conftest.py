#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Pytest fixtures for PyWikiDump tests.

Builds a small but real multistream dump in a temporary directory: three
independently bzip2-compressed blocks written back to back, plus the
``offset:id:title`` listing that points into them.  No network or fixture
files needed.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import bz2
from pathlib import Path
from xml.sax.saxutils import escape

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wikidump.main import create_app
from wikidump.services.articles import WikiService
from wikidump.services.index import build_index, read_index_lines


# -----------------------------------------------------------------------------

PREAMBLE = (
    '<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.10/" xml:lang="en">\n'
    "  <siteinfo><sitename>Testwiki</sitename></siteinfo>\n"
)
CLOSING = "</mediawiki>\n"

ALPHA_TEXT = (
    "'''Alpha''' is the first letter.<ref>Greek alphabet</ref>\n"
    "\n"
    "== History ==\n"
    "See [[Beta]] and {{notreal|x}}.\n"
    "\n"
    "== References ==\n"
    "{{reflist}}\n"
    "\n"
    "[[Category:Letters]]\n"
)

# (page id, title, wikitext) for each block, in archive order
BLOCKS: list[list[tuple[int, str, str]]] = [
    [
        (10, "Alpha", ALPHA_TEXT),
        (11, "Beta", "'''Beta''' comes after [[Alpha]]."),
    ],
    [
        (12, "Gamma", "#REDIRECT [[Alpha#History]]"),
        (13, "gamma", "Lowercase ''gamma'' is a different page."),
    ],
    [
        (14, "Delta", "Delta & <i>friends</i> live in the last block."),
    ],
]


def page_xml(page_id: int, title: str, text: str) -> str:
    redirect = ""
    if text.startswith("#REDIRECT"):
        redirect = f'    <redirect title="{escape(text.split("[[")[1].split("#")[0])}" />\n'
    return (
        "  <page>\n"
        f"    <title>{escape(title)}</title>\n"
        "    <ns>0</ns>\n"
        f"    <id>{page_id}</id>\n"
        f"{redirect}"
        "    <revision>\n"
        f"      <id>{page_id * 100}</id>\n"
        f'      <text xml:space="preserve">{escape(text)}</text>\n'
        "    </revision>\n"
        "  </page>\n"
    )


def write_dump(directory: Path, blocks=BLOCKS) -> tuple[Path, Path, list[int]]:
    """Write archive + listing; returns their paths and each block's start offset."""
    archive = directory / "test-pages-articles-multistream.xml.bz2"
    listing = directory / "test-pages-articles-multistream-index.txt"

    offsets: list[int] = []
    lines: list[str] = []
    position = 0
    with open(archive, "wb") as fh:
        for n, pages in enumerate(blocks):
            xml = "".join(page_xml(*page) for page in pages)
            if n == 0:
                xml = PREAMBLE + xml
            if n == len(blocks) - 1:
                xml += CLOSING
            data = bz2.compress(xml.encode("utf-8"))
            fh.write(data)
            offsets.append(position)
            lines.extend(f"{position}:{page_id}:{title}" for page_id, title, _ in pages)
            position += len(data)

    lines.append("0:99:Category:Letters")
    listing.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return archive, listing, offsets


# -----------------------------------------------------------------------------

@pytest.fixture
def dump(tmp_path):
    """``(archive_path, listing_path, block_offsets)`` for the test dump."""
    return write_dump(tmp_path)


@pytest.fixture
def wiki(dump) -> WikiService:
    archive, listing, _ = dump
    return WikiService(build_index(read_index_lines(listing)), archive, random_count=3)


@pytest.fixture
def app(wiki):
    app = create_app()
    app.state.wiki = wiki
    return app


@pytest_asyncio.fixture(scope="function")
async def client(app):
    """HTTP test client wired to the temporary dump."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def empty_client():
    """Client for an app whose index never loaded."""
    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -----------------------------------------------------------------------------
