#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for pulling compressed blocks and pages out of a multistream dump."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import bz2
import threading

import pytest

from wikidump.core.errors import (
    ArchiveNotFound, DecompressError, InvalidRange, PageNotFound, ParseError,
)
from wikidump.services.extractor import extract_range, find_page, iter_pages, locate_page


# =============================================================================
# extract_range
# =============================================================================

def test_first_block_holds_preamble_and_pages(dump):
    archive, _, offsets = dump
    block = extract_range(archive, offsets[0], offsets[1])
    assert b"<siteinfo>" in block
    assert b"<title>Alpha</title>" in block
    assert b"<title>Gamma</title>" not in block


def test_middle_block_only(dump):
    archive, _, offsets = dump
    block = extract_range(archive, offsets[1], offsets[2])
    assert b"<title>Gamma</title>" in block
    assert b"<title>gamma</title>" in block
    assert b"Alpha</title>" not in block


def test_unbounded_last_block(dump):
    archive, _, offsets = dump
    block = extract_range(archive, offsets[2])
    assert b"<title>Delta</title>" in block
    assert block.rstrip().endswith(b"</mediawiki>")


def test_zero_end_means_read_to_stream_end(dump):
    archive, _, offsets = dump
    # (0, 0) decompresses only the first stream, never the whole file
    assert extract_range(archive, 0, 0) == extract_range(archive, offsets[0], offsets[1])


def test_bounded_read_past_eof_is_fine(dump):
    archive, _, offsets = dump
    size = archive.stat().st_size
    assert b"Delta" in extract_range(archive, offsets[2], size + 10_000)


def test_end_before_start_is_invalid(dump):
    archive, _, offsets = dump
    with pytest.raises(InvalidRange) as exc_info:
        extract_range(archive, offsets[1], offsets[1])
    assert exc_info.value.status_code == 400


def test_end_strictly_before_start_is_invalid(dump):
    archive, _, offsets = dump
    with pytest.raises(InvalidRange):
        extract_range(archive, offsets[2], offsets[1])


def test_negative_start_is_invalid(dump):
    archive, _, _ = dump
    with pytest.raises(InvalidRange):
        extract_range(archive, -1)


def test_missing_archive(tmp_path):
    with pytest.raises(ArchiveNotFound):
        extract_range(tmp_path / "missing.xml.bz2", 0)


def test_range_cut_mid_stream(dump):
    archive, _, offsets = dump
    with pytest.raises(DecompressError, match="truncated"):
        extract_range(archive, offsets[0], offsets[0] + 20)


def test_offset_not_at_stream_start(dump):
    archive, _, offsets = dump
    with pytest.raises(DecompressError):
        extract_range(archive, offsets[1] + 3, offsets[2])


def test_start_past_eof(dump):
    archive, _, _ = dump
    with pytest.raises(DecompressError, match="empty range"):
        extract_range(archive, archive.stat().st_size + 100)


def test_concurrent_reads_do_not_interfere(dump):
    archive, _, offsets = dump
    results: dict[int, bytes] = {}

    def read(n: int) -> None:
        end = offsets[n + 1] if n + 1 < len(offsets) else None
        results[n] = extract_range(archive, offsets[n], end)

    threads = [threading.Thread(target=read, args=(n % 3,)) for n in range(9)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert b"Alpha" in results[0]
    assert b"Gamma" in results[1]
    assert b"Delta" in results[2]


# =============================================================================
# Page scanning
# =============================================================================

def test_iter_pages_in_document_order(dump):
    archive, _, offsets = dump
    pages = list(iter_pages(extract_range(archive, offsets[0], offsets[1])))
    assert [(p.id, p.title) for p in pages] == [(10, "Alpha"), (11, "Beta")]


def test_page_text_is_unescaped(dump):
    archive, _, offsets = dump
    text = locate_page(extract_range(archive, offsets[2]), 14)
    assert text == "Delta & <i>friends</i> live in the last block."


def test_redirect_element_is_read(dump):
    archive, _, offsets = dump
    page = find_page(extract_range(archive, offsets[1], offsets[2]), 12)
    assert page.redirect == "Alpha"
    assert page.text == "#REDIRECT [[Alpha#History]]"


def test_page_not_in_block(dump):
    archive, _, offsets = dump
    with pytest.raises(PageNotFound) as exc_info:
        find_page(extract_range(archive, offsets[1], offsets[2]), 10)
    assert exc_info.value.status_code == 404


def test_block_without_pages():
    assert list(iter_pages(b"<mediawiki><siteinfo/></mediawiki>")) == []


def test_revision_id_is_not_page_id():
    xml = (
        b"<page><title>T</title><id>5</id>"
        b"<revision><id>999</id><text>first</text></revision>"
        b"<revision><id>1000</id><text>current</text></revision></page>"
    )
    page = find_page(xml, 5)
    assert page.text == "current"


def test_missing_page_id():
    with pytest.raises(ParseError):
        list(iter_pages(b"<page><title>T</title><revision><text>x</text></revision></page>"))


def test_malformed_xml():
    with pytest.raises(ParseError):
        list(iter_pages(b"<page><title>T</title><id>1</id><text>x</page>"))


def test_large_page_is_fed_in_chunks():
    body = "word " * 40_000
    xml = f"<page><title>Big</title><id>1</id><revision><text>{body}</text></revision></page>"
    data = bz2.decompress(bz2.compress(xml.encode()))
    assert locate_page(data, 1) == body


# -----------------------------------------------------------------------------
