#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Range extractor
===============
Random access into a multistream bzip2 dump.

A multistream dump is many independent bzip2 streams concatenated into one
file.  Given the byte offset where one stream starts (from the offset index)
we can seek there, decompress that stream alone, and get back an XML
fragment holding a batch of ``<page>`` elements:

    <page>
      <title>Anarchism</title>
      <ns>0</ns>
      <id>12</id>
      <revision> ... <text>wikitext…</text> </revision>
    </page>

The first stream also carries the ``<mediawiki>``/``<siteinfo>`` preamble
and the last one the closing ``</mediawiki>``, so the page scanner only
parses the span between the first ``<page>`` and the last ``</page>``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import bz2
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from wikidump.core.errors import (
    ArchiveNotFound, DecompressError, InvalidRange, PageNotFound, ParseError,
)


log = logging.getLogger(__name__)

_READ_CHUNK = 1 << 20     # unbounded reads stream the file in 1 MiB pieces
_FEED_CHUNK = 64 * 1024   # bytes handed to the XML pull parser per feed()

_PAGE_START_RE = re.compile(rb"<page[\s>]")
_PAGE_END = b"</page>"


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Page:
    id: int
    title: str
    text: str
    redirect: Optional[str] = None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Decompression
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def extract_range(archive_path: Path, start: int, end: Optional[int] = None) -> bytes:
    """Decompress the single bzip2 stream that begins at byte *start*.

    *end* is exclusive.  ``None`` or ``0`` reads until the stream ends, which
    is how the last block of the dump is addressed.  A bounded read that
    runs past EOF is not an error; a stream that is cut short is.

    Every call opens its own file handle, so concurrent calls never share
    file position.
    """
    if end == 0:
        end = None
    if start < 0 or (end is not None and end <= start):
        raise InvalidRange(start, end)

    path = Path(archive_path)
    if not path.is_file():
        raise ArchiveNotFound(str(path))

    decompressor = bz2.BZ2Decompressor()
    chunks: list[bytes] = []
    consumed = 0

    with open(path, "rb") as fh:
        fh.seek(start)
        try:
            if end is not None:
                compressed = fh.read(end - start)
                consumed = len(compressed)
                chunks.append(decompressor.decompress(compressed))
            else:
                while not decompressor.eof:
                    compressed = fh.read(_READ_CHUNK)
                    if not compressed:
                        break
                    consumed += len(compressed)
                    chunks.append(decompressor.decompress(compressed))
        except OSError as exc:
            # bz2 reports corrupt input as OSError("Invalid data stream")
            raise DecompressError(str(path), start, str(exc)) from exc

    if not decompressor.eof:
        reason = "empty range" if consumed == 0 else "stream is truncated"
        raise DecompressError(str(path), start, reason)

    if decompressor.unused_data:
        log.debug(
            "Ignoring %d bytes after end of stream at offset %d in %s",
            len(decompressor.unused_data), start, path,
        )
    return b"".join(chunks)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Page scanning
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _local(tag: str) -> str:
    """Strip an ``{namespace}`` prefix from an element tag."""
    return tag.rpartition("}")[2]


def _decode_page(elem: ET.Element) -> Page:
    title = ""
    id_text: Optional[str] = None
    text = ""
    redirect: Optional[str] = None

    for child in elem:
        name = _local(child.tag)
        if name == "title":
            title = child.text or ""
        elif name == "id" and id_text is None:
            id_text = (child.text or "").strip()
        elif name == "redirect":
            redirect = child.get("title")
        elif name == "revision":
            # Full-history dumps hold several revisions; the last one is current.
            for field in child:
                if _local(field.tag) == "text":
                    text = field.text or ""

    if id_text is None:
        raise ParseError(f"page '{title}' has no <id>")
    try:
        page_id = int(id_text)
    except ValueError:
        raise ParseError(f"page '{title}' has non-numeric id {id_text!r}") from None
    return Page(id=page_id, title=title, text=text, redirect=redirect)


def _drain(parser: ET.XMLPullParser) -> Iterator[Page]:
    for _event, elem in parser.read_events():
        if _local(elem.tag) == "page":
            page = _decode_page(elem)
            elem.clear()
            yield page


def iter_pages(buffer: bytes) -> Iterator[Page]:
    """Yield every ``<page>`` in a decompressed block, in document order."""
    first = _PAGE_START_RE.search(buffer)
    if first is None:
        return
    last = buffer.rfind(_PAGE_END)
    if last < first.start():
        raise ParseError("unterminated <page> element")
    stop = last + len(_PAGE_END)

    parser = ET.XMLPullParser(events=("end",))
    try:
        parser.feed(b"<pages>")
        for offset in range(first.start(), stop, _FEED_CHUNK):
            parser.feed(buffer[offset:min(offset + _FEED_CHUNK, stop)])
            yield from _drain(parser)
        parser.feed(b"</pages>")
        parser.close()
        yield from _drain(parser)
    except ET.ParseError as exc:
        raise ParseError(str(exc)) from exc


def find_page(buffer: bytes, page_id: int) -> Page:
    """Return the page with *page_id* from a decompressed block."""
    for page in iter_pages(buffer):
        if page.id == page_id:
            return page
    raise PageNotFound(page_id)


def locate_page(buffer: bytes, page_id: int) -> str:
    """Return the wikitext of the page with *page_id* from a decompressed block."""
    return find_page(buffer, page_id).text


# -----------------------------------------------------------------------------
