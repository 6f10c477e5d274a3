#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Offset index
============
Maps article titles to the compressed block that holds them inside a
multistream bzip2 dump.

The dump ships a listing with one ``<start-byte-offset>:<page-id>:<title>``
line per article.  Many articles share one compressed block, so the table
keeps one ``OffsetPair`` per distinct block and every entry in that block
points at the same object.

Building from a full English listing takes minutes, so the built table is
written to a gzip-compressed JSON snapshot next to the listing and loaded on
the next start.  A snapshot that cannot be used for any reason is treated as
absent and the table is rebuilt.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import bz2
import gzip
import logging
import os
import random
from dataclasses import dataclass, field
from itertools import groupby, islice
from operator import itemgetter
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from pydantic import BaseModel, ValidationError

from wikidump.core.errors import CacheLoadFailed, IndexSourceNotFound, TitleNotFound


log = logging.getLogger(__name__)

# Non-article namespaces left out of the index by default
RESERVED_PREFIXES: tuple[str, ...] = (
    "File:", "Category:", "Wikipedia:", "Draft:", "Portal:", "Template:",
)

# Bump whenever the snapshot layout changes; older snapshots are rebuilt.
SNAPSHOT_VERSION = 1

_PROGRESS_EVERY = 1_000_000


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Types
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True, slots=True)
class OffsetPair:
    """Byte range of one compressed block.  ``end`` is exclusive; ``None`` reads to EOF."""
    start: int
    end: Optional[int] = None

    @property
    def bounded(self) -> bool:
        return self.end is not None


@dataclass(frozen=True, slots=True)
class IndexEntry:
    offsets: OffsetPair
    page_id: int
    title: str


@dataclass
class BuildStats:
    lines: int = 0
    malformed: int = 0
    skipped_namespace: int = 0


# -----------------------------------------------------------------------------

class IndexTable:
    """Sorted, read-only sequence of ``IndexEntry``.

    Nothing mutates a table after construction, so any number of threads may
    query it at once.
    """

    __slots__ = ("_entries", "_pairs", "_by_title", "_by_folded", "stats")

    def __init__(self, entries: Sequence[IndexEntry], stats: Optional[BuildStats] = None) -> None:
        self._entries: tuple[IndexEntry, ...] = tuple(entries)
        # Distinct pairs in first-seen order; equal pairs collapse to one key.
        self._pairs: tuple[OffsetPair, ...] = tuple(dict.fromkeys(e.offsets for e in self._entries))
        self._by_title: dict[str, IndexEntry] = {}
        self._by_folded: dict[str, IndexEntry] = {}
        for entry in self._entries:
            self._by_title.setdefault(entry.title, entry)
            self._by_folded.setdefault(entry.title.casefold(), entry)
        self.stats = stats or BuildStats(lines=len(self._entries))

    @property
    def entries(self) -> tuple[IndexEntry, ...]:
        return self._entries

    @property
    def pairs(self) -> tuple[OffsetPair, ...]:
        return self._pairs

    def first_titled(self, title: str) -> Optional[IndexEntry]:
        """First entry (in index order) whose title equals *title* exactly."""
        return self._by_title.get(title)

    def first_folded(self, title: str) -> Optional[IndexEntry]:
        """First entry whose title matches *title* ignoring case."""
        return self._by_folded.get(title.casefold())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self._entries)

    def __getitem__(self, position: int) -> IndexEntry:
        return self._entries[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexTable):
            return NotImplemented
        return self._entries == other._entries

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<IndexTable entries={len(self._entries)} blocks={len(self._pairs)}>"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Build
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def parse_index_line(line: str) -> Optional[tuple[int, int, str]]:
    """Split ``start:page_id:title``.  Returns None when a separator is missing.

    The title is everything after the second colon, so titles such as
    ``Star Wars: Episode IV`` survive intact.  Non-numeric offsets and ids
    parse as 0.
    """
    line = line.rstrip("\r\n")
    offset_text, sep, rest = line.partition(":")
    if not sep:
        return None
    page_id_text, sep, title = rest.partition(":")
    if not sep:
        return None
    return _to_int(offset_text), _to_int(page_id_text), title


def read_index_lines(path: Path) -> Iterator[str]:
    """Yield lines of the listing, decompressing ``.bz2`` listings on the fly."""
    path = Path(path)
    if path.suffix == ".bz2":
        fh = bz2.open(path, "rt", encoding="utf-8", errors="replace")
    else:
        fh = open(path, "rt", encoding="utf-8", errors="replace")
    with fh:
        yield from fh


def build_index(
    lines: Iterable[str],
    skip_prefixes: Iterable[str] = RESERVED_PREFIXES,
) -> IndexTable:
    """Build a table from listing lines.

    Entries are sorted by block start.  Entries sharing a start form one
    group; the group's end is the start of the next group, and the last
    group is unbounded.
    """
    prefixes = tuple(skip_prefixes)
    stats = BuildStats()
    rows: list[tuple[int, int, str]] = []

    for line in lines:
        stats.lines += 1
        if stats.lines % _PROGRESS_EVERY == 0:
            log.info("Index build: %d lines read", stats.lines)
        parsed = parse_index_line(line)
        if parsed is None:
            stats.malformed += 1
            continue
        if prefixes and parsed[2].startswith(prefixes):
            stats.skipped_namespace += 1
            continue
        rows.append(parsed)

    rows.sort(key=itemgetter(0))   # stable: ties keep listing order

    groups = [(start, list(members)) for start, members in groupby(rows, key=itemgetter(0))]
    interned: dict[tuple[int, Optional[int]], OffsetPair] = {}
    entries: list[IndexEntry] = []

    for position, (start, members) in enumerate(groups):
        end = groups[position + 1][0] if position + 1 < len(groups) else None
        pair = interned.setdefault((start, end), OffsetPair(start, end))
        entries.extend(IndexEntry(pair, page_id, title) for _, page_id, title in members)

    if stats.malformed:
        log.warning("Index build skipped %d malformed lines", stats.malformed)
    log.info(
        "Index built with %d entries in %d blocks (%d lines, %d outside article namespaces)",
        len(entries), len(interned), stats.lines, stats.skipped_namespace,
    )
    return IndexTable(entries, stats)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Snapshot
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class IndexSnapshot(BaseModel):
    version: int
    source_size: Optional[int] = None
    source_mtime_ns: Optional[int] = None
    # Each distinct block once; entries refer to it by position.
    pairs: list[tuple[int, Optional[int]]]
    entries: list[tuple[int, int, str]]


def _fingerprint(source: Optional[Path]) -> tuple[Optional[int], Optional[int]]:
    if source is None or not source.exists():
        return None, None
    st = source.stat()
    return st.st_size, st.st_mtime_ns


def save_snapshot(table: IndexTable, path: Path, source: Optional[Path] = None) -> None:
    """Write *table* to *path*.  Raises OSError on failure; never leaves a partial file."""
    path = Path(path)
    position = {pair: i for i, pair in enumerate(table.pairs)}
    size, mtime_ns = _fingerprint(Path(source) if source is not None else None)
    snapshot = IndexSnapshot(
        version=SNAPSHOT_VERSION,
        source_size=size,
        source_mtime_ns=mtime_ns,
        pairs=[(pair.start, pair.end) for pair in table.pairs],
        entries=[(position[e.offsets], e.page_id, e.title) for e in table],
    )

    tmp = path.with_name(path.name + ".tmp")
    try:
        with gzip.open(tmp, "wt", encoding="utf-8") as fh:
            fh.write(snapshot.model_dump_json())
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def load_snapshot(path: Path, source: Optional[Path] = None) -> IndexTable:
    """Load a snapshot written by ``save_snapshot``.

    Every failure mode raises ``CacheLoadFailed``.  When *source* exists its
    size and mtime must match the ones recorded at save time.
    """
    path = Path(path)
    try:
        with gzip.open(path, "rb") as fh:
            raw = fh.read()
    except (OSError, EOFError) as exc:
        raise CacheLoadFailed(str(path), str(exc) or type(exc).__name__) from exc

    try:
        snapshot = IndexSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        raise CacheLoadFailed(str(path), f"schema mismatch ({exc.error_count()} errors)") from exc

    if snapshot.version != SNAPSHOT_VERSION:
        raise CacheLoadFailed(
            str(path), f"version {snapshot.version}, expected {SNAPSHOT_VERSION}"
        )

    if source is not None and Path(source).exists():
        if (snapshot.source_size, snapshot.source_mtime_ns) != _fingerprint(Path(source)):
            raise CacheLoadFailed(str(path), f"stale, '{source}' has changed")

    pairs = [OffsetPair(start, end) for start, end in snapshot.pairs]
    entries: list[IndexEntry] = []
    previous_start: Optional[int] = None
    for pair_index, page_id, title in snapshot.entries:
        if not 0 <= pair_index < len(pairs):
            raise CacheLoadFailed(str(path), f"dangling block reference {pair_index}")
        pair = pairs[pair_index]
        if previous_start is not None and pair.start < previous_start:
            raise CacheLoadFailed(str(path), "entries out of order")
        previous_start = pair.start
        entries.append(IndexEntry(pair, page_id, title))

    return IndexTable(entries)


# -----------------------------------------------------------------------------

def build_or_load_index(
    path: Path,
    cache_path: Optional[Path] = None,
    skip_prefixes: Iterable[str] = RESERVED_PREFIXES,
) -> IndexTable:
    """Load the snapshot for *path*, or rebuild from the listing and re-snapshot."""
    path = Path(path)
    cache_path = Path(cache_path) if cache_path is not None else path.with_name(path.name + ".cache")

    try:
        table = load_snapshot(cache_path, source=path)
    except CacheLoadFailed as exc:
        log.info("%s; rebuilding from %s", exc.detail, path)
    else:
        log.info("Loaded %d entries from snapshot %s", len(table), cache_path)
        return table

    if not path.exists():
        raise IndexSourceNotFound(str(path))

    table = build_index(read_index_lines(path), skip_prefixes)

    try:
        save_snapshot(table, cache_path, source=path)
    except OSError as exc:
        log.warning("Failed to save index snapshot %s: %s", cache_path, exc)
    else:
        log.info("Saved index snapshot %s", cache_path)
    return table


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Queries
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def lookup(table: IndexTable, title: str) -> IndexEntry:
    """Resolve *title* (underscores allowed) to an entry.

    A case-sensitive match always wins over a case-insensitive one; among
    duplicates the first in index order wins.
    """
    wanted = title.replace("_", " ")
    entry = table.first_titled(wanted)
    if entry is not None:
        return entry

    entry = table.first_folded(wanted)
    if entry is not None:
        return entry
    raise TitleNotFound(wanted)


def search(table: IndexTable, query: str, limit: Optional[int] = None) -> list[IndexEntry]:
    """Case-insensitive substring match over titles, in index order."""
    needle = query.casefold()
    if not needle:
        return []
    matches = (entry for entry in table if needle in entry.title.casefold())
    if limit is not None:
        return list(islice(matches, limit))
    return list(matches)


def sample(table: IndexTable, k: int, rng: Optional[random.Random] = None) -> list[IndexEntry]:
    """*k* distinct entries chosen uniformly; the whole table if it is smaller."""
    if k <= 0:
        return []
    if len(table) <= k:
        return list(table)
    return (rng or random).sample(table.entries, k)


# -----------------------------------------------------------------------------
