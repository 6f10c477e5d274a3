#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Tests for building, snapshotting and querying the offset index."""
# -----------------------------------------------------------------------------

from __future__ import annotations

import bz2
import gzip
import json
import random

import pytest

from wikidump.core.errors import CacheLoadFailed, IndexSourceNotFound, TitleNotFound
from wikidump.services import index as offset_index
from wikidump.services.index import (
    SNAPSHOT_VERSION, IndexTable, OffsetPair, build_index, build_or_load_index,
    load_snapshot, lookup, parse_index_line, read_index_lines, sample, save_snapshot, search,
)


LISTING = [
    "600:7:Zeta\n",
    "100:1:Alpha\n",
    "100:2:Star Wars: Episode IV\n",
    "350:3:Beta\n",
    "100:4:alpha\n",
    "350:5:Category:Greek letters\n",
    "not a line\n",
    "350:6:Gamma\n",
]


@pytest.fixture
def table() -> IndexTable:
    return build_index(LISTING)


# =============================================================================
# Line parsing
# =============================================================================

def test_parse_line_keeps_colons_in_title():
    assert parse_index_line("100:2:Star Wars: Episode IV\n") == (100, 2, "Star Wars: Episode IV")


def test_parse_line_missing_separator():
    assert parse_index_line("100:2") is None
    assert parse_index_line("garbage") is None


def test_parse_line_non_numeric_fields_are_zero():
    assert parse_index_line("abc:xyz:Title") == (0, 0, "Title")


def test_read_index_lines_decompresses_bz2(tmp_path):
    path = tmp_path / "index.txt.bz2"
    path.write_bytes(bz2.compress(b"1:2:One\n3:4:Two\n"))
    assert [line.strip() for line in read_index_lines(path)] == ["1:2:One", "3:4:Two"]


# =============================================================================
# Build
# =============================================================================

def test_entries_sorted_by_start(table):
    starts = [e.offsets.start for e in table]
    assert starts == sorted(starts)


def test_ties_keep_listing_order(table):
    assert [e.title for e in table if e.offsets.start == 100] == [
        "Alpha", "Star Wars: Episode IV", "alpha",
    ]


def test_block_end_is_next_block_start(table):
    ends = {e.offsets.start: e.offsets.end for e in table}
    assert ends == {100: 350, 350: 600, 600: None}


def test_last_block_is_unbounded(table):
    assert table[len(table) - 1].offsets == OffsetPair(600, None)
    assert not table[len(table) - 1].offsets.bounded


def test_entries_in_one_block_share_a_pair(table):
    alpha, star_wars, lower = (e for e in table if e.offsets.start == 100)
    assert alpha.offsets is star_wars.offsets is lower.offsets
    assert len(table.pairs) == 3


def test_stats_count_malformed_and_skipped(table):
    assert table.stats.lines == len(LISTING)
    assert table.stats.malformed == 1
    assert table.stats.skipped_namespace == 1
    assert len(table) == 6


def test_namespace_skip_can_be_disabled():
    table = build_index(LISTING, skip_prefixes=())
    assert any(e.title == "Category:Greek letters" for e in table)


def test_empty_listing():
    table = build_index([])
    assert len(table) == 0
    assert table.pairs == ()


# =============================================================================
# Snapshot
# =============================================================================

def test_snapshot_round_trip(tmp_path, table):
    path = tmp_path / "index.cache"
    save_snapshot(table, path)
    loaded = load_snapshot(path)
    assert loaded == table
    # Interning survives the trip
    first, second = loaded[0], loaded[1]
    assert first.offsets is second.offsets


def test_snapshot_leaves_no_temp_file(tmp_path, table):
    save_snapshot(table, tmp_path / "index.cache")
    assert [p.name for p in tmp_path.iterdir()] == ["index.cache"]


def test_snapshot_missing_file(tmp_path):
    with pytest.raises(CacheLoadFailed):
        load_snapshot(tmp_path / "nope.cache")


def test_snapshot_corrupt_file(tmp_path):
    path = tmp_path / "index.cache"
    path.write_bytes(b"definitely not gzip")
    with pytest.raises(CacheLoadFailed):
        load_snapshot(path)


def test_snapshot_schema_mismatch(tmp_path):
    path = tmp_path / "index.cache"
    with gzip.open(path, "wt", encoding="utf-8") as fh:
        fh.write(json.dumps({"version": SNAPSHOT_VERSION, "entries": "oops"}))
    with pytest.raises(CacheLoadFailed):
        load_snapshot(path)


def test_snapshot_version_mismatch(tmp_path, table):
    path = tmp_path / "index.cache"
    save_snapshot(table, path)
    with gzip.open(path, "rt", encoding="utf-8") as fh:
        data = json.load(fh)
    data["version"] = SNAPSHOT_VERSION + 1
    with gzip.open(path, "wt", encoding="utf-8") as fh:
        json.dump(data, fh)
    with pytest.raises(CacheLoadFailed, match="version"):
        load_snapshot(path)


def test_snapshot_dangling_pair_reference(tmp_path):
    path = tmp_path / "index.cache"
    with gzip.open(path, "wt", encoding="utf-8") as fh:
        json.dump({"version": SNAPSHOT_VERSION, "pairs": [[0, None]], "entries": [[3, 1, "X"]]}, fh)
    with pytest.raises(CacheLoadFailed, match="dangling"):
        load_snapshot(path)


def test_stale_snapshot_is_rejected(tmp_path, table):
    listing = tmp_path / "index.txt"
    listing.write_text("".join(LISTING), encoding="utf-8")
    path = tmp_path / "index.cache"
    save_snapshot(table, path, source=listing)

    listing.write_text("".join(LISTING) + "900:8:Eta\n", encoding="utf-8")
    with pytest.raises(CacheLoadFailed, match="stale"):
        load_snapshot(path, source=listing)


# =============================================================================
# Build or load
# =============================================================================

def test_build_or_load_writes_then_reuses_snapshot(tmp_path, monkeypatch):
    listing = tmp_path / "index.txt"
    listing.write_text("".join(LISTING), encoding="utf-8")

    first = build_or_load_index(listing)
    cache = tmp_path / "index.txt.cache"
    assert cache.exists()

    def fail(*args, **kwargs):
        raise AssertionError("should load the snapshot instead of rebuilding")
    monkeypatch.setattr(offset_index, "build_index", fail)

    assert build_or_load_index(listing) == first


def test_build_or_load_rebuilds_over_bad_snapshot(tmp_path):
    listing = tmp_path / "index.txt"
    listing.write_text("".join(LISTING), encoding="utf-8")
    cache = tmp_path / "custom.cache"
    cache.write_bytes(b"junk")

    table = build_or_load_index(listing, cache)
    assert len(table) == 6
    assert load_snapshot(cache) == table


def test_build_or_load_missing_listing(tmp_path):
    with pytest.raises(IndexSourceNotFound):
        build_or_load_index(tmp_path / "missing.txt")


def test_build_or_load_survives_unwritable_cache(tmp_path):
    listing = tmp_path / "index.txt"
    listing.write_text("".join(LISTING), encoding="utf-8")
    cache = tmp_path / "no-such-dir" / "index.cache"
    assert len(build_or_load_index(listing, cache)) == 6
    assert not cache.exists()


# =============================================================================
# Queries
# =============================================================================

def test_lookup_exact(table):
    assert lookup(table, "Beta").page_id == 3


def test_lookup_underscores(table):
    assert lookup(table, "Star_Wars:_Episode_IV").page_id == 2


def test_lookup_case_sensitive_match_wins(table):
    assert lookup(table, "alpha").page_id == 4
    assert lookup(table, "Alpha").page_id == 1


def test_lookup_case_insensitive_fallback(table):
    assert lookup(table, "GAMMA").page_id == 6
    # Two case variants exist; the first in index order wins.
    assert lookup(table, "ALPHA").page_id == 1


def test_lookup_missing(table):
    with pytest.raises(TitleNotFound) as exc_info:
        lookup(table, "Omega")
    assert exc_info.value.status_code == 404


def test_search_is_case_insensitive_substring(table):
    assert [e.title for e in search(table, "ALP")] == ["Alpha", "alpha"]


def test_search_limit(table):
    assert len(search(table, "a", limit=2)) == 2


def test_search_empty_query(table):
    assert search(table, "") == []


def test_sample_distinct(table):
    picked = sample(table, 4, rng=random.Random(7))
    assert len(picked) == 4
    assert len({e.page_id for e in picked}) == 4


def test_sample_larger_than_table(table):
    assert sorted(e.page_id for e in sample(table, 50)) == [1, 2, 3, 4, 6, 7]


def test_sample_zero(table):
    assert sample(table, 0) == []


# -----------------------------------------------------------------------------
