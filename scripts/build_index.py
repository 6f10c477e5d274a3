#!/usr/bin/env python
"""
Build the offset index snapshot for a multistream dump ahead of time.

Usage:
    .venv/bin/python scripts/build_index.py <index.txt.bz2> [options]

Options:
    --cache PATH         Where to write the snapshot (default: <index>.cache)
    --force              Rebuild even when a current snapshot exists
    --keep-namespaces    Index File:, Category:, Template: ... titles too
    --verbose            Log progress while reading the listing

Building from the full English listing reads tens of millions of lines and
takes a few minutes; the server start-up after that only loads the snapshot.

Example:
    .venv/bin/python scripts/build_index.py data/enwiki-latest-pages-articles-multistream-index.txt.bz2
    .venv/bin/python scripts/build_index.py data/index.txt.bz2 --cache /tmp/index.cache --force
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Ensure the package is importable when run from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from wikidump.core.errors import WikiError
from wikidump.services.index import (
    RESERVED_PREFIXES, build_index, build_or_load_index, read_index_lines, save_snapshot,
)


# ── CLI ───────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Build the offset index snapshot for a multistream dump.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("index_file", help="Path to the *-multistream-index.txt(.bz2) listing")
    parser.add_argument("--cache", default=None, metavar="PATH",
                        help="Snapshot path (default: <index_file>.cache)")
    parser.add_argument("--force", action="store_true",
                        help="Rebuild even if a current snapshot exists")
    parser.add_argument("--keep-namespaces", action="store_true",
                        help="Do not skip non-article namespaces")
    parser.add_argument("--verbose", action="store_true",
                        help="Log build progress")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    index_path = Path(args.index_file).expanduser().resolve()
    if not index_path.exists():
        print(f"Error: file not found: {index_path}", file=sys.stderr)
        sys.exit(1)
    cache_path = Path(args.cache).expanduser() if args.cache else index_path.with_name(index_path.name + ".cache")
    skip = () if args.keep_namespaces else RESERVED_PREFIXES

    started = time.monotonic()
    try:
        if args.force:
            table = build_index(read_index_lines(index_path), skip)
            save_snapshot(table, cache_path, source=index_path)
        else:
            table = build_or_load_index(index_path, cache_path, skip_prefixes=skip)
    except (WikiError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    stats = table.stats
    print(
        f"\nIndex ready in {time.monotonic() - started:.1f}s: "
        f"{len(table)} entries, "
        f"{len(table.pairs)} blocks, "
        f"{stats.malformed} malformed lines, "
        f"{stats.skipped_namespace} non-article titles skipped."
    )
    print(f"Snapshot: {cache_path}")


if __name__ == "__main__":
    main()
