#!/usr/bin/env python
"""
Print one article from a multistream dump, as HTML or as raw wikitext.

Usage:
    .venv/bin/python scripts/render_article.py <archive.xml.bz2> <index.txt.bz2> <title> [--raw]

Redirect pages print their target instead of a body.  The index snapshot
next to the listing is reused (or built on first run).

Example:
    .venv/bin/python scripts/render_article.py data/enwiki.xml.bz2 data/enwiki-index.txt.bz2 "Alan Turing"
    .venv/bin/python scripts/render_article.py data/enwiki.xml.bz2 data/enwiki-index.txt.bz2 "Python (programming language)" --raw
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure the package is importable when run from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from wikidump.core.errors import WikiError
from wikidump.services.articles import WikiService
from wikidump.services.index import build_or_load_index


# ── CLI ───────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Print one article from a multistream dump.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("archive", help="Path to the *-pages-articles-multistream.xml.bz2 dump")
    parser.add_argument("index_file", help="Path to the matching index listing")
    parser.add_argument("title", help="Article title (spaces or underscores)")
    parser.add_argument("--raw", action="store_true",
                        help="Print the wikitext instead of HTML")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        wiki = WikiService(build_or_load_index(Path(args.index_file)), Path(args.archive))
        if args.raw:
            print(wiki.fetch_article(args.title).text)
            return
        rendered = wiki.render_article(args.title)
    except WikiError as exc:
        print(f"Error: {exc.detail}", file=sys.stderr)
        sys.exit(1)

    if rendered.redirect:
        print(f"#REDIRECT {rendered.redirect}")
    else:
        print(rendered.html)


if __name__ == "__main__":
    main()
