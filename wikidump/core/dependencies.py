#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Shared application state and the FastAPI dependency that hands it out.

The ``WikiService`` is built once in the application lifespan and stored on
``app.state.wiki``.  If building it failed the app still serves, and every
article request answers 503 until the process is restarted.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request

from wikidump.core.config import Settings
from wikidump.core.errors import IndexNotLoaded, WikiError
from wikidump.services.articles import WikiService


log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

def load_wiki(app: FastAPI, settings: Settings) -> Optional[WikiService]:
    """Build the service for *settings* and publish it on ``app.state``."""
    try:
        wiki = WikiService.from_settings(settings)
    except WikiError as exc:
        log.error("Wiki unavailable: %s", exc.detail)
        wiki = None
    else:
        log.info(
            "Serving %d articles in %d blocks from %s",
            len(wiki.index), len(wiki.index.pairs), wiki.archive_path,
        )
    app.state.wiki = wiki
    return wiki


# -----------------------------------------------------------------------------

def get_wiki(request: Request) -> WikiService:
    """FastAPI dependency returning the shared ``WikiService``."""
    wiki = getattr(request.app.state, "wiki", None)
    if wiki is None:
        raise IndexNotLoaded()
    return wiki


# -----------------------------------------------------------------------------
