#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Application configuration.

All values can be overridden via environment variables or a .env file.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from wikidump._version import __version__ as _pkg_version


# -----------------------------------------------------------------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────

    app_name: str = "PyWikiDump"
    app_version: str = _pkg_version
    site_name: str = "PyWikiDump"
    base_url: str = ""
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    # ── Dump files ─────────────────────────────────────────────────────────

    archive_path: Path = Path("./data/enwiki-latest-pages-articles-multistream.xml.bz2")
    index_path: Path = Path("./data/enwiki-latest-pages-articles-multistream-index.txt.bz2")
    index_cache_path: Optional[Path] = None

    # Titles in these namespaces are left out of the index
    skip_prefixes: list[str] = [
        "File:", "Category:", "Wikipedia:", "Draft:", "Portal:", "Template:",
    ]

    # ── Browsing ───────────────────────────────────────────────────────────

    random_count: int = 25
    search_limit: int = 100

    # ── Rendering ──────────────────────────────────────────────────────────

    max_template_depth: int = 40

    # ── CORS ───────────────────────────────────────────────────────────────

    cors_origins: list[str] = [
        "http://localhost:8000",
        "http://localhost:3000",
    ]

    @property
    def index_cache_resolved(self) -> Path:
        if self.index_cache_path is not None:
            return self.index_cache_path
        return self.index_path.with_name(self.index_path.name + ".cache")


# -----------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return Settings()


# -----------------------------------------------------------------------------
