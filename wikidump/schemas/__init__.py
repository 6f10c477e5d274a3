from wikidump.schemas.schemas import (
    HealthResponse,
    IndexEntryResponse, SearchResult,
    ArticleResponse, RawArticleResponse,
    RenderResponse,
)

__all__ = [
    "HealthResponse",
    "IndexEntryResponse", "SearchResult",
    "ArticleResponse", "RawArticleResponse",
    "RenderResponse",
]
