from .rules import (
    ArticleOut,
    AskRequest,
    AskResponse,
    ErrorResponse,
    ReferenceOut,
    SearchRequest,
    SearchResponseOut,
    SearchResult,
    StatsResponse,
)

__all__ = [
    "ArticleOut",
    "AskRequest",
    "AskResponse",
    "ErrorResponse",
    "ReferenceOut",
    "SearchRequest",
    "SearchResponseOut",
    "SearchResult",
    "StatsResponse",
]
