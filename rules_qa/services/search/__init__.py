from .client import (
    DefinitionDocument,
    ElasticsearchBackend,
    RuleDocument,
    SearchBackend,
    SearchBackendError,
    SearchHit,
    SearchResponse,
    get_search_backend,
)
from .memory import InMemorySearchBackend

__all__ = [
    "DefinitionDocument",
    "ElasticsearchBackend",
    "InMemorySearchBackend",
    "RuleDocument",
    "SearchBackend",
    "SearchBackendError",
    "SearchHit",
    "SearchResponse",
    "get_search_backend",
]
