from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Protocol

from elasticsearch import ApiError, Elasticsearch, TransportError

from rules_qa.settings import settings

logger = logging.getLogger(__name__)


class SearchBackendError(RuntimeError):
    """Raised when the search backend cannot be reached or rejects a request."""


@dataclass(frozen=True)
class RuleDocument:
    article: str
    title: str
    content: str
    category: str = "general"
    keywords: FrozenSet[str] = field(default_factory=frozenset)
    indexed_at: Optional[datetime] = None

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> "RuleDocument":
        indexed_at = source.get("indexed_at")
        if isinstance(indexed_at, str):
            try:
                indexed_at = datetime.fromisoformat(indexed_at.replace("Z", "+00:00"))
            except ValueError:
                indexed_at = None
        keywords = source.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [keywords]
        return cls(
            article=str(source.get("article", "")),
            title=source.get("title") or "",
            content=source.get("content") or "",
            category=source.get("category") or "general",
            keywords=frozenset(keywords),
            indexed_at=indexed_at if isinstance(indexed_at, datetime) else None,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "article": self.article,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "keywords": sorted(self.keywords),
            "indexed_at": self.indexed_at.isoformat() if self.indexed_at else None,
        }


@dataclass(frozen=True)
class DefinitionDocument:
    title: str
    word: str
    definition: str


@dataclass(frozen=True)
class SearchHit:
    document: RuleDocument
    score: float
    highlight: Optional[str] = None


@dataclass(frozen=True)
class SearchResponse:
    hits: List[SearchHit]
    total: int


class SearchBackend(Protocol):
    def search(self, index: str, body: Mapping[str, Any], *, size: int) -> SearchResponse:
        ...

    def count(self, index: str) -> int:
        ...

    def ping(self) -> bool:
        ...


class ElasticsearchBackend:
    def __init__(self, client: Elasticsearch) -> None:
        self._client = client

    @classmethod
    def from_settings(cls) -> "ElasticsearchBackend":
        if not settings.elasticsearch_host:
            raise SearchBackendError("ELASTICSEARCH_HOST is not configured.")
        client = Elasticsearch(
            settings.elasticsearch_host,
            api_key=settings.elasticsearch_api_key,
            request_timeout=settings.search_timeout_seconds,
            max_retries=max(0, settings.search_max_retries),
            retry_on_timeout=True,
        )
        return cls(client)

    def search(self, index: str, body: Mapping[str, Any], *, size: int) -> SearchResponse:
        try:
            response = self._client.search(index=index, size=size, **dict(body))
        except (ApiError, TransportError) as exc:
            raise SearchBackendError(f"Search on '{index}' failed: {exc}") from exc

        hits_section = response["hits"]
        hits = [hit_from_raw(raw) for raw in hits_section.get("hits", [])]
        total = hits_section.get("total") or {}
        total_value = total.get("value", len(hits)) if isinstance(total, Mapping) else int(total)
        return SearchResponse(hits=hits, total=int(total_value))

    def count(self, index: str) -> int:
        try:
            response = self._client.count(index=index)
        except (ApiError, TransportError) as exc:
            raise SearchBackendError(f"Count on '{index}' failed: {exc}") from exc
        return int(response["count"])

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except (ApiError, TransportError) as exc:
            logger.warning("search.elasticsearch.ping_failed", extra={"error": str(exc)})
            return False


def hit_from_raw(raw: Mapping[str, Any]) -> SearchHit:
    highlight = raw.get("highlight") or {}
    fragments = highlight.get("content") or []
    return SearchHit(
        document=RuleDocument.from_source(raw.get("_source") or {}),
        score=float(raw.get("_score") or 0.0),
        highlight=fragments[0] if fragments else None,
    )


_backend: Optional[SearchBackend] = None


def get_search_backend() -> SearchBackend:
    global _backend
    if _backend is None:
        if settings.search_backend == "memory":
            from .memory import InMemorySearchBackend

            _backend = InMemorySearchBackend.from_settings()
        else:
            _backend = ElasticsearchBackend.from_settings()
        logger.info("search.backend.ready", extra={"backend": settings.search_backend})
    return _backend
