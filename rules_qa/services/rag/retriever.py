from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from rules_qa.services.search import SearchBackend, SearchHit, get_search_backend
from rules_qa.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchPage:
    hits: List[SearchHit]
    total: int


def build_hybrid_query(expanded_query: str, original_query: str) -> Dict[str, Any]:
    return {
        "bool": {
            "should": [
                {
                    "multi_match": {
                        "query": expanded_query,
                        "fields": ["content^4", "title^3", "keywords^2"],
                        "type": "best_fields",
                        "fuzziness": "AUTO",
                    }
                },
                {
                    "multi_match": {
                        "query": original_query,
                        "fields": ["content^2", "title"],
                        "type": "phrase",
                        "boost": 3,
                    }
                },
                {
                    "match": {
                        "keywords": {
                            "query": expanded_query,
                            "boost": 2,
                        }
                    }
                },
            ],
            "minimum_should_match": 1,
        }
    }


def build_keyword_query(query: str) -> Dict[str, Any]:
    return {
        "bool": {
            "should": [
                {
                    "multi_match": {
                        "query": query,
                        "fields": ["content^3", "title^2", "keywords^2"],
                        "type": "best_fields",
                        "fuzziness": "AUTO",
                    }
                },
                {
                    "multi_match": {
                        "query": query,
                        "fields": ["content", "title"],
                        "type": "phrase",
                        "boost": 2,
                    }
                },
            ]
        }
    }


class HybridRetriever:
    def __init__(self, *, backend: Optional[SearchBackend] = None, index: Optional[str] = None) -> None:
        self._backend = backend
        self.index = index or settings.rules_index

    @property
    def backend(self) -> SearchBackend:
        if self._backend is None:
            self._backend = get_search_backend()
        return self._backend

    def retrieve(self, expanded_query: str, original_query: str, *, limit: int) -> List[SearchHit]:
        if limit <= 0:
            logger.info("rag.retriever.skipped", extra={"limit": limit})
            return []

        body = {"query": build_hybrid_query(expanded_query, original_query)}
        response = self.backend.search(self.index, body, size=limit)
        hits = sorted(response.hits, key=lambda hit: hit.score, reverse=True)[:limit]
        logger.info(
            "rag.retriever.results",
            extra={
                "query": expanded_query,
                "count": len(hits),
                "top_score": hits[0].score if hits else 0.0,
            },
        )
        return hits

    def search(
        self,
        query: str,
        *,
        limit: int,
        pre_tag: Optional[str] = None,
        post_tag: Optional[str] = None,
    ) -> SearchPage:
        if limit <= 0:
            return SearchPage(hits=[], total=0)

        body = {
            "query": build_keyword_query(query),
            "highlight": {
                "pre_tags": [pre_tag or settings.highlight_pre_tag],
                "post_tags": [post_tag or settings.highlight_post_tag],
                "fields": {"content": {}},
            },
        }
        response = self.backend.search(self.index, body, size=limit)
        logger.info(
            "rag.retriever.search",
            extra={"query": query, "count": len(response.hits), "total": response.total},
        )
        return SearchPage(hits=list(response.hits), total=response.total)
