from __future__ import annotations

import logging
import time
from typing import Optional

from rules_qa.agents.base import (
    NO_RULES_ANSWER,
    AnswerMode,
    AnswerResult,
    ArticleNotFound,
    CorpusStats,
    RetrievalFailure,
    ValidationFailed,
)
from rules_qa.observability.metrics import get_metrics_registry
from rules_qa.services.rag.context_builder import build_context
from rules_qa.services.rag.expansion import QueryExpander, get_query_expander
from rules_qa.services.rag.retriever import HybridRetriever, SearchPage
from rules_qa.services.rag.synthesizer import AnswerSynthesizer
from rules_qa.services.search import RuleDocument, SearchBackend, SearchBackendError, get_search_backend
from rules_qa.settings import settings

logger = logging.getLogger(__name__)


class RulesAgent:
    """Answers rule questions: expand, retrieve, assemble context, generate or fall back."""

    name = "rules"

    def __init__(
        self,
        *,
        backend: Optional[SearchBackend] = None,
        expander: Optional[QueryExpander] = None,
        retriever: Optional[HybridRetriever] = None,
        synthesizer: Optional[AnswerSynthesizer] = None,
        context_max_chars: Optional[int] = None,
    ) -> None:
        self._backend = backend or get_search_backend()
        self._expander = expander or get_query_expander()
        self._retriever = retriever or HybridRetriever(backend=self._backend)
        self._synthesizer = synthesizer or AnswerSynthesizer()
        self._context_max_chars = (
            context_max_chars if context_max_chars is not None else settings.context_max_chars
        )
        self._metrics = get_metrics_registry()

    def ask(self, question: Optional[str], max_context: Optional[int] = None) -> AnswerResult:
        if not question or not question.strip():
            raise ValidationFailed("Question required")
        limit = settings.ask_default_max_context if max_context is None else max_context

        start = time.perf_counter()
        expanded = self._expander.expand(question)
        logger.info(
            "rules.agent.expanded",
            extra={"question": question, "expanded_query": expanded, "limit": limit},
        )

        try:
            hits = self._retriever.retrieve(expanded, question, limit=limit)
        except SearchBackendError as exc:
            logger.error("rules.agent.retrieval_failed", extra={"question": question}, exc_info=exc)
            raise RetrievalFailure("Agent failed") from exc

        if not hits:
            logger.info("rules.agent.no_rules", extra={"question": question})
            self._metrics.increment_answer(AnswerMode.no_rules.value)
            return AnswerResult(
                question=question,
                answer=NO_RULES_ANSWER,
                mode=AnswerMode.no_rules,
                references=[],
            )

        context = build_context(hits, max_chars=self._context_max_chars)
        if context.omitted:
            logger.info(
                "rules.agent.context_truncated",
                extra={"included": context.included, "omitted": context.omitted},
            )

        result = self._synthesizer.synthesize(question, context.text, hits)
        self._metrics.increment_answer(result.mode.value)
        logger.info(
            "rules.agent.answered",
            extra={
                "question": question,
                "mode": result.mode.value,
                "references_count": len(result.references),
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return result

    def search(self, query: Optional[str], max_results: Optional[int] = None) -> SearchPage:
        if not query or not query.strip():
            raise ValidationFailed("Query required")
        limit = settings.search_default_max_results if max_results is None else max_results

        try:
            page = self._retriever.search(query, limit=limit)
        except SearchBackendError as exc:
            logger.error("rules.search.failed", extra={"query": query}, exc_info=exc)
            raise RetrievalFailure("Search failed") from exc

        self._metrics.increment_search()
        logger.info("rules.search.completed", extra={"query": query, "results": len(page.hits)})
        return page

    def get_article(self, article_id: Optional[str]) -> RuleDocument:
        if not article_id or not article_id.strip():
            raise ValidationFailed("Article number required")

        body = {"query": {"term": {"article": article_id}}}
        try:
            response = self._backend.search(self._retriever.index, body, size=1)
        except SearchBackendError as exc:
            logger.error("rules.article.failed", extra={"article": article_id}, exc_info=exc)
            raise RetrievalFailure("Failed to fetch article") from exc

        if not response.hits:
            logger.info("rules.article.not_found", extra={"article": article_id})
            raise ArticleNotFound(article_id)

        logger.info("rules.article.fetched", extra={"article": article_id})
        return response.hits[0].document

    def get_stats(self) -> CorpusStats:
        try:
            rules = self._backend.count(settings.rules_index)
        except SearchBackendError as exc:
            logger.error("rules.stats.failed", exc_info=exc)
            raise RetrievalFailure("Stats unavailable") from exc

        try:
            definitions = self._backend.count(settings.definitions_index)
        except SearchBackendError as exc:
            logger.warning("rules.stats.definitions_unavailable", extra={"error": str(exc)})
            definitions = 0

        logger.info("rules.stats.fetched", extra={"rules": rules, "definitions": definitions})
        return CorpusStats(rules=rules, definitions=definitions)
