from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request

from rules_qa.agents.base import AgentControlledError
from rules_qa.agents.rules_agent import RulesAgent
from rules_qa.schemas import (
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

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

T = TypeVar("T")

_agent: Optional[RulesAgent] = None


def get_rules_agent() -> RulesAgent:
    global _agent
    if _agent is None:
        _agent = RulesAgent()
    return _agent


def _correlation_id(request: Request) -> Optional[str]:
    return getattr(request.state, "correlation_id", None)


def _execute(operation: str, request: Request, call: Callable[[], T]) -> T:
    correlation_id = _correlation_id(request)
    try:
        return call()
    except AgentControlledError as exc:
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            "rules.api.agent_controlled_error",
            extra={
                "correlation_id": correlation_id,
                "operation": operation,
                "error": exc.error,
                "status": exc.status_code,
            },
        )
        raise HTTPException(
            status_code=exc.status_code,
            detail=ErrorResponse(error=exc.error, details=exc.details).model_dump(),
        ) from exc
    except Exception as exc:
        logger.exception(
            "rules.api.unexpected_error",
            extra={"correlation_id": correlation_id, "operation": operation},
        )
        raise HTTPException(status_code=500, detail="Unexpected error while processing the request.") from exc


@router.post("/search/rules", response_model=SearchResponseOut)
def search_rules(
    payload: SearchRequest,
    request: Request,
    agent: RulesAgent = Depends(get_rules_agent),
) -> SearchResponseOut:
    page = _execute("search", request, lambda: agent.search(payload.query, payload.max_results))
    results = [
        SearchResult(
            article=hit.document.article,
            title=hit.document.title,
            content=hit.document.content,
            score=hit.score,
            highlight=hit.highlight,
        )
        for hit in page.hits
    ]
    return SearchResponseOut(query=payload.query or "", results=results, total=page.total)


@router.post("/agent/ask", response_model=AskResponse)
def ask_agent(
    payload: AskRequest,
    request: Request,
    agent: RulesAgent = Depends(get_rules_agent),
) -> AskResponse:
    result = _execute("ask", request, lambda: agent.ask(payload.question, payload.max_context))
    return AskResponse(
        question=result.question,
        answer=result.answer,
        references=[ReferenceOut(article=ref.article, title=ref.title) for ref in result.references],
        mode=result.mode.value,
        correlation_id=_correlation_id(request),
    )


@router.get("/article/{article}", response_model=ArticleOut)
def get_article(
    article: str,
    request: Request,
    agent: RulesAgent = Depends(get_rules_agent),
) -> ArticleOut:
    document = _execute("article", request, lambda: agent.get_article(article))
    return ArticleOut(**document.as_dict())


@router.get("/stats", response_model=StatsResponse)
def get_stats(request: Request, agent: RulesAgent = Depends(get_rules_agent)) -> StatsResponse:
    stats = _execute("stats", request, agent.get_stats)
    return StatsResponse(rules=stats.rules, definitions=stats.definitions)
