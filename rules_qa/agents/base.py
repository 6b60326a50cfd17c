from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from rules_qa.services.rag.citations import Reference

NO_RULES_ANSWER = "Aucune règle trouvée dans la base de données. Veuillez reformuler votre question."


class AnswerMode(str, Enum):
    generated = "generated"
    fallback = "fallback"
    no_rules = "no-rules"


@dataclass(frozen=True)
class AnswerResult:
    question: str
    answer: str
    mode: AnswerMode
    references: List[Reference] = field(default_factory=list)


@dataclass(frozen=True)
class CorpusStats:
    rules: int
    definitions: int


class AgentControlledError(Exception):
    """Raised by the agent when a predictable failure occurs (e.g. validation issues)."""

    def __init__(self, *, error: str, status_code: int = 400, details: Optional[str] = None) -> None:
        super().__init__(error)
        self.error = error
        self.details = details
        self.status_code = status_code


class ValidationFailed(AgentControlledError):
    def __init__(self, error: str, *, details: Optional[str] = None) -> None:
        super().__init__(error=error, status_code=400, details=details)


class ArticleNotFound(AgentControlledError):
    def __init__(self, article: str) -> None:
        super().__init__(error="Article not found", status_code=404, details=article)
        self.article = article


class RetrievalFailure(AgentControlledError):
    """Search backend failure; the cause is logged, never returned to clients."""

    def __init__(self, error: str) -> None:
        super().__init__(error=error, status_code=500)
