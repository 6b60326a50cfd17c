from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from rules_qa.agents.base import AnswerMode, AnswerResult
from rules_qa.services.llm_provider import (
    GenerationBackend,
    GenerationParams,
    LLMProviderError,
    get_generation_backend,
)
from rules_qa.services.rag.citations import link_references
from rules_qa.services.search import SearchHit
from rules_qa.settings import settings

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Tu es un expert en règles de water-polo FINA. Tu dois répondre de manière précise et détaillée aux questions sur les règles.

CONTEXTE - RÈGLES PERTINENTES:
{context}

QUESTION: {question}

INSTRUCTIONS:
- Fournis une réponse complète et détaillée basée UNIQUEMENT sur les règles fournies ci-dessus
- Cite TOUJOURS les articles exacts (ex: "Selon l'Article 20.15, ...")
- Si plusieurs articles sont pertinents, explique chacun clairement
- Utilise des exemples concrets si cela aide à la compréhension
- Structure ta réponse avec des points ou paragraphes si nécessaire
- Si les règles fournies ne contiennent pas l'information exacte, dis-le clairement

RÉPONSE:"""


@dataclass(frozen=True)
class GenerationOutcome:
    text: Optional[str] = None
    failure: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, text: str) -> "GenerationOutcome":
        return cls(text=text)

    @classmethod
    def failed(cls, reason: str) -> "GenerationOutcome":
        return cls(failure=reason)


def build_prompt(question: str, context: str) -> str:
    return PROMPT_TEMPLATE.format(context=context, question=question)


def build_fallback_answer(hits: Sequence[SearchHit], *, top_n: int) -> str:
    entries = []
    for position, hit in enumerate(hits[: max(top_n, 1)], start=1):
        document = hit.document
        entries.append(f"{position}. Article {document.article} - {document.title}:\n{document.content}")
    return "\n\n".join(entries)


class AnswerSynthesizer:
    def __init__(
        self,
        *,
        backend: Optional[GenerationBackend] = None,
        params: Optional[GenerationParams] = None,
        fallback_top_n: Optional[int] = None,
    ) -> None:
        self._backend = backend
        self.params = params or GenerationParams.from_settings()
        self.fallback_top_n = fallback_top_n if fallback_top_n is not None else settings.fallback_top_n

    @property
    def backend(self) -> GenerationBackend:
        if self._backend is None:
            self._backend = get_generation_backend()
        return self._backend

    def generate(self, prompt: str) -> GenerationOutcome:
        try:
            text = self.backend.generate_content(prompt, self.params)
        except LLMProviderError as exc:
            return GenerationOutcome.failed(str(exc))
        except Exception as exc:  # noqa: BLE001 - any backend fault degrades to the fallback
            return GenerationOutcome.failed(f"{type(exc).__name__}: {exc}")

        if not isinstance(text, str) or not text.strip():
            return GenerationOutcome.failed("empty response")
        return GenerationOutcome.success(text.strip())

    def synthesize(self, question: str, context: str, hits: Sequence[SearchHit]) -> AnswerResult:
        if not hits:
            raise ValueError("synthesize() requires at least one hit")

        references = link_references(hits)
        outcome = self.generate(build_prompt(question, context))
        if outcome.succeeded:
            logger.info("rag.synthesizer.generated", extra={"references": len(references)})
            return AnswerResult(
                question=question,
                answer=outcome.text or "",
                mode=AnswerMode.generated,
                references=references,
            )

        logger.warning(
            "rag.synthesizer.fallback",
            extra={"reason": outcome.failure, "references": len(references)},
        )
        return AnswerResult(
            question=question,
            answer=build_fallback_answer(hits, top_n=self.fallback_top_n),
            mode=AnswerMode.fallback,
            references=references,
        )
