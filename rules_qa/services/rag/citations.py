from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from rules_qa.services.search import SearchHit


@dataclass(frozen=True)
class Reference:
    article: str
    title: str


def link_references(hits: Iterable[SearchHit]) -> List[Reference]:
    """One reference per retrieved hit, in retrieval order."""

    return [Reference(article=hit.document.article, title=hit.document.title) for hit in hits]
