from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from rules_qa.services.search import SearchHit

_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class ContextBlock:
    text: str
    included: int
    omitted: int


def format_entry(position: int, hit: SearchHit) -> str:
    document = hit.document
    return f"[{position}] Article {document.article}: {document.title}\n{document.content}"


def omission_marker(omitted: int) -> str:
    return f"[... {omitted} article(s) omitted: context limit reached]"


def build_context(hits: Sequence[SearchHit], *, max_chars: int) -> ContextBlock:
    """Number the hits in retrieval order and join them under ``max_chars``.

    Lower-ranked entries are dropped first; the top entry always survives,
    clipped if it alone is over budget.
    """

    entries = [format_entry(position, hit) for position, hit in enumerate(hits, start=1)]
    if not entries:
        return ContextBlock(text="", included=0, omitted=0)

    full_text = _SEPARATOR.join(entries)
    if max_chars <= 0 or len(full_text) <= max_chars:
        return ContextBlock(text=full_text, included=len(entries), omitted=0)

    kept: List[str] = list(entries)
    while len(kept) > 1:
        marker = omission_marker(len(entries) - len(kept))
        if len(_SEPARATOR.join(kept + [marker])) <= max_chars:
            break
        kept.pop()

    omitted = len(entries) - len(kept)
    marker = omission_marker(omitted) if omitted else ""
    if len(kept) == 1:
        reserved = len(_SEPARATOR) + len(marker) if marker else 0
        kept[0] = _clip(kept[0], max_chars - reserved)

    parts = kept + [marker] if marker else kept
    return ContextBlock(text=_SEPARATOR.join(parts), included=len(kept), omitted=omitted)


def _clip(entry: str, budget: int) -> str:
    if len(entry) <= budget:
        return entry
    header, _, _ = entry.partition("\n")
    # Header (article id and title) is never clipped.
    room = max(budget - len(header) - 2, 0)
    content = entry[len(header) + 1 :]
    return f"{header}\n{content[:room]}…"
