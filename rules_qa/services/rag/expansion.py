from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Pattern, Sequence, Tuple

from rules_qa.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpansionRule:
    pattern: Pattern[str]
    addition: str


DEFAULT_EXPANSIONS: Tuple[Tuple[str, str], ...] = (
    (r"durée.*exclusion", "exclusion secondes temps"),
    (r"combien.*joueur", "joueur équipe nombre"),
    (r"penalty|pénalty", "penalty pénalty 5 mètres"),
    (r"gardien", "gardien but bonnet rouge"),
    (r"temps.*jeu", "période minute temps durée"),
    (r"faute", "faute ordinaire exclusion"),
)


def compile_rules(pairs: Iterable[Sequence[str]]) -> Tuple[ExpansionRule, ...]:
    """Compile ``(pattern, addition)`` pairs; an invalid regex raises ``re.error``."""

    rules = []
    for pattern, addition in pairs:
        rules.append(ExpansionRule(pattern=re.compile(pattern, re.IGNORECASE), addition=addition))
    return tuple(rules)


def load_expansion_rules(path: str | Path) -> Tuple[ExpansionRule, ...]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, list) or not all(
        isinstance(entry, (list, tuple)) and len(entry) == 2 for entry in payload
    ):
        raise ValueError(f"Expansion file {path} must hold a list of [pattern, addition] pairs.")
    return compile_rules(payload)


class QueryExpander:
    def __init__(self, rules: Optional[Sequence[ExpansionRule]] = None) -> None:
        self.rules: Tuple[ExpansionRule, ...] = (
            tuple(rules) if rules is not None else compile_rules(DEFAULT_EXPANSIONS)
        )

    def expand(self, question: str) -> str:
        expanded = question
        for rule in self.rules:
            if rule.pattern.search(question):
                expanded = f"{expanded} {rule.addition}"
        return expanded


@lru_cache(maxsize=1)
def get_query_expander() -> QueryExpander:
    if settings.query_expansions_path:
        rules = load_expansion_rules(settings.query_expansions_path)
        logger.info(
            "rag.expansion.loaded",
            extra={"path": settings.query_expansions_path, "rules": len(rules)},
        )
        return QueryExpander(rules)
    return QueryExpander()
