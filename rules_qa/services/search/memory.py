"""In-process search backend evaluating the query DSL subset the agent emits.

Documents are plain ``_source`` mappings grouped by index name. Scores are
term-frequency sums over French-analysed tokens, not Lucene scores.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from rules_qa.settings import settings
from rules_qa.utils.text import fold_accents, tokenize

from .client import DefinitionDocument, SearchBackendError, SearchResponse, hit_from_raw

logger = logging.getLogger(__name__)

_FIELD_BOOST = re.compile(r"^(?P<field>[\w.]+)(?:\^(?P<boost>\d+(?:\.\d+)?))?$")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?;:])\s+|\n+")
_WORD = re.compile(r"\w+", re.UNICODE)


def load_documents(path: str | Path) -> List[Dict[str, Any]]:
    """Read a JSON array (or ``{"documents": [...]}``) or a JSONL file."""

    file = Path(path)
    if not file.exists():
        raise SearchBackendError(f"Corpus file not found: {file}")

    if file.suffix == ".jsonl":
        entries: List[Dict[str, Any]] = []
        with file.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning(
                        "search.memory.invalid_line",
                        extra={"path": str(file), "line": line_no},
                    )
        return entries

    with file.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, Mapping):
        payload = payload.get("documents", [])
    return [dict(entry) for entry in payload]


def load_definitions(path: str | Path) -> List[DefinitionDocument]:
    return [
        DefinitionDocument(
            title=entry.get("title") or "",
            word=entry.get("word") or "",
            definition=entry.get("definition") or "",
        )
        for entry in load_documents(path)
    ]


def edit_distance(left: str, right: str) -> int:
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def auto_fuzziness(term: str) -> int:
    length = len(term)
    if length <= 2:
        return 0
    if length <= 5:
        return 1
    return 2


class InMemorySearchBackend:
    def __init__(self, indices: Mapping[str, Sequence[Mapping[str, Any]]]) -> None:
        self._indices: Dict[str, List[Mapping[str, Any]]] = {
            name: list(documents) for name, documents in indices.items()
        }

    @classmethod
    def from_settings(cls) -> "InMemorySearchBackend":
        indices: Dict[str, Sequence[Mapping[str, Any]]] = {}
        if settings.corpus_rules_path:
            indices[settings.rules_index] = load_documents(settings.corpus_rules_path)
        if settings.corpus_definitions_path:
            indices[settings.definitions_index] = [
                asdict(definition) for definition in load_definitions(settings.corpus_definitions_path)
            ]
        logger.info(
            "search.memory.loaded",
            extra={"indices": {name: len(docs) for name, docs in indices.items()}},
        )
        return cls(indices)

    def search(self, index: str, body: Mapping[str, Any], *, size: int) -> SearchResponse:
        documents = self._documents(index)
        query = body.get("query") or {"match_all": {}}

        scored: List[Tuple[float, Mapping[str, Any]]] = []
        for source in documents:
            score = _evaluate(query, source)
            if score is not None:
                scored.append((score, source))
        scored.sort(key=lambda item: item[0], reverse=True)

        highlight_spec = body.get("highlight")
        highlight_terms = _query_terms(query) if highlight_spec else set()
        raw_hits = []
        for score, source in scored[: max(size, 0)]:
            raw: Dict[str, Any] = {"_source": dict(source), "_score": score}
            if highlight_spec:
                fragments = _highlight(source, highlight_spec, highlight_terms)
                if fragments:
                    raw["highlight"] = fragments
            raw_hits.append(raw)

        return SearchResponse(hits=[hit_from_raw(raw) for raw in raw_hits], total=len(scored))

    def count(self, index: str) -> int:
        return len(self._documents(index))

    def ping(self) -> bool:
        return True

    def _documents(self, index: str) -> List[Mapping[str, Any]]:
        try:
            return self._indices[index]
        except KeyError:
            raise SearchBackendError(f"no such index [{index}]") from None


def _field_text(source: Mapping[str, Any], field: str) -> str:
    value = source.get(field)
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set, frozenset)):
        return " ".join(str(item) for item in value)
    return str(value)


def _parse_fields(fields: Iterable[str]) -> List[Tuple[str, float]]:
    parsed = []
    for entry in fields:
        match = _FIELD_BOOST.match(entry)
        if not match:
            continue
        boost = float(match.group("boost")) if match.group("boost") else 1.0
        parsed.append((match.group("field"), boost))
    return parsed


def _term_score(terms: Sequence[str], field_tokens: Sequence[str], *, fuzzy: bool) -> float:
    if not terms or not field_tokens:
        return 0.0
    counts: Dict[str, int] = {}
    for token in field_tokens:
        counts[token] = counts.get(token, 0) + 1
    score = 0.0
    for term in dict.fromkeys(terms):
        occurrences = counts.get(term, 0)
        if occurrences:
            score += 1.0 + math.log(occurrences)
            continue
        if fuzzy:
            allowed = auto_fuzziness(term)
            if allowed and any(edit_distance(term, token) <= allowed for token in counts):
                score += 0.5
    return score


def _phrase_score(phrase: Sequence[str], field_tokens: Sequence[str]) -> float:
    if not phrase or len(phrase) > len(field_tokens):
        return 0.0
    width = len(phrase)
    hits = sum(
        1
        for start in range(len(field_tokens) - width + 1)
        if list(field_tokens[start : start + width]) == list(phrase)
    )
    return float(width * hits)


def _multi_match(params: Mapping[str, Any], source: Mapping[str, Any]) -> Optional[float]:
    text = str(params.get("query", ""))
    fields = _parse_fields(params.get("fields") or ["*"])
    match_type = params.get("type", "best_fields")
    fuzzy = str(params.get("fuzziness", "")).upper() == "AUTO"

    best = 0.0
    if match_type == "phrase":
        phrase = tokenize(text)
        for field, boost in fields:
            best = max(best, _phrase_score(phrase, tokenize(_field_text(source, field))) * boost)
    else:
        terms = tokenize(text)
        for field, boost in fields:
            best = max(
                best,
                _term_score(terms, tokenize(_field_text(source, field)), fuzzy=fuzzy) * boost,
            )
    if best <= 0:
        return None
    return best * float(params.get("boost", 1.0))


def _match(params: Mapping[str, Any], source: Mapping[str, Any]) -> Optional[float]:
    ((field, value),) = params.items()
    if isinstance(value, Mapping):
        text = str(value.get("query", ""))
        boost = float(value.get("boost", 1.0))
        fuzzy = str(value.get("fuzziness", "")).upper() == "AUTO"
    else:
        text, boost, fuzzy = str(value), 1.0, False
    score = _term_score(tokenize(text), tokenize(_field_text(source, field)), fuzzy=fuzzy)
    return score * boost if score > 0 else None


def _term(params: Mapping[str, Any], source: Mapping[str, Any]) -> Optional[float]:
    ((field, value),) = params.items()
    boost = 1.0
    if isinstance(value, Mapping):
        boost = float(value.get("boost", 1.0))
        value = value.get("value")
    stored = source.get(field)
    if isinstance(stored, (list, tuple, set, frozenset)):
        matched = any(str(item) == str(value) for item in stored)
    else:
        matched = stored is not None and str(stored) == str(value)
    return boost if matched else None


def _bool(params: Mapping[str, Any], source: Mapping[str, Any]) -> Optional[float]:
    def clauses(key: str) -> List[Mapping[str, Any]]:
        value = params.get(key) or []
        return [value] if isinstance(value, Mapping) else list(value)

    score = 0.0
    for clause in clauses("must"):
        clause_score = _evaluate(clause, source)
        if clause_score is None:
            return None
        score += clause_score
    for clause in clauses("filter"):
        if _evaluate(clause, source) is None:
            return None
    for clause in clauses("must_not"):
        if _evaluate(clause, source) is not None:
            return None

    should = clauses("should")
    default_minimum = 0 if (params.get("must") or params.get("filter")) else 1
    minimum = int(params.get("minimum_should_match", default_minimum if should else 0))
    matched = 0
    for clause in should:
        clause_score = _evaluate(clause, source)
        if clause_score is not None:
            matched += 1
            score += clause_score
    if matched < minimum:
        return None
    return score * float(params.get("boost", 1.0))


_EVALUATORS = {
    "bool": _bool,
    "multi_match": _multi_match,
    "match": _match,
    "term": _term,
}


def _evaluate(query: Mapping[str, Any], source: Mapping[str, Any]) -> Optional[float]:
    """Return the document score for ``query`` or ``None`` when it does not match."""

    ((kind, params),) = query.items()
    if kind == "match_all":
        return float((params or {}).get("boost", 1.0))
    evaluator = _EVALUATORS.get(kind)
    if evaluator is None:
        raise SearchBackendError(f"Unsupported query type: {kind}")
    return evaluator(params, source)


def _query_terms(query: Mapping[str, Any]) -> Set[str]:
    terms: Set[str] = set()
    ((kind, params),) = query.items()
    if kind == "bool":
        for key in ("must", "should", "filter"):
            value = params.get(key) or []
            for clause in [value] if isinstance(value, Mapping) else value:
                terms |= _query_terms(clause)
    elif kind == "multi_match":
        terms.update(tokenize(str(params.get("query", ""))))
    elif kind == "match":
        for value in params.values():
            text = value.get("query", "") if isinstance(value, Mapping) else value
            terms.update(tokenize(str(text)))
    return terms


def _highlight(
    source: Mapping[str, Any],
    params: Mapping[str, Any],
    terms: Set[str],
) -> Dict[str, List[str]]:
    pre_tag = (params.get("pre_tags") or ["<em>"])[0]
    post_tag = (params.get("post_tags") or ["</em>"])[0]

    def wrap(match: re.Match) -> str:
        word = match.group(0)
        return f"{pre_tag}{word}{post_tag}" if fold_accents(word) in terms else word

    fragments: Dict[str, List[str]] = {}
    for field in params.get("fields") or {}:
        text = _field_text(source, field)
        for sentence in _SENTENCE_BREAK.split(text):
            sentence = sentence.strip()
            if sentence and any(fold_accents(word) in terms for word in _WORD.findall(sentence)):
                fragments[field] = [_WORD.sub(wrap, sentence)]
                break
    return fragments
