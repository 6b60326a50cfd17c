import json
from pathlib import Path

import pytest

from rules_qa.services.rag.expansion import QueryExpander
from rules_qa.services.rag.retriever import HybridRetriever
from rules_qa.services.search import InMemorySearchBackend, SearchBackendError
from rules_qa.services.search.memory import auto_fuzziness, edit_distance, load_documents

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@pytest.fixture
def backend() -> InMemorySearchBackend:
    return InMemorySearchBackend({"rules": load_documents(DATA_DIR / "rules.json")})


@pytest.fixture
def retriever(backend: InMemorySearchBackend) -> HybridRetriever:
    return HybridRetriever(backend=backend, index="rules")


def test_exclusion_question_ranks_exclusion_article_first(retriever: HybridRetriever) -> None:
    question = "Quelle est la durée d'une exclusion ?"

    hits = retriever.retrieve(QueryExpander().expand(question), question, limit=5)

    assert hits[0].document.article == "20.15"
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)


def test_limit_caps_hits(retriever: HybridRetriever) -> None:
    hits = retriever.retrieve("faute exclusion penalty temps", "faute", limit=2)

    assert len(hits) == 2


def test_unmatched_query_returns_nothing(retriever: HybridRetriever) -> None:
    assert retriever.retrieve("zzzz qqqq", "zzzz qqqq", limit=5) == []


def test_search_highlights_first_matching_sentence(retriever: HybridRetriever) -> None:
    page = retriever.search("bonnet rouge", limit=5)

    assert page.hits[0].document.article == "5.2"
    assert page.hits[0].highlight == "Le gardien porte un <mark>bonnet</mark> <mark>rouge</mark>."
    assert page.total >= 1


def test_fuzzy_search_tolerates_typos(retriever: HybridRetriever) -> None:
    page = retriever.search("penalti", limit=5)

    assert "21.1" in [hit.document.article for hit in page.hits]


def test_term_query_matches_exact_article(backend: InMemorySearchBackend) -> None:
    response = backend.search("rules", {"query": {"term": {"article": "5.2"}}}, size=1)

    assert response.total == 1
    assert response.hits[0].document.title == "Bonnets"
    assert response.hits[0].document.keywords == frozenset({"gardien", "bonnet", "rouge"})


def test_match_all_and_count(backend: InMemorySearchBackend) -> None:
    response = backend.search("rules", {"query": {"match_all": {}}}, size=2)

    assert len(response.hits) == 2
    assert response.total == backend.count("rules") == 6


def test_unknown_index_raises(backend: InMemorySearchBackend) -> None:
    with pytest.raises(SearchBackendError):
        backend.count("waterpolo-definitions")


def test_unsupported_query_type_raises(backend: InMemorySearchBackend) -> None:
    with pytest.raises(SearchBackendError):
        backend.search("rules", {"query": {"regexp": {"title": ".*"}}}, size=1)


def test_edit_distance_and_auto_fuzziness() -> None:
    assert edit_distance("penalty", "penalti") == 1
    assert edit_distance("", "abc") == 3
    assert auto_fuzziness("au") == 0
    assert auto_fuzziness("temps") == 1
    assert auto_fuzziness("exclusion") == 2


def test_load_documents_skips_invalid_jsonl_lines(tmp_path) -> None:
    path = tmp_path / "rules.jsonl"
    lines = [json.dumps({"article": "1", "title": "Un", "content": "x"}), "{broken", ""]
    path.write_text("\n".join(lines), encoding="utf-8")

    assert [entry["article"] for entry in load_documents(path)] == ["1"]


def test_load_documents_missing_file(tmp_path) -> None:
    with pytest.raises(SearchBackendError):
        load_documents(tmp_path / "missing.json")


def test_from_settings_loads_configured_corpora(monkeypatch: pytest.MonkeyPatch) -> None:
    from rules_qa.settings import settings

    monkeypatch.setattr(settings, "corpus_rules_path", str(DATA_DIR / "rules.json"))
    monkeypatch.setattr(settings, "corpus_definitions_path", str(DATA_DIR / "definitions.json"))

    backend = InMemorySearchBackend.from_settings()

    assert backend.count(settings.rules_index) == 6
    assert backend.count(settings.definitions_index) == 2
    assert backend.ping() is True


def test_load_definitions_builds_typed_entries() -> None:
    from rules_qa.services.search.memory import load_definitions

    definitions = load_definitions(DATA_DIR / "definitions.json")

    assert [definition.word for definition in definitions] == ["Exclusion", "Zone de réentrée"]
