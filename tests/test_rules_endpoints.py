from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from rules_qa.agents.rules_agent import RulesAgent
from rules_qa.main import app
from rules_qa.routers import rules as rules_router
from rules_qa.services.llm_provider import GenerationParams, LLMProviderError
from rules_qa.services.rag.expansion import QueryExpander
from rules_qa.services.rag.synthesizer import AnswerSynthesizer
from rules_qa.services.search import InMemorySearchBackend
from rules_qa.services.search.memory import load_documents
from rules_qa.settings import settings

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class StubGeneration:
    def __init__(self, text: str = "Selon l'Article 20.15, l'exclusion dure 20 secondes.", should_fail: bool = False):
        self.text = text
        self.should_fail = should_fail

    def generate_content(self, prompt: str, params: GenerationParams) -> str:
        if self.should_fail:
            raise LLMProviderError("unavailable")
        return self.text


def _agent(generation: StubGeneration) -> RulesAgent:
    backend = InMemorySearchBackend(
        {
            settings.rules_index: load_documents(DATA_DIR / "rules.json"),
            settings.definitions_index: load_documents(DATA_DIR / "definitions.json"),
        }
    )
    return RulesAgent(
        backend=backend,
        expander=QueryExpander(),
        synthesizer=AnswerSynthesizer(backend=generation, fallback_top_n=3),
    )


@pytest.fixture
def client() -> TestClient:
    agent = _agent(StubGeneration())
    app.dependency_overrides[rules_router.get_rules_agent] = lambda: agent
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(rules_router.get_rules_agent, None)


def test_ask_returns_generated_answer_with_references(client: TestClient) -> None:
    response = client.post(
        "/api/agent/ask",
        json={"question": "Quelle est la durée d'une exclusion ?", "maxContext": 3},
        headers={"X-Correlation-ID": "corr-1"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["mode"] == "generated"
    assert payload["answer"].startswith("Selon l'Article 20.15")
    assert payload["references"][0] == {"article": "20.15", "title": "Fautes d'exclusion"}
    assert len(payload["references"]) <= 3
    assert payload["correlation_id"] == "corr-1"


def test_ask_falls_back_when_generation_fails(client: TestClient) -> None:
    agent = _agent(StubGeneration(should_fail=True))
    app.dependency_overrides[rules_router.get_rules_agent] = lambda: agent

    response = client.post("/api/agent/ask", json={"question": "Quelle est la durée d'une exclusion ?"})

    payload = response.json()
    assert payload["mode"] == "fallback"
    assert payload["answer"].startswith("1. Article 20.15 - Fautes d'exclusion:")


def test_ask_without_question_is_rejected(client: TestClient) -> None:
    response = client.post("/api/agent/ask", json={})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Question required"


def test_ask_with_zero_context_reports_no_rules(client: TestClient) -> None:
    response = client.post("/api/agent/ask", json={"question": "Durée d'une exclusion ?", "maxContext": 0})

    payload = response.json()
    assert response.status_code == 200
    assert payload["mode"] == "no-rules"
    assert payload["references"] == []


def test_ask_accepts_latin1_body(client: TestClient) -> None:
    body = '{"question": "Quelle est la durée d\'une exclusion ?"}'.encode("latin-1")

    response = client.post("/api/agent/ask", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json()["question"] == "Quelle est la durée d'une exclusion ?"


def test_search_rules_returns_highlighted_results(client: TestClient) -> None:
    response = client.post("/api/search/rules", json={"query": "bonnet rouge", "maxResults": 2})

    assert response.status_code == 200
    payload = response.json()
    assert payload["query"] == "bonnet rouge"
    assert payload["results"][0]["article"] == "5.2"
    assert "<mark>bonnet</mark>" in payload["results"][0]["highlight"]
    assert payload["total"] >= len(payload["results"])


def test_search_rules_requires_query(client: TestClient) -> None:
    response = client.post("/api/search/rules", json={"query": "  "})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Query required"


def test_get_article(client: TestClient) -> None:
    response = client.get("/api/article/21.1")

    assert response.status_code == 200
    payload = response.json()
    assert payload["title"] == "Penalty"
    assert payload["category"] == "fautes"
    assert sorted(payload["keywords"]) == ["5 mètres", "penalty"]


def test_unknown_article_is_404(client: TestClient) -> None:
    response = client.get("/api/article/99.9")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "Article not found"


def test_stats(client: TestClient) -> None:
    response = client.get("/api/stats")

    assert response.status_code == 200
    assert response.json() == {"rules": 6, "definitions": 2}


class ExplodingAgent:
    def ask(self, question, max_context=None):
        raise RuntimeError("unexpected")


def test_unexpected_errors_return_generic_500(client: TestClient) -> None:
    app.dependency_overrides[rules_router.get_rules_agent] = lambda: ExplodingAgent()

    response = client.post("/api/agent/ask", json={"question": "Durée ?"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Unexpected error while processing the request."
    assert "RuntimeError" not in response.text
