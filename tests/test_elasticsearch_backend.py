import pytest
from elasticsearch import ConnectionError as ESConnectionError

from rules_qa.services.search import ElasticsearchBackend, SearchBackendError
from rules_qa.settings import settings


class FakeElasticsearch:
    def __init__(self, *, fail: bool = False, ping_result: bool = True):
        self.fail = fail
        self.ping_result = ping_result
        self.search_calls = []
        self.count_calls = []

    def search(self, **kwargs):
        self.search_calls.append(kwargs)
        if self.fail:
            raise ESConnectionError("connection refused")
        return {
            "hits": {
                "total": {"value": 7, "relation": "eq"},
                "hits": [
                    {
                        "_score": 4.5,
                        "_source": {
                            "article": "20.15",
                            "title": "Fautes d'exclusion",
                            "content": "La durée d'une exclusion est de 20 secondes.",
                            "category": "fautes",
                            "keywords": ["exclusion", "secondes"],
                            "indexed_at": "2024-01-15T10:00:00Z",
                        },
                        "highlight": {"content": ["La durée d'une <mark>exclusion</mark>", "autre"]},
                    },
                    {
                        "_score": 1.0,
                        "_source": {"article": 11, "title": "Durée du jeu", "content": "Quatre périodes."},
                    },
                ],
            }
        }

    def count(self, **kwargs):
        self.count_calls.append(kwargs)
        if self.fail:
            raise ESConnectionError("connection refused")
        return {"count": 42}

    def ping(self):
        if self.fail:
            raise ESConnectionError("connection refused")
        return self.ping_result


def test_search_forwards_query_dsl_and_parses_hits() -> None:
    client = FakeElasticsearch()
    backend = ElasticsearchBackend(client)
    body = {"query": {"match_all": {}}, "highlight": {"fields": {"content": {}}}}

    response = backend.search("waterpolo-rules", body, size=3)

    assert client.search_calls == [
        {"index": "waterpolo-rules", "size": 3, "query": {"match_all": {}}, "highlight": {"fields": {"content": {}}}}
    ]
    assert response.total == 7
    first, second = response.hits
    assert first.score == 4.5
    assert first.highlight == "La durée d'une <mark>exclusion</mark>"
    assert first.document.keywords == frozenset({"exclusion", "secondes"})
    assert first.document.indexed_at is not None and first.document.indexed_at.year == 2024
    assert second.document.article == "11"
    assert second.document.category == "general"
    assert second.highlight is None


def test_search_errors_are_wrapped() -> None:
    backend = ElasticsearchBackend(FakeElasticsearch(fail=True))

    with pytest.raises(SearchBackendError):
        backend.search("waterpolo-rules", {"query": {"match_all": {}}}, size=1)


def test_count_reads_count_field() -> None:
    client = FakeElasticsearch()

    assert ElasticsearchBackend(client).count("waterpolo-definitions") == 42
    assert client.count_calls == [{"index": "waterpolo-definitions"}]


def test_count_errors_are_wrapped() -> None:
    with pytest.raises(SearchBackendError):
        ElasticsearchBackend(FakeElasticsearch(fail=True)).count("waterpolo-rules")


def test_ping_failure_reports_unreachable() -> None:
    assert ElasticsearchBackend(FakeElasticsearch()).ping() is True
    assert ElasticsearchBackend(FakeElasticsearch(ping_result=False)).ping() is False
    assert ElasticsearchBackend(FakeElasticsearch(fail=True)).ping() is False


def test_from_settings_requires_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "elasticsearch_host", None)

    with pytest.raises(SearchBackendError):
        ElasticsearchBackend.from_settings()
