"""
Tests for similarity_service.py (with a mocked collaborator transport).
"""
import json

import httpx
import pytest
from tenacity import wait_none

from cleanup_trust.services.similarity_service import SimilarityService


def _service(handler, **kwargs):
    return SimilarityService(
        api_url="https://similarity.test/v1/",
        api_key="secret",
        timeout=1,
        score_threshold=0.15,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(SimilarityService._request_comparison.retry, "wait", wait_none())


class TestCompare:

    def test_not_configured(self):
        result = SimilarityService(api_url="").compare("a", "b")
        assert result.outcome == "unavailable"
        assert result.reason == "not_configured"
        assert result.configured is False

    def test_changed_true_passes(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"changed": True})

        result = _service(handler).compare("before.jpg", "after.jpg")

        assert result.outcome == "pass"
        assert seen["url"] == "https://similarity.test/v1/compare"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {"before": "before.jpg", "after": "after.jpg"}

    def test_changed_false_fails(self):
        result = _service(lambda r: httpx.Response(200, json={"changed": False})).compare("a", "b")
        assert result.outcome == "fail"
        assert result.configured is True

    @pytest.mark.parametrize("score,expected", [(0.4, "pass"), (0.15, "pass"), (0.05, "fail")])
    def test_score_against_threshold(self, score, expected):
        result = _service(lambda r: httpx.Response(200, json={"score": score})).compare("a", "b")
        assert result.outcome == expected
        assert result.score == score

    def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = _service(handler).compare("a", "b")
        assert result.outcome == "unavailable"
        assert result.reason == "error"
        assert result.configured is True

    def test_server_error_retried_then_unavailable(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={"detail": "busy"})

        result = _service(handler).compare("a", "b")
        assert result.outcome == "unavailable"
        assert result.reason == "error"
        assert len(calls) == 3

    @pytest.mark.parametrize("payload", [{"changed": "yes"}, {"score": "high"}, {"verdict": "ok"}, [1, 2]])
    def test_malformed_response_is_unavailable(self, payload):
        result = _service(lambda r: httpx.Response(200, json=payload)).compare("a", "b")
        assert result.outcome == "unavailable"
        assert result.reason == "error"

    def test_non_json_body_is_unavailable(self):
        result = _service(lambda r: httpx.Response(200, text="<html>")).compare("a", "b")
        assert result.outcome == "unavailable"
