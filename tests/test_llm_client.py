import json
import types

import requests

from portfolio_api import llm_client
from portfolio_api.config import Settings
from portfolio_api.llm_client import FailureKind, LLMClient, Outcome, build_llm_client


class FakeResp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


def _completion(content):
    return {"choices": [{"message": {"content": content}}]}


def _client():
    return LLMClient(api_key="k", endpoint="https://gateway.test/chat/completions", model="m", timeout=5)


def _patch_post(monkeypatch, resp=None, exc=None):
    seen = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        seen.update(url=url, headers=headers, body=json, timeout=timeout)
        if exc is not None:
            raise exc
        return resp

    monkeypatch.setattr(llm_client, "requests", types.SimpleNamespace(post=fake_post, RequestException=requests.RequestException))
    return seen


def test_success_parses_json_object(monkeypatch):
    seen = _patch_post(monkeypatch, FakeResp(200, _completion(json.dumps({"layout": "two-column"}))))
    out = _client().complete_json("sys", "usr", schema_name="generated_layout", schema={"type": "object"},
                                  temperature=0.3, max_tokens=1000)
    assert out.ok
    assert out.value == {"layout": "two-column"}
    body = seen["body"]
    assert body["model"] == "m"
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 1000
    assert body["messages"] == [{"role": "system", "content": "sys"}, {"role": "user", "content": "usr"}]
    assert body["response_format"]["type"] == "json_schema"
    assert body["response_format"]["json_schema"]["strict"] is True
    assert seen["headers"]["Authorization"] == "Bearer k"
    assert seen["timeout"] == 5


def test_transport_error(monkeypatch):
    _patch_post(monkeypatch, exc=requests.ConnectionError("boom"))
    out = _client().complete_json("s", "u", schema_name="x", schema={})
    assert out.failure is FailureKind.TRANSPORT


def test_http_status_error(monkeypatch):
    _patch_post(monkeypatch, FakeResp(503, text="unavailable"))
    out = _client().complete_json("s", "u", schema_name="x", schema={})
    assert out.failure is FailureKind.HTTP_STATUS
    assert out.detail == "503"


def test_empty_content(monkeypatch):
    _patch_post(monkeypatch, FakeResp(200, {"choices": []}))
    assert _client().complete_json("s", "u", schema_name="x", schema={}).failure is FailureKind.EMPTY_CONTENT
    _patch_post(monkeypatch, FakeResp(200, _completion("")))
    assert _client().complete_json("s", "u", schema_name="x", schema={}).failure is FailureKind.EMPTY_CONTENT


def test_invalid_json_content(monkeypatch):
    _patch_post(monkeypatch, FakeResp(200, _completion("```json\n{}\n```")))
    assert _client().complete_json("s", "u", schema_name="x", schema={}).failure is FailureKind.INVALID_JSON


def test_non_object_content(monkeypatch):
    _patch_post(monkeypatch, FakeResp(200, _completion("[1, 2]")))
    assert _client().complete_json("s", "u", schema_name="x", schema={}).failure is FailureKind.INVALID_STRUCTURE


def test_outcome_combinators():
    ok = Outcome.success(2)
    bad = Outcome.fail(FailureKind.TRANSPORT)
    assert ok.then(lambda v: Outcome.success(v * 10)).value == 20
    assert bad.then(lambda v: Outcome.success(v * 10)) is bad
    assert ok.value_or(0) == 2
    assert bad.value_or(0) == 0
    assert bad.value_or(lambda: "fallback") == "fallback"


def test_build_llm_client_requires_key():
    assert build_llm_client(Settings(llm_api_key="")) is None
    client = build_llm_client(Settings(llm_api_key="abc", llm_model="some/model"))
    assert client is not None and client.model == "some/model"
