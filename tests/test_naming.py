import json

import pytest

from constellate.config import NamingConfig
from constellate.models import NamingRequest
from constellate.naming import KeywordNamer, OpenAICompatibleNamer, namer_from_config
from constellate.naming.openai_compatible import parse_identity_reply


class _FakeResponse:
    def __init__(self, payload: dict) -> None:
        self._payload = payload

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def read(self) -> bytes:
        return json.dumps(self._payload).encode("utf-8")


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _request(**overrides) -> NamingRequest:  # noqa: ANN003
    base = {
        "member_ids": ["star-2024-01-02", "star-2024-01-01"],
        "dates": ["2024-01-02", "2024-01-01"],
        "snippets": {"2024-01-01": "Long walk in the rain"},
        "keywords": {"2024-01-01": ["Rain", "walk"], "2024-01-02": ["rain"]},
    }
    base.update(overrides)
    return NamingRequest(**base)


def test_keyword_namer_uses_most_common_keywords() -> None:
    identity = KeywordNamer().name_cluster(_request())
    assert identity.name == "Constellation of rain & walk"
    assert identity.summary == "Entries from 2024-01-01 to 2024-01-02 keep returning to rain, walk."
    assert identity.member_ids == ["star-2024-01-01", "star-2024-01-02"]


def test_keyword_namer_without_keywords() -> None:
    identity = KeywordNamer().name_cluster(_request(keywords={}))
    assert identity.name == "Constellation of 2 days"
    assert identity.summary.endswith("share a similar mood.")


def test_openai_namer_posts_chat_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def _fake_urlopen(request, timeout: float):  # noqa: ANN001
        captured["url"] = request.full_url
        captured["timeout"] = timeout
        captured["headers"] = dict(request.headers)
        captured["body"] = json.loads(request.data.decode("utf-8"))
        return _FakeResponse(_completion('{"name": "Rain Walks", "summary": "Wet days that cleared your head."}'))

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    monkeypatch.setenv("TEST_API_KEY", "secret-token")

    namer = OpenAICompatibleNamer(
        endpoint="https://example.test/",
        model="gpt-4o-mini",
        api_key_env="TEST_API_KEY",
        timeout_seconds=2.5,
    )
    identity = namer.name_cluster(_request(identity_hint="Writes late at night"))

    assert identity.name == "Rain Walks"
    assert identity.member_ids == ["star-2024-01-01", "star-2024-01-02"]
    assert captured["url"] == "https://example.test/v1/chat/completions"
    assert captured["timeout"] == 2.5
    assert captured["headers"]["Authorization"] == "Bearer secret-token"
    assert captured["body"]["model"] == "gpt-4o-mini"
    user_prompt = captured["body"]["messages"][1]["content"]
    assert "2024-01-01: Long walk in the rain" in user_prompt
    assert "Writes late at night" in user_prompt


def test_openai_namer_rejects_empty_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_urlopen(request, timeout: float):  # noqa: ANN001
        return _FakeResponse({"choices": []})

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    namer = OpenAICompatibleNamer(endpoint="https://example.test", model="m", api_key_env=None)

    with pytest.raises(ValueError, match="empty completion"):
        namer.name_cluster(_request())


def test_parse_reply_strips_code_fences_and_bounds_lengths() -> None:
    reply = '```json\n{"name": "' + "N" * 60 + '", "summary": "' + "S" * 200 + '"}\n```'
    identity = parse_identity_reply(reply, ["star-b", "star-a"])
    assert len(identity.name) == 40
    assert len(identity.summary) == 120
    assert identity.member_ids == ["star-a", "star-b"]


@pytest.mark.parametrize(
    ("reply", "message"),
    [
        ("Here you go!", "non-JSON"),
        ('["a", "b"]', "not an object"),
        ('{"name": "Only name"}', "missing name or summary"),
        ('{"name": "  ", "summary": "x"}', "missing name or summary"),
    ],
)
def test_parse_reply_rejects_malformed_content(reply: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        parse_identity_reply(reply, ["star-a"])


def test_namer_from_config() -> None:
    assert isinstance(namer_from_config(NamingConfig()), KeywordNamer)
    namer = namer_from_config(NamingConfig(provider="openai-compatible", endpoint="https://example.test"))
    assert namer.model_id() == "gpt-4o-mini"
    with pytest.raises(ValueError, match="endpoint is required"):
        namer_from_config(NamingConfig(provider="openai-compatible"))
    with pytest.raises(ValueError, match="Unknown naming provider"):
        namer_from_config(NamingConfig(provider="mystery"))
