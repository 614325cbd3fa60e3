"""OpenAI-compatible chat-completions namer for API-based constellation names."""

from __future__ import annotations

import json
import os
import re
import urllib.request

from constellate.models import ClusterIdentity, NamingRequest
from constellate.naming.base import bounded_identity

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You name constellations drawn from a person's diary days. Reply with JSON only, "
    'for example {"name": "Constellation of Honest Solitude", '
    '"summary": "Days when being alone made you most truthful."}'
)


def _user_prompt(request: NamingRequest, max_snippet_chars: int) -> str:
    lines = []
    for date in sorted(request.dates):
        text = request.snippets.get(date, "").strip()
        lines.append(f"{date}: {text[:max_snippet_chars]}…" if text else date)
    prompt = "These diary days form one constellation.\nDates/snippets:\n" + "\n".join(lines)
    if request.identity_hint:
        prompt += f"\n[Writer profile]\n{request.identity_hint[:500]}"
    prompt += '\n\nReturn only JSON: {"name": "...", "summary": "..."} with a one-sentence summary.'
    return prompt


def parse_identity_reply(content: str, member_ids: list[str]) -> ClusterIdentity:
    cleaned = _FENCE_RE.sub("", content).replace("```", "").strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError("Naming API returned non-JSON content") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Naming API returned JSON that is not an object")
    name = parsed.get("name")
    summary = parsed.get("summary")
    if not isinstance(name, str) or not name.strip() or not isinstance(summary, str) or not summary.strip():
        raise ValueError("Naming API response is missing name or summary")
    return bounded_identity(name, summary, member_ids)


class OpenAICompatibleNamer:
    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key_env: str | None = None,
        timeout_seconds: float = 10.0,
        temperature: float = 0.7,
        max_snippet_chars: int = 80,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._model = model
        self._api_key_env = api_key_env
        self._timeout_seconds = timeout_seconds
        self._temperature = temperature
        self._max_snippet_chars = max_snippet_chars

    def model_id(self) -> str:
        return self._model

    def name_cluster(self, request: NamingRequest) -> ClusterIdentity:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _user_prompt(request, self._max_snippet_chars)},
            ],
            "temperature": self._temperature,
        }
        data = json.dumps(payload).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._api_key_env:
            key = os.environ.get(self._api_key_env, "")
            if key:
                headers["Authorization"] = f"Bearer {key}"

        req = urllib.request.Request(
            f"{self._endpoint}/v1/chat/completions",
            data=data,
            headers=headers,
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=self._timeout_seconds) as response:
            body = json.loads(response.read().decode("utf-8"))

        choices = body.get("choices") or []
        content = ""
        if choices and isinstance(choices[0], dict):
            content = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not content:
            raise ValueError("Naming API returned an empty completion")
        return parse_identity_reply(content, request.member_ids)
