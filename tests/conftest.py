from __future__ import annotations

import json
from typing import Any

import pytest
from requests.structures import CaseInsensitiveDict

from unifi_block.session import Session, SessionConfig


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", headers: dict | None = None, reason: str = ""):
        self.status_code = status_code
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {})
        self.reason = reason


class FakeHTTP:
    """Stands in for requests.Session; replays queued responses and records calls."""

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self.closed = False
        self.headers: dict[str, str] = {}

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def request(self, method, url, data=None, headers=None, timeout=None, params=None, **kwargs):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "data": data,
                "headers": dict(headers or {}),
                "timeout": timeout,
                "params": params,
            }
        )
        if not self.responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True

    def json_body(self, index: int) -> Any:
        return json.loads(self.calls[index]["data"].decode("utf-8"))


def devices_body(*devices: dict) -> str:
    return json.dumps({"meta": {"rc": "ok"}, "data": list(devices)})


@pytest.fixture
def http() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture
def session(http: FakeHTTP) -> Session:
    config = SessionConfig().with_endpoint("https://controller.test").with_credentials("admin", "secret")
    return Session(config, http=http)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "UNIFI_ENDPOINT",
        "UNIFI_USERNAME",
        "UNIFI_PASSWORD",
        "UNIFI_SITE",
        "UNIFI_TIMEOUT",
        "UNIFI_VERIFY_SSL",
        "UNIFI_BLOCK_CONFIG",
        "CONSUL_HTTP_ADDR",
        "CONSUL_HTTP_TOKEN",
        "CONSUL_HTTP_SSL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
