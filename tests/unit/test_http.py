from __future__ import annotations

import pytest
import requests

from unlocode_coords.common.http import HttpClient, HttpRequestError, RetryConfig, RetryableHttpError


class FakeResponse:
    def __init__(self, status_code: int, payload=None, raises_json: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._raises_json = raises_json

    def json(self):
        if self._raises_json:
            raise ValueError("bad json")
        return self._payload


def test_http_get_json_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    captured = {}

    def fake_request(**kwargs):
        captured.update(kwargs)
        return FakeResponse(200, [{"lat": "45.0"}])

    monkeypatch.setattr(client.session, "request", fake_request)
    payload = client.get_json("https://nominatim.example.test/search", source_type="nominatim", params={"city": "Milano"})

    assert payload == [{"lat": "45.0"}]
    assert captured["params"] == {"city": "Milano"}
    assert captured["headers"]["User-Agent"].startswith("unlocode-coordinates/")


def test_http_retryable_status_raises_retryable_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(503, {"x": 1}))

    with pytest.raises(RetryableHttpError):
        client.get_json("https://nominatim.example.test/search", source_type="nominatim")


def test_http_retries_until_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.0, max_wait=0.0))
    responses = iter([FakeResponse(429), FakeResponse(200, {"ok": True})])
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: next(responses))
    monkeypatch.setattr("time.sleep", lambda _seconds: None)

    assert client.get_json("https://query.wikidata.example.test/sparql", source_type="wikidata") == {"ok": True}


def test_http_client_error_is_not_retried(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3))
    calls = []

    def fake_request(**_kwargs):
        calls.append(1)
        return FakeResponse(404)

    monkeypatch.setattr(client.session, "request", fake_request)

    with pytest.raises(HttpRequestError):
        client.get_json("https://nominatim.example.test/search", source_type="nominatim")
    assert len(calls) == 1


def test_http_invalid_json_raises(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, raises_json=True))

    with pytest.raises(HttpRequestError):
        client.get_json("https://nominatim.example.test/search", source_type="nominatim")


def test_unknown_source_type_is_not_rate_limited(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1), rates_per_sec={"nominatim": 2.0})
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, {}))

    assert client.limiters["nominatim"].default_rate_per_sec == 2.0
    assert client.get_json("https://other.example.test", source_type="other") == {}


def test_http_connection_error_is_wrapped_as_retryable(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    def fake_request(**_kwargs):
        raise requests.ConnectionError("connection reset")

    monkeypatch.setattr(client.session, "request", fake_request)

    with pytest.raises(RetryableHttpError) as excinfo:
        client.get_json("https://nominatim.example.test/search", source_type="nominatim")
    assert excinfo.value.error_code == "HTTP_ERROR"


def test_http_timeout_is_retried_until_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.0, max_wait=0.0))
    outcomes = iter([requests.Timeout("read timed out"), FakeResponse(200, {"ok": True})])

    def fake_request(**_kwargs):
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(client.session, "request", fake_request)
    monkeypatch.setattr("time.sleep", lambda _seconds: None)

    assert client.get_json("https://nominatim.example.test/search", source_type="nominatim") == {"ok": True}


def test_http_request_exception_is_not_retried(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3))
    calls = []

    def fake_request(**_kwargs):
        calls.append(1)
        raise requests.exceptions.InvalidURL("bad url")

    monkeypatch.setattr(client.session, "request", fake_request)

    with pytest.raises(HttpRequestError) as excinfo:
        client.get_json("https://nominatim.example.test/search", source_type="nominatim")
    assert not isinstance(excinfo.value, RetryableHttpError)
    assert len(calls) == 1
