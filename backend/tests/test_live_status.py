import pytest
import requests

import backend.app.services.live_status as live_module
from backend.app.services.live_status import fetch_live_channels, parse_stream_logins, UpstreamFormatError
from backend.app.services.twitch_auth import AuthError


class StubTokenCache:
    def __init__(self, token="tok", client_id="cid", error=None):
        self.token = token
        self.client_id = client_id
        self.error = error
        self.invalidated = 0

    def get_token(self):
        if self.error is not None:
            raise self.error
        return self.token

    def invalidate(self):
        self.invalidated += 1


def install_get(monkeypatch, responses):
    calls = []

    def fake_get(url, params=None, headers=None, timeout=None):
        calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        result = responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(live_module.requests, "get", fake_get)
    return calls


def test_live_logins_are_lowercased(monkeypatch, make_response):
    calls = install_get(
        monkeypatch,
        [make_response(200, {"data": [{"user_login": "ValiV2"}, {"user_login": "eslcs"}]})],
    )

    live = fetch_live_channels(["valiv2", "EslCS", "lvndmark"], StubTokenCache(), timeout=3)

    assert live == {"valiv2", "eslcs"}
    assert calls[0]["url"] == live_module.TWITCH_STREAMS_URL
    assert calls[0]["headers"] == {"Client-ID": "cid", "Authorization": "Bearer tok"}
    assert calls[0]["timeout"] == 3
    assert ("first", 100) in calls[0]["params"]
    assert [v for k, v in calls[0]["params"] if k == "user_login"] == ["valiv2", "EslCS", "lvndmark"]


def test_large_roster_is_queried_in_batches(monkeypatch, make_response):
    roster = [f"chan{i}" for i in range(150)]
    calls = install_get(
        monkeypatch,
        [
            make_response(200, {"data": [{"user_login": "chan3"}]}),
            make_response(200, {"data": [{"user_login": "chan140"}]}),
        ],
    )

    live = fetch_live_channels(roster, StubTokenCache())

    assert live == {"chan3", "chan140"}
    assert len(calls) == 2
    assert len([1 for k, _ in calls[0]["params"] if k == "user_login"]) == 100
    assert len([1 for k, _ in calls[1]["params"] if k == "user_login"]) == 50


def test_non_json_body_means_nobody_live(monkeypatch, make_response, no_json):
    install_get(monkeypatch, [make_response(200, no_json, text="<html>")])
    assert fetch_live_channels(["valiv2"], StubTokenCache()) == set()


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"streams": []},
        {"data": {"user_login": "valiv2"}},
        {"data": [{"login": "valiv2"}]},
        {"data": ["valiv2"]},
    ],
)
def test_unexpected_shape_means_nobody_live(monkeypatch, make_response, payload):
    install_get(monkeypatch, [make_response(200, payload)])
    assert fetch_live_channels(["valiv2"], StubTokenCache()) == set()


def test_error_status_means_nobody_live(monkeypatch, make_response):
    install_get(monkeypatch, [make_response(503, {"message": "unavailable"})])
    cache = StubTokenCache()
    assert fetch_live_channels(["valiv2"], cache) == set()
    assert cache.invalidated == 0


def test_unauthorized_drops_cached_token(monkeypatch, make_response):
    install_get(monkeypatch, [make_response(401, {"message": "Invalid OAuth token"})])
    cache = StubTokenCache()
    assert fetch_live_channels(["valiv2"], cache) == set()
    assert cache.invalidated == 1


def test_network_failure_means_nobody_live(monkeypatch):
    install_get(monkeypatch, [requests.Timeout("read timed out")])
    assert fetch_live_channels(["valiv2"], StubTokenCache()) == set()


def test_auth_error_propagates(monkeypatch):
    calls = install_get(monkeypatch, [])
    cache = StubTokenCache(error=AuthError("bad credentials"))

    with pytest.raises(AuthError):
        fetch_live_channels(["valiv2"], cache)
    assert calls == []


def test_parse_stream_logins_rejects_non_object():
    with pytest.raises(UpstreamFormatError):
        parse_stream_logins("data")


def test_parse_stream_logins_empty_data():
    assert parse_stream_logins({"data": []}) == set()
