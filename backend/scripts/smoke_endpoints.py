from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import patch

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module
from backend.app.services.twitch_auth import TwitchTokenCache


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def reset_state() -> None:
    main_module.TOKEN_CACHE = TwitchTokenCache("smoke-client", "smoke-secret")


def token_ok(*args, **kwargs) -> FakeResponse:
    _ = (args, kwargs)
    return FakeResponse(200, {"access_token": "smoke-token", "expires_in": 3600})


def test_root_and_health() -> None:
    assert_true("running" in main_module.root(), "/ should answer with a liveness string")
    assert_true(main_module.health().get("ok") is True, "/health should return ok=true")


def test_token_reused_across_requests() -> None:
    reset_state()
    call_count = {"token": 0, "streams": 0}
    first_live = main_module.CHANNEL_CONFIG.roster[0]

    def fake_post(*args, **kwargs):
        call_count["token"] += 1
        return token_ok(*args, **kwargs)

    def fake_get(*args, **kwargs):
        _ = (args, kwargs)
        call_count["streams"] += 1
        return FakeResponse(200, {"data": [{"user_login": first_live.upper()}]})

    with (
        patch("requests.post", side_effect=fake_post),
        patch("requests.get", side_effect=fake_get),
    ):
        payload_1 = main_module.live_order()
        payload_2 = main_module.live_order()

    assert_true(call_count["token"] == 1, "token should be fetched once then cached")
    assert_true(call_count["streams"] == 2, "streams should be polled on every request")
    assert_true(payload_1["ordered"] == payload_2["ordered"], "same live set should give the same order")
    assert_true(payload_1["live"] == [first_live], "live list should use roster casing")
    assert_true(
        sorted(payload_1["ordered"]) == sorted(main_module.CHANNEL_CONFIG.roster),
        "ordered should be a permutation of the roster",
    )


def test_malformed_streams_soft_fail() -> None:
    reset_state()
    with (
        patch("requests.post", side_effect=token_ok),
        patch("requests.get", return_value=FakeResponse(200, None, text="<html>")),
    ):
        payload = main_module.live_order()

    assert_true(isinstance(payload, dict), "/live-order should not fail on a malformed streams body")
    assert_true(payload["live"] == [], "malformed streams body should mean nobody live")
    assert_true(payload["ordered"] == list(main_module.CHANNEL_CONFIG.roster), "roster order expected")


def test_auth_failure_hard_fail() -> None:
    reset_state()
    with patch("requests.post", return_value=FakeResponse(400, {"message": "invalid client"})):
        response = main_module.live_order()

    assert_true(response.status_code == 502, "auth failure should return 502")
    payload = json.loads(response.body)
    assert_true(payload.get("error") == "twitch_auth_failed", "auth failure should set error")
    assert_true(payload.get("ordered") == list(main_module.CHANNEL_CONFIG.roster), "auth failure falls back to roster")


def run() -> int:
    checks = [
        ("root + health", test_root_and_health),
        ("token reused across requests", test_token_reused_across_requests),
        ("malformed streams soft fail", test_malformed_streams_soft_fail),
        ("auth failure hard fail", test_auth_failure_hard_fail),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
