from __future__ import annotations

import json

import httpx

from brainpulse.api import DEFAULT_TIMEOUT_S, ScoreSubmitter, to_score_submission
from brainpulse.cognitive_core import GameMode, GameResult


def _result(**overrides: object) -> GameResult:
    fields: dict[str, object] = {
        "game_id": "color-stroop",
        "score": 85,
        "duration_ms": 45_000,
        "accuracy": 0.9,
        "difficulty": 3,
        "correct_count": 18,
        "total_count": 20,
        "reaction_time_ms": 450.0,
    }
    fields.update(overrides)
    return GameResult(**fields)  # type: ignore[arg-type]


def test_submission_fields_are_clamped() -> None:
    sub = to_score_submission(_result(score=20_000, accuracy=1.5, reaction_time_ms=-3.0), "dev", "rest")
    assert sub.score == 10_000
    assert sub.level == 3
    assert sub.accuracy == 1.0
    assert sub.avg_response_time == 0.0
    assert sub.mode is GameMode.REST


def test_missing_reaction_time_is_omitted() -> None:
    payload = to_score_submission(_result(reaction_time_ms=None), "dev", GameMode.ACTIVATION).to_json()
    assert "avg_response_time" not in payload
    assert payload["mode"] == "activation"


def test_submit_posts_json_to_scores_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"success": True})

    submitter = ScoreSubmitter("http://api.test/", client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert submitter.submit(to_score_submission(_result(), "bp_dev", GameMode.ACTIVATION)) is True

    assert len(seen) == 1
    assert str(seen[0].url) == "http://api.test/api/scores"
    body = json.loads(seen[0].content)
    assert body == {
        "device_id": "bp_dev",
        "game_id": "color-stroop",
        "mode": "activation",
        "score": 85,
        "level": 3,
        "accuracy": 0.9,
        "avg_response_time": 450.0,
    }


def test_submit_failures_are_swallowed() -> None:
    def rejecting(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "bad"})

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    sub = to_score_submission(_result(), "bp_dev", GameMode.ACTIVATION)
    for handler in (rejecting, unreachable):
        submitter = ScoreSubmitter("http://api.test", client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert submitter.submit(sub) is False


def test_submit_results_counts_accepted() -> None:
    calls = 0

    def flaky(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200 if calls % 2 else 500)

    submitter = ScoreSubmitter("http://api.test", client=httpx.Client(transport=httpx.MockTransport(flaky)))
    assert submitter.submit_results([_result(), _result(), _result()], "bp_dev", "activation") == 2


def test_malformed_base_url_is_a_failed_submission() -> None:
    def never(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request should be built for a malformed url")

    submitter = ScoreSubmitter("http://[::1", client=httpx.Client(transport=httpx.MockTransport(never)))
    assert submitter.submit_results([_result(), _result()], "bp_dev", GameMode.ACTIVATION) == 0


def test_requests_use_the_short_default_timeout() -> None:
    seen: list[dict[str, float | None]] = []

    def ok(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"])
        return httpx.Response(200)

    submitter = ScoreSubmitter("http://api.test", client=httpx.Client(transport=httpx.MockTransport(ok)))
    assert submitter.submit(to_score_submission(_result(), "bp_dev", GameMode.ACTIVATION)) is True
    assert DEFAULT_TIMEOUT_S <= 2.0
    assert seen[0]["connect"] == DEFAULT_TIMEOUT_S
    assert seen[0]["read"] == DEFAULT_TIMEOUT_S
