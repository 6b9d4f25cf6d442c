"""Score submission to the BrainPulse backend.

Submission is fire-and-forget: failures are logged and dropped so they can
never block scoring or local persistence of a session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass

import httpx

from .cognitive_core import GameMode, GameResult, clamp01

logger = logging.getLogger("brainpulse.api")

DEFAULT_API_URL = "http://localhost:8787"
SCORES_PATH = "/api/scores"
DEFAULT_TIMEOUT_S = 2.0

MAX_SUBMITTED_SCORE = 10_000
MAX_SUBMITTED_LEVEL = 100
MAX_DEVICE_ID_LEN = 128
MAX_GAME_ID_LEN = 64


@dataclass(frozen=True, slots=True)
class ScoreSubmission:
    device_id: str
    game_id: str
    mode: GameMode
    score: int
    level: int
    accuracy: float
    avg_response_time: float | None = None

    def to_json(self) -> dict[str, object]:
        payload = asdict(self)
        payload["mode"] = str(self.mode.value)
        if self.avg_response_time is None:
            del payload["avg_response_time"]
        return payload


def to_score_submission(result: GameResult, device_id: str, mode: GameMode | str) -> ScoreSubmission:
    if not device_id:
        raise ValueError("device_id must be non-empty")
    rt = result.reaction_time_ms
    return ScoreSubmission(
        device_id=device_id[:MAX_DEVICE_ID_LEN],
        game_id=result.game_id[:MAX_GAME_ID_LEN],
        mode=GameMode(mode),
        score=max(0, min(MAX_SUBMITTED_SCORE, int(result.score))),
        level=max(1, min(MAX_SUBMITTED_LEVEL, int(result.difficulty))),
        accuracy=clamp01(float(result.accuracy)),
        avg_response_time=None if rt is None else max(0.0, float(rt)),
    )


class ScoreSubmitter:
    """Posts results one request at a time on the calling thread.

    A request waits up to ``timeout`` seconds on each network step, so an
    unreachable backend delays the caller by about that much per result.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client()
        self._timeout = float(timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._client.close()

    def submit(self, submission: ScoreSubmission) -> bool:
        url = f"{self._base_url}{SCORES_PATH}"
        try:
            resp = self._client.post(url, json=submission.to_json(), timeout=self._timeout)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("score submission failed for %s: %s", submission.game_id, e)
            return False
        return True

    def submit_results(self, results: Iterable[GameResult], device_id: str, mode: GameMode | str) -> int:
        """Submit every result; returns how many the backend accepted."""

        accepted = 0
        for result in results:
            if self.submit(to_score_submission(result, device_id, mode)):
                accepted += 1
        return accepted
