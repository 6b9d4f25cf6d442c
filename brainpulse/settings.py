from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .api import DEFAULT_API_URL

logger = logging.getLogger("brainpulse.settings")

DEVICE_ID_FILE = "device_id"
PROFILE_FILE = "difficulty_profile.json"
HISTORY_DB_FILE = "history.sqlite3"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(raw: str | None, default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning("ignoring unrecognised boolean value %r", raw)
    return default


@dataclass(frozen=True, slots=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    data_dir: Path = Path("~/.brainpulse").expanduser()
    device_id_override: str | None = None
    submit_scores: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        e = os.environ if env is None else env
        data_dir = e.get("BRAINPULSE_DATA_DIR") or "~/.brainpulse"
        return cls(
            api_url=e.get("BRAINPULSE_API_URL") or DEFAULT_API_URL,
            data_dir=Path(data_dir).expanduser(),
            device_id_override=e.get("BRAINPULSE_DEVICE_ID") or None,
            submit_scores=_env_flag(e.get("BRAINPULSE_SUBMIT_SCORES"), True),
            log_level=(e.get("BRAINPULSE_LOG_LEVEL") or "WARNING").upper(),
        )

    @property
    def profile_path(self) -> Path:
        return self.data_dir / PROFILE_FILE

    @property
    def history_path(self) -> Path:
        return self.data_dir / HISTORY_DB_FILE

    def device_id(self) -> str:
        """Stable anonymous device id, created on first use."""

        if self.device_id_override:
            return self.device_id_override

        path = self.data_dir / DEVICE_ID_FILE
        if path.exists():
            stored = path.read_text(encoding="utf-8").strip()
            if stored:
                return stored

        new_id = f"bp_{uuid.uuid4().hex[:16]}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(new_id, encoding="utf-8")
        logger.info("created device id in %s", path)
        return new_id
