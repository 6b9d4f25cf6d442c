from __future__ import annotations

from pathlib import Path

from brainpulse.api import DEFAULT_API_URL
from brainpulse.settings import Settings


def test_defaults_without_environment() -> None:
    s = Settings.from_env({})
    assert s.api_url == DEFAULT_API_URL
    assert s.submit_scores is True
    assert s.log_level == "WARNING"
    assert s.data_dir == Path("~/.brainpulse").expanduser()


def test_environment_overrides(tmp_path: Path) -> None:
    s = Settings.from_env(
        {
            "BRAINPULSE_API_URL": "https://scores.example",
            "BRAINPULSE_DATA_DIR": str(tmp_path),
            "BRAINPULSE_SUBMIT_SCORES": "0",
            "BRAINPULSE_LOG_LEVEL": "debug",
            "BRAINPULSE_DEVICE_ID": "bp_fixed",
        }
    )
    assert s.api_url == "https://scores.example"
    assert s.profile_path.parent == tmp_path
    assert s.submit_scores is False
    assert s.log_level == "DEBUG"
    assert s.device_id() == "bp_fixed"


def test_device_id_is_created_once(tmp_path: Path) -> None:
    s = Settings(data_dir=tmp_path)
    first = s.device_id()
    assert first.startswith("bp_")
    assert Settings(data_dir=tmp_path).device_id() == first
