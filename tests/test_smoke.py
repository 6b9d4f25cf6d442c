"""Smoke tests for the pygame UI.

These tests verify that the application's main loop can initialise and
execute a handful of frames without crashing when the SDL dummy video
driver is used.  They do not attempt to check rendering correctness;
rather they ensure that the integration points between pygame and the
application do not raise exceptions in a headless environment.
"""

from __future__ import annotations

import os
from pathlib import Path

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless(tmp_path: Path) -> None:
    """Ensure the application can start and run a few frames headlessly."""
    # Import inside the test so that environment variables take effect
    from brainpulse.app import run
    from brainpulse.settings import Settings

    exit_code = run(max_frames=3, settings=Settings(data_dir=tmp_path, submit_scores=False))
    assert exit_code == 0
    assert (tmp_path / "history.sqlite3").exists()


def test_ui_smoke_start_session_and_play_frames(tmp_path: Path) -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from brainpulse.app import run
    from brainpulse.settings import Settings

    def key(k: int) -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "mod": 0, "unicode": ""}))

    def inject(frame: int) -> None:
        # Main Menu -> Activation -> condition check -> start first game -> answer -> quit session
        if frame == 1:
            key(pygame.K_RETURN)
        elif frame == 2:
            key(pygame.K_RIGHT)
        elif frame == 3:
            key(pygame.K_RETURN)
        elif frame == 4:
            key(pygame.K_RETURN)
        elif frame in (6, 7, 8):
            key(pygame.K_RIGHT)
        elif frame == 10:
            key(pygame.K_ESCAPE)
        elif frame == 12:
            key(pygame.K_DOWN)
        elif frame == 13:
            key(pygame.K_DOWN)
        elif frame == 14:
            key(pygame.K_RETURN)
        elif frame == 16:
            key(pygame.K_ESCAPE)

    settings = Settings(data_dir=tmp_path, submit_scores=False)
    assert run(max_frames=20, event_injector=inject, settings=settings) == 0
