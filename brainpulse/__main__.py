from __future__ import annotations

import logging

from .app import run
from .settings import Settings


def main() -> int:
    """Entry point for running BrainPulse from the command line."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(settings=settings)


if __name__ == "__main__":
    raise SystemExit(main())
