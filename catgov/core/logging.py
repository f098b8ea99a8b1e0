from __future__ import annotations

import logging

from catgov.core.config import get_settings


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    # Install a single stream handler on the root logger; repeated calls only adjust the level.
    settings = get_settings()
    root = logging.getLogger()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root.setLevel(level)
    if any(getattr(handler, "_catgov", False) for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._catgov = True  # type: ignore[attr-defined]
    root.addHandler(handler)
