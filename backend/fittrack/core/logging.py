# fittrack/core/logging.py
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    # called once from main; uvicorn keeps its own handlers
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
