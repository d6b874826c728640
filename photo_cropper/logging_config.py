from __future__ import annotations

import logging
import sys


class KVFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        line = " | ".join(f"{k}={v}" for k, v in base.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int | str = logging.INFO) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(KVFormatter())
    logging.root.handlers.clear()
    logging.root.setLevel(level)
    logging.root.addHandler(handler)
    for noisy in ["uvicorn.access", "mediapipe", "absl"]:
        logging.getLogger(noisy).setLevel(logging.WARNING)
