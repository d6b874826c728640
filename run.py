from __future__ import annotations

import os

import uvicorn

from photo_cropper.logging_config import setup_logging


def main() -> None:
    setup_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("photo_cropper.main:app", host=host, port=port, workers=1, log_config=None)


if __name__ == "__main__":
    main()
