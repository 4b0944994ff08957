"""
factorshot.__main__ — Entry point for ``python -m factorshot``
==============================================================

Loads ``.env`` and ``config.yaml``, sets up logging and serves the API with
uvicorn on ``api_port``.  ``JWT_SECRET`` and ``DATABASE_URL`` are checked
when the app module is imported, before the port is bound.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from factorshot.config import load_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("factorshot")


def main() -> None:
    load_dotenv()

    try:
        cfg = load_config()
    except (FileNotFoundError, KeyError) as exc:
        logger.critical("Cannot start: %s", exc)
        sys.exit(1)

    logger.info("Starting %s on port %d", cfg.app_name, cfg.api_port)
    uvicorn.run("factorshot.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()
