"""Run the collector: ``python -m triostack_audit.collector``."""

from __future__ import annotations

import logging

import uvicorn

from ..config import config
from .app import create_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")


def main() -> None:
    uvicorn.run(create_app(), host=config.collector_host, port=config.collector_port)


if __name__ == "__main__":
    main()
