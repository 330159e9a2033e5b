"""Logging setup for save tooling."""

import logging


def configure_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s [%(levelname)5s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt)
