# reporthub/logging_config.py
# Role: One place that configures standard-library logging for the app.

import logging

from reporthub.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """
    Attach a stream handler to the "reporthub" logger tree.

    Safe to call more than once; only the first call installs the handler.
    Later calls still update the level.
    """
    global _configured

    root = logging.getLogger("reporthub")
    root.setLevel((level or LOG_LEVEL).upper())

    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    # uvicorn installs its own root handlers; don't print every record twice
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the "reporthub" namespace."""
    if not name.startswith("reporthub"):
        name = f"reporthub.{name}"
    return logging.getLogger(name)
