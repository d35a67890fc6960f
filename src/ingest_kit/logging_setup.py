from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

_CONFIGURED = False


def configure_logging(verbose: bool = False) -> None:
    """
    One stderr handler on the root logger (stdout stays clean for JSON summaries).

    Repeated calls only adjust the level.
    """
    global _CONFIGURED
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if _CONFIGURED:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _CONFIGURED = True
