from __future__ import annotations

import logging
from pathlib import Path

import requests

from .errors import HTTPError, NetworkError
from .http_engine import HttpEngine


logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def download_file(url: str, destination: str, *, engine: HttpEngine, chunk_size: int = CHUNK_SIZE) -> int:
    """
    Stream `url` into `destination`, always from byte zero. Returns bytes written.

    The destination is opened before the request goes out, so:
    - non-200 status -> HTTPError, the (empty) file stays on disk
    - transport failure (connect or mid-body) -> file removed, NetworkError
    """
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with open(dest, "wb") as f:
            resp, err, _elapsed_ms = engine.request(url, stream=True, expect="binary")
            if resp is None:
                raise NetworkError(f"download failed for '{url}': {err}", url=url)
            try:
                if int(resp.status_code) != 200:
                    raise HTTPError(url, resp.status_code)
                for chunk in resp.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
            except requests.RequestException as e:
                raise NetworkError(f"download interrupted for '{url}' after {written} bytes: {e}", url=url) from e
            finally:
                resp.close()
    except NetworkError:
        dest.unlink(missing_ok=True)
        raise

    logger.info("downloaded %s -> %s (%d bytes)", url, dest, written)
    return written
