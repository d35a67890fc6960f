from __future__ import annotations

"""
extractor.py - .tar.gz -> directory in one streamed pass.

gzip and tar are read as a stream (tarfile mode "r|gz"), so the archive is
never decompressed to a temporary .tar first. A failure part-way leaves
whatever was already written; nothing is cleaned up.
"""

import gzip
import logging
from pathlib import Path
import tarfile
import zlib

from .errors import ExtractError


logger = logging.getLogger(__name__)


def _check_member(member: tarfile.TarInfo) -> None:
    name = member.name
    if name.startswith("/") or ".." in Path(name).parts:
        raise ExtractError(f"Unsafe path in archive: {name}")


def extract_tar_gz(source: str, destination: str) -> list[Path]:
    """Returns extracted regular files in archive order. OSError if `source` can't be opened."""
    dest = Path(destination)
    dest.mkdir(parents=True, exist_ok=True)
    files: list[Path] = []

    with open(source, "rb") as raw:
        try:
            with tarfile.open(fileobj=raw, mode="r|gz") as tar:
                for member in tar:
                    _check_member(member)
                    tar.extract(member, path=dest, filter="data")
                    if member.isfile():
                        files.append(dest / member.name)
        except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError) as e:
            raise ExtractError(f"Failed to extract {source}: {e}") from e

    logger.info("extracted %d file(s) from %s into %s", len(files), source, dest)
    return files


def list_extracted(destination: str) -> list[str]:
    """Relative paths of all files under destination, sorted."""
    root = Path(destination)
    if not root.exists():
        return []
    return sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file())
