# src/cache/archive.py — v1
"""Pack and unpack cache storage paths as gzip tarballs."""

from __future__ import annotations

import io
import logging
import tarfile
from pathlib import Path

logger = logging.getLogger(__name__)


def resolve_storage_path(path: str, workdir: Path | None = None) -> Path:
    """Expand ``~`` and anchor relative paths at *workdir*."""
    p = Path(path).expanduser()
    if not p.is_absolute() and workdir is not None:
        p = workdir / p
    return p


def pack_directory(path: Path) -> bytes | None:
    """Archive the contents of *path*.

    Returns:
        Gzip tarball bytes, or None if *path* is not a directory.
    """
    if not path.is_dir():
        return None

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for child in sorted(path.iterdir()):
            tar.add(str(child), arcname=child.name)
    data = buffer.getvalue()
    logger.debug("Packed %s (%d bytes)", path, len(data))
    return data


def unpack_archive(data: bytes, dest: Path) -> int:
    """Extract a tarball produced by :func:`pack_directory` into *dest*.

    Returns:
        Number of archive members extracted.
    """
    dest.mkdir(parents=True, exist_ok=True)
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        members = tar.getmembers()
        tar.extractall(str(dest), filter="data")
    logger.debug("Unpacked %d member(s) into %s", len(members), dest)
    return len(members)
