# src/cache/fingerprint.py — v3
"""Manifest fingerprinting over dependency-declaration files.

Each matched file is hashed with SHA-256, then the per-file digests are
hashed together in path order. Paths are compared as project-relative POSIX
strings so every host produces the same fingerprint for the same tree.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Iterable

from cacheplan.core.models import ManifestFingerprint

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_PATTERNS: tuple[str, ...] = ("**/Cargo.toml",)

_IGNORED_DIRS = frozenset({".git"})
_READ_CHUNK = 1 << 16


class FingerprintError(Exception):
    """Raised when manifest files are absent or unreadable."""


def compute_fingerprint(
    root: Path | str,
    patterns: Iterable[str] = DEFAULT_MANIFEST_PATTERNS,
) -> ManifestFingerprint:
    """Fingerprint all files under *root* matching any of *patterns*.

    Args:
        root: Project root directory.
        patterns: Glob patterns relative to *root* (``**`` is recursive).

    Returns:
        ManifestFingerprint with the combined digest and the hashed files.

    Raises:
        FingerprintError: If *root* is not a directory, nothing matches,
            or a matched file cannot be read.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise FingerprintError(f"Project root is not a directory: {root_path}")

    files = find_manifest_files(root_path, patterns)
    if not files:
        raise FingerprintError(
            f"No manifest files under {root_path} match {list(patterns)!r}"
        )

    combined = hashlib.sha256()
    for rel in files:
        combined.update(_file_digest(root_path / rel))

    fingerprint = ManifestFingerprint(value=combined.hexdigest(), files=tuple(files))
    logger.info(
        "Fingerprinted %d manifest file(s): %s", len(files), fingerprint.value[:12]
    )
    return fingerprint


def find_manifest_files(root: Path, patterns: Iterable[str]) -> list[str]:
    """Return sorted, de-duplicated project-relative POSIX paths."""
    matched: set[str] = set()
    for pattern in patterns:
        for path in root.glob(pattern):
            if not path.is_file():
                continue
            rel = path.relative_to(root)
            if _IGNORED_DIRS.intersection(rel.parts[:-1]):
                continue
            matched.add(rel.as_posix())
    return sorted(matched)


def fingerprint_bytes(contents: Iterable[bytes]) -> str:
    """Fingerprint in-memory manifest contents with the same algorithm."""
    combined = hashlib.sha256()
    for data in contents:
        combined.update(hashlib.sha256(data).digest())
    return combined.hexdigest()


def _file_digest(path: Path) -> bytes:
    """SHA-256 digest of one file's bytes."""
    digest = hashlib.sha256()
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_READ_CHUNK), b""):
                digest.update(chunk)
    except OSError as e:
        raise FingerprintError(f"Cannot read manifest file {path}: {e}") from e
    return digest.digest()
