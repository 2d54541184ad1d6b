"""
Object/file store for job documents.

Job rows reference their document by a relative path inside the
"print-jobs" bucket. This store resolves those references under a root
directory and returns the raw bytes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .exceptions import DownloadFailure, MissingFileError


class LocalFileStore:
    """Fetches document bytes by reference from a local bucket directory."""

    def __init__(self, root: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.root = Path(root).resolve()
        self._logger = logger or logging.getLogger(__name__)

    def resolve(self, reference: str) -> Path:
        """
        Map a reference to a path inside the bucket.

        Raises:
            DownloadFailure: If the reference escapes the bucket root
        """
        path = (self.root / reference.lstrip("/")).resolve()
        if path != self.root and self.root not in path.parents:
            raise DownloadFailure(reference, "reference points outside the file store")
        return path

    def fetch(self, reference: Optional[str]) -> bytes:
        """
        Return the bytes stored under ``reference``.

        Raises:
            MissingFileError: If the reference is empty or nothing is stored under it
            DownloadFailure: If the file exists but cannot be read
        """
        if not reference or not reference.strip():
            raise MissingFileError("missing file")

        path = self.resolve(reference)
        if not path.is_file():
            raise MissingFileError("missing file", reference=reference)

        try:
            data = path.read_bytes()
        except OSError as e:
            self._logger.error(f"Reading {reference} failed: {e}")
            raise DownloadFailure(reference, str(e)) from e

        self._logger.debug(f"Fetched {reference} ({len(data)} bytes)")
        return data
