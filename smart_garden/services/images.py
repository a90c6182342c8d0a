from __future__ import annotations

import time
from pathlib import Path
from typing import BinaryIO

from smart_garden.core.errors import InvalidInputError

ALLOWED_SUFFIXES = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
UPLOADS_URL_PREFIX = "/uploads"
CHUNK_SIZE = 64 * 1024


class ImageTooLargeError(InvalidInputError):
    pass


class ImageStore:
    def __init__(self, *, directory: str | Path, max_bytes: int) -> None:
        self._directory = Path(directory)
        self._max_bytes = max_bytes

    def save(self, source: BinaryIO, original_name: str | None) -> str:
        """Copy an uploaded image to disk and return its public reference."""
        suffix = Path(original_name or "").suffix.lower()
        if suffix not in ALLOWED_SUFFIXES:
            raise InvalidInputError(f"Unsupported image type: {suffix or 'none'}")

        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._directory / f"{int(time.time() * 1000)}{suffix}"
        written = 0
        with target.open("wb") as out:
            while chunk := source.read(CHUNK_SIZE):
                written += len(chunk)
                if written > self._max_bytes:
                    break
                out.write(chunk)
        if written > self._max_bytes:
            target.unlink(missing_ok=True)
            raise ImageTooLargeError(
                f"Image exceeds the {self._max_bytes // (1024 * 1024)}MB limit"
            )
        return f"{UPLOADS_URL_PREFIX}/{target.name}"

    def discard(self, reference: str) -> None:
        name = Path(reference).name
        (self._directory / name).unlink(missing_ok=True)
