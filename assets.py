"""Uploaded tool images on disk.

Files live flat under one upload root and are named ``<uuid hex><ext>``.
Tool rows reference them as ``/uploads/<filename>``. Deletes are best
effort: a file that cannot be removed is logged and left behind as an
orphan.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Optional
from uuid import uuid4

from errors import AssetWriteError, NotFoundError, ValidationError

logger = logging.getLogger("app.assets")

URL_PREFIX = "/uploads/"
DEFAULT_EXTENSION = ".jpg"
_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,10}$")

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


def is_safe_filename(filename: str) -> bool:
    if not filename or "\x00" in filename:
        return False
    return ".." not in filename and "/" not in filename and "\\" not in filename


def extension_of(original_filename: str | None) -> str:
    suffix = Path(original_filename or "").suffix.lower()
    # Windows client paths leak separators into the suffix
    if not _EXTENSION_RE.match(suffix):
        return DEFAULT_EXTENSION
    return suffix


def media_type(filename: str) -> str:
    return MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


class AssetStore:
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def reference_for(self, filename: str) -> str:
        return f"{URL_PREFIX}{filename}"

    def filename_of(self, reference: str) -> str:
        if reference.startswith(URL_PREFIX):
            return reference[len(URL_PREFIX):]
        return reference

    def _resolve(self, filename: str) -> Path:
        if not is_safe_filename(filename):
            raise ValidationError("invalid filename")
        return self.root / filename

    def store(self, data: bytes, original_filename: str | None) -> str:
        filename = f"{uuid4().hex}{extension_of(original_filename)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / filename).write_bytes(data)
        except OSError as exc:
            logger.exception("asset=%s write failed", filename)
            raise AssetWriteError("failed to store image") from exc

        logger.debug("asset=%s size=%s stored", filename, len(data))
        return self.reference_for(filename)

    def replace(
        self,
        old_path: Optional[str],
        data: bytes,
        original_filename: str | None,
        commit: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Store a new image, let ``commit`` point the row at it, then drop the old file."""
        new_path = self.store(data, original_filename)
        if commit is not None:
            try:
                commit(new_path)
            except Exception:
                self.delete(new_path)
                raise
        if old_path and old_path != new_path:
            self.delete(old_path)
        return new_path

    def delete(self, path: Optional[str]) -> None:
        if not path:
            return
        filename = self.filename_of(path)
        if not is_safe_filename(filename):
            logger.warning("asset=%r refusing to delete outside upload root", path)
            return
        try:
            (self.root / filename).unlink(missing_ok=True)
        except OSError:
            logger.warning("asset=%s delete failed; leaving orphan", filename, exc_info=True)

    def serve(self, filename: str) -> bytes:
        file_path = self._resolve(filename)
        try:
            return file_path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFoundError("image not found") from exc

    def list_filenames(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file())
