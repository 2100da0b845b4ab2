"""
Local storage for uploaded cover images.

Files live in one flat directory and are referenced from article rows as
``<url_prefix><filename>``. Only values carrying that prefix are ever treated as
local files; anything else is an external URL and is left alone.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from fastapi import UploadFile

from .configuration import UploadSettings
from .errors import InvalidUpload, UploadTooLarge
from .utils import ensure_directory, split_extension

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
COVER_IMAGE_FIELD = "cover_image"


@dataclass
class StoredUpload:
    filename: str
    path: Path
    url: str


class UploadStore:
    def __init__(
        self,
        directory: Path,
        url_prefix: str = "/uploads/",
        field_name: str = COVER_IMAGE_FIELD,
        max_bytes: int = 5 * 1024 * 1024,
        allowed_types: Optional[Dict[str, Iterable[str]]] = None,
    ) -> None:
        self.directory = ensure_directory(Path(directory)).resolve()
        self.url_prefix = url_prefix if url_prefix.endswith("/") else f"{url_prefix}/"
        self.field_name = field_name
        self.max_bytes = max_bytes
        self.allowed_types = {
            extension.lower().lstrip("."): {mime.lower() for mime in mimes}
            for extension, mimes in (allowed_types or {}).items()
        }

    @classmethod
    def from_settings(cls, settings: UploadSettings) -> "UploadStore":
        return cls(
            directory=settings.directory,
            url_prefix=settings.url_prefix,
            max_bytes=settings.max_bytes,
            allowed_types=settings.allowed_types,
        )

    def check_type(self, filename: str, content_type: Optional[str]) -> None:
        """The extension and the declared mime type must both be allowed and must map to each other."""
        _, extension = split_extension(filename)
        accepted = self.allowed_types.get(extension.lower().lstrip("."))
        mime = (content_type or "").split(";")[0].strip().lower()
        if not accepted or mime not in accepted:
            logger.info(f"Rejected upload {filename!r} declared as {content_type!r}")
            raise InvalidUpload()

    def generate_filename(self, original: str) -> str:
        _, extension = split_extension(original)
        unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{self.field_name}-{unique_suffix}{extension}"

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}{filename}"

    async def save(self, upload: UploadFile) -> StoredUpload:
        """
        Validate and stream ``upload`` into the upload directory.

        Raises:
            InvalidUpload: extension or mime type not allowed
            UploadTooLarge: more than ``max_bytes`` were received; the partial
                file is removed before raising
        """
        original = upload.filename or ""
        self.check_type(original, upload.content_type)

        filename = self.generate_filename(original)
        destination = self.directory / filename
        written = 0
        try:
            with destination.open("wb") as buffer:
                while chunk := await upload.read(CHUNK_SIZE):
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise UploadTooLarge(f"File too large. Maximum size is {self.max_bytes} bytes")
                    buffer.write(chunk)
        except BaseException:
            destination.unlink(missing_ok=True)
            raise
        finally:
            await upload.close()

        logger.info(f"Stored upload {original!r} as {filename} ({written} bytes)")
        return StoredUpload(filename=filename, path=destination, url=self.url_for(filename))

    def is_local(self, cover_image: Optional[str]) -> bool:
        return bool(cover_image) and cover_image.startswith(self.url_prefix)

    def local_path(self, cover_image: Optional[str]) -> Optional[Path]:
        """
        Map a stored cover value to a file in the upload directory.

        Returns None for external URLs and for prefixed values that do not name
        a plain file directly inside the directory (e.g. ``/uploads/../x``).
        """
        if not self.is_local(cover_image):
            return None
        name = cover_image[len(self.url_prefix):]
        if not name or name != Path(name).name or name in {".", ".."}:
            logger.warning(f"Ignoring cover image outside the upload directory: {cover_image!r}")
            return None
        return self.directory / name

    def remove(self, cover_image: Optional[str]) -> bool:
        """
        Delete the local file behind ``cover_image``.

        Returns True if a file was removed. A missing file is not an error; any
        other OSError propagates.
        """
        path = self.local_path(cover_image)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Removed cover image file {path.name}")
        return True
