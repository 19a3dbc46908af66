from __future__ import annotations

import io
import logging
import os
import tempfile
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_WIDTH = 100

# Pillow cannot write these modes as JPEG.
_JPEG_SAFE_MODES = {"RGB", "L", "CMYK"}


class UnsupportedMediaError(ValueError):
    def __init__(self, detail: str = "unsupported_media") -> None:
        super().__init__(detail)


class PathTraversalError(ValueError):
    def __init__(self, detail: str = "path_traversal") -> None:
        super().__init__(detail)


@dataclass(frozen=True)
class StoredFile:
    path: str
    size: int
    media_type: str
    preview: bytes


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def get_extension(filename: str) -> str:
    """Text after the last dot of an uploaded filename."""
    if not filename or not filename.strip():
        raise ValueError("missing_filename")
    if "." not in filename:
        raise UnsupportedMediaError()
    ext = filename.rsplit(".", 1)[1]
    if not ext:
        raise UnsupportedMediaError()
    return ext


def _format_for_extension(ext: str) -> str:
    fmt = Image.registered_extensions().get(f".{ext.lower()}")
    if fmt is None or fmt not in Image.SAVE:
        raise UnsupportedMediaError()
    return fmt


def make_preview(data: bytes, ext: str, width: int = DEFAULT_PREVIEW_WIDTH) -> tuple[bytes, str]:
    """Scale an image to ``width`` pixels wide, keeping the aspect ratio.

    Returns the encoded preview and the Pillow format name used, which is the
    one implied by ``ext`` rather than whatever the bytes claim to be.
    """
    fmt = _format_for_extension(ext)
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            src_width, src_height = image.size
            if src_width <= 0 or src_height <= 0:
                raise UnsupportedMediaError()
            height = max(1, round(src_height * width / src_width))
            preview = image.resize((width, height))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise UnsupportedMediaError() from exc

    if fmt == "JPEG" and preview.mode not in _JPEG_SAFE_MODES:
        preview = preview.convert("RGB")

    out = io.BytesIO()
    try:
        preview.save(out, format=fmt)
    except (OSError, ValueError) as exc:
        raise UnsupportedMediaError() from exc
    return out.getvalue(), fmt


class MediaStore:
    """Image files for one kind of owner (ads or avatars) under a base directory."""

    def __init__(self, base_dir: str | os.PathLike[str], preview_width: int = DEFAULT_PREVIEW_WIDTH) -> None:
        self.base_dir = Path(base_dir)
        self.preview_width = preview_width

    def build_filename(self, owner_username: str, original_filename: str, stamp: int | None = None) -> str:
        if stamp is None:
            stamp = _epoch_millis()
        return f"{owner_username}_{stamp}.{get_extension(original_filename)}"

    def resolve(self, filename: str) -> Path:
        base = self.base_dir.resolve()
        candidate = (base / filename).resolve()
        if candidate == base or not candidate.is_relative_to(base):
            logger.warning("Rejected media path outside %s: %r", base, filename)
            raise PathTraversalError()
        return candidate

    def _free_target(self, owner_username: str, original_filename: str, old_path: str | None) -> Path:
        # Two uploads by one owner in the same millisecond must not share a file.
        stamp = _epoch_millis()
        while True:
            target = self.resolve(self.build_filename(owner_username, original_filename, stamp))
            try:
                taken = target.exists() and str(target) != old_path
            except OSError as exc:
                # e.g. ENAMETOOLONG from an absurd extension
                raise UnsupportedMediaError() from exc
            if not taken:
                return target
            stamp += 1

    def write(
        self,
        owner_username: str,
        data: bytes,
        original_filename: str,
        content_type: str | None = None,
        old_path: str | None = None,
    ) -> StoredFile:
        """Decode, build the preview and put the upload on disk.

        Blocking; async callers go through :meth:`store`. Nothing touches the
        disk until the image has decoded and its extension is known to Pillow.
        """
        ext = get_extension(original_filename)
        _format_for_extension(ext)
        preview, fmt = make_preview(data, ext, self.preview_width)
        target = self._free_target(owner_username, original_filename, old_path)

        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, target)
        except OSError:
            self.discard(tmp_name)
            raise

        if content_type and content_type.startswith("image/"):
            media_type = content_type
        else:
            media_type = Image.MIME.get(fmt, "application/octet-stream")

        stored = StoredFile(path=str(target), size=len(data), media_type=media_type, preview=preview)
        logger.debug("Wrote %s (%d bytes)", target, stored.size)
        return stored

    @asynccontextmanager
    async def store(
        self,
        owner_username: str,
        data: bytes,
        original_filename: str,
        content_type: str | None = None,
        old_path: str | None = None,
    ) -> AsyncIterator[StoredFile]:
        """Write an upload to disk for the duration of a metadata update.

        Decoding and file I/O run in the threadpool. The caller records the
        yielded metadata and commits inside the ``async with`` block; if the
        block raises, the new file is removed again. Once the block completes,
        the previous file (``old_path``) is removed.
        """
        stored = await run_in_threadpool(
            self.write, owner_username, data, original_filename, content_type, old_path
        )

        try:
            yield stored
        except BaseException:
            # Same path as the old file means the old file is already gone.
            if old_path != stored.path:
                await self.discard_async(stored.path)
            raise

        if old_path and old_path != stored.path:
            await self.discard_async(old_path)

    async def read_async(self, path: str | None) -> bytes | None:
        return await run_in_threadpool(self.read, path)

    async def discard_async(self, path: str | os.PathLike[str] | None) -> None:
        await run_in_threadpool(self.discard, path)

    def read(self, path: str | None) -> bytes | None:
        if not path:
            return None
        try:
            return Path(path).read_bytes()
        except FileNotFoundError:
            logger.warning("Media file missing on disk: %s", path)
            return None

    def discard(self, path: str | os.PathLike[str] | None) -> None:
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to delete media file %s", path, exc_info=True)
