"""
Local staging for uploads.

Every upload is copied to a private temp file before ffprobe / ffmpeg touch
it. Files are owned by one request and always removed when the owning
``async with`` block exits, including on errors, client disconnects and task
cancellation.
"""
from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import aiofiles

from app.exceptions import StagingFailed, UploadFileTooLarge

logger = logging.getLogger(__name__)

STAGING_PREFIX = "tubely-upload-"
CHUNK_SIZE = 1024 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class StagedFile:
    path: str
    file: Any | None = None
    removed: bool = False


class StagingStore:
    def __init__(self, directory: str | None = None, *, suffix: str = ".mp4") -> None:
        self.directory = directory or tempfile.gettempdir()
        self.suffix = suffix

    async def create_temp(self) -> StagedFile:
        try:
            Path(self.directory).mkdir(parents=True, exist_ok=True)
            fd, path = tempfile.mkstemp(
                prefix=STAGING_PREFIX, suffix=self.suffix, dir=self.directory,
            )
            os.close(fd)
        except OSError as exc:
            logger.error("Could not create staging file in %s: %s", self.directory, exc)
            raise StagingFailed() from exc

        handle = StagedFile(path=path)
        try:
            handle.file = await aiofiles.open(path, "w+b")
        except OSError as exc:
            await self.remove(handle)
            logger.error("Could not open staging file %s: %s", path, exc)
            raise StagingFailed() from exc
        return handle

    def adopt(self, path: str) -> StagedFile:
        """Track a file some other step produced so it is released like ours."""
        return StagedFile(path=path)

    async def write(
        self,
        handle: StagedFile,
        source: AsyncReadable,
        *,
        limit: int | None = None,
    ) -> int:
        """Copy ``source`` into the staged file. Returns the byte count."""
        if handle.file is None:
            raise StagingFailed()
        written = 0
        try:
            while True:
                chunk = await source.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if limit is not None and written > limit:
                    raise UploadFileTooLarge(limit // (1024 * 1024))
                await handle.file.write(chunk)
            await handle.file.flush()
        except OSError as exc:
            logger.error("Writing staging file %s failed: %s", handle.path, exc)
            raise StagingFailed() from exc
        return written

    async def seek(self, handle: StagedFile, offset: int = 0) -> None:
        if handle.file is None:
            raise StagingFailed()
        try:
            await handle.file.seek(offset)
        except OSError as exc:
            logger.error("Seeking staging file %s failed: %s", handle.path, exc)
            raise StagingFailed() from exc

    async def remove(self, handle: StagedFile) -> None:
        """Close and delete. Idempotent; best-effort, logs but never raises."""
        if handle.removed:
            return
        handle.removed = True
        if handle.file is not None:
            try:
                await handle.file.close()
            except OSError as exc:
                logger.warning("Closing staging file %s failed: %s", handle.path, exc)
            handle.file = None
        try:
            Path(handle.path).unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Removing staging file %s failed: %s", handle.path, exc)

    @asynccontextmanager
    async def staged(self) -> AsyncIterator[StagedFile]:
        handle = await self.create_temp()
        try:
            yield handle
        finally:
            await self.remove(handle)

    @asynccontextmanager
    async def adopted(self, path: str) -> AsyncIterator[StagedFile]:
        handle = self.adopt(path)
        try:
            yield handle
        finally:
            await self.remove(handle)
