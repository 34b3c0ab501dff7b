"""
ffprobe / ffmpeg wrappers.

Both tools run as asyncio child processes with a hard time limit; a hung
tool is killed and reported as a failure instead of blocking the request.
Tool stderr is logged and never surfaced to clients.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from app.config import Settings
from app.exceptions import ProbeFailed, RemuxFailed

logger = logging.getLogger(__name__)

REMUX_SUFFIX = ".processing"


class MediaProbe(Protocol):
    async def probe(self, path: str) -> tuple[int, int]: ...


class FastStartRemuxer(Protocol):
    async def remux(self, input_path: str) -> str: ...


class ToolError(Exception):
    """An external media tool could not be run or exited unsuccessfully."""


# ── ffprobe output ───────────────────────────────────────────────────────────

class ProbeStream(BaseModel):
    width: int = 0
    height: int = 0


class ProbeOutput(BaseModel):
    streams: list[ProbeStream] = []


async def run_tool(cmd: list[str], timeout: float) -> bytes:
    """Run ``cmd`` to completion and return stdout. Raises ToolError."""
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ToolError(f"cannot start {cmd[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ToolError(f"{cmd[0]} timed out after {timeout}s")
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    if process.returncode != 0:
        tail = stderr.decode(errors="replace").strip()[-500:]
        raise ToolError(f"{cmd[0]} exited with {process.returncode}: {tail}")
    return stdout


class FFprobeMediaProbe:
    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 300.0) -> None:
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> FFprobeMediaProbe:
        return cls(settings.ffprobe_path, settings.media_tool_timeout_seconds)

    async def probe(self, path: str) -> tuple[int, int]:
        """Return (width, height) of the first stream in ``path``."""
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]
        try:
            stdout = await run_tool(cmd, self.timeout)
            output = ProbeOutput.model_validate_json(stdout)
        except ToolError as exc:
            logger.error("ffprobe failed for %s: %s", path, exc)
            raise ProbeFailed() from exc
        except ValidationError as exc:
            logger.error("Unparsable ffprobe output for %s: %s", path, exc)
            raise ProbeFailed() from exc

        if not output.streams:
            logger.error("ffprobe found no streams in %s", path)
            raise ProbeFailed()

        stream = output.streams[0]
        if stream.width <= 0 or stream.height <= 0:
            logger.error(
                "Invalid dimensions in %s: width=%d, height=%d",
                path, stream.width, stream.height,
            )
            raise ProbeFailed()
        return stream.width, stream.height


class FFmpegFastStartRemuxer:
    """Moves the moov atom to the front without re-encoding."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 300.0) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> FFmpegFastStartRemuxer:
        return cls(settings.ffmpeg_path, settings.media_tool_timeout_seconds)

    async def remux(self, input_path: str) -> str:
        output_path = input_path + REMUX_SUFFIX
        cmd = [
            self.ffmpeg_path,
            "-v", "error",
            "-i", input_path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]
        try:
            await run_tool(cmd, self.timeout)
        except ToolError as exc:
            logger.error("ffmpeg fast-start remux failed for %s: %s", input_path, exc)
            Path(output_path).unlink(missing_ok=True)
            raise RemuxFailed() from exc
        except BaseException:
            Path(output_path).unlink(missing_ok=True)
            raise

        if not Path(output_path).is_file():
            logger.error("ffmpeg exited cleanly but wrote no output for %s", input_path)
            raise RemuxFailed()
        return output_path
