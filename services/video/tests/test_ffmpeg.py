"""Runs the real subprocess wrappers against stand-in ffprobe/ffmpeg scripts."""
import stat
from pathlib import Path

import pytest

from app.exceptions import ProbeFailed, RemuxFailed
from app.ffmpeg import FFmpegFastStartRemuxer, FFprobeMediaProbe


def _script(tmp_path: Path, name: str, body: str) -> str:
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def _ffprobe_printing(tmp_path: Path, output: str) -> str:
    return _script(tmp_path, "ffprobe", f"cat <<'JSON'\n{output}\nJSON\n")


@pytest.fixture
def clip(tmp_path: Path) -> str:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)


# ── ffprobe ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_probe_reads_first_stream(tmp_path: Path, clip: str) -> None:
    ffprobe = _ffprobe_printing(
        tmp_path,
        '{"streams": [{"codec_type": "video", "width": 1280, "height": 720},'
        ' {"codec_type": "audio"}]}',
    )
    assert await FFprobeMediaProbe(ffprobe).probe(clip) == (1280, 720)


@pytest.mark.asyncio
async def test_probe_passes_file_path(tmp_path: Path, clip: str) -> None:
    # Only succeeds when the last argument is the file being probed
    ffprobe = _script(
        tmp_path,
        "ffprobe",
        'for last; do :; done\n'
        f'[ "$last" = "{clip}" ] || exit 1\n'
        'echo \'{"streams": [{"width": 720, "height": 1280}]}\'\n',
    )
    assert await FFprobeMediaProbe(ffprobe).probe(clip) == (720, 1280)


@pytest.mark.asyncio
async def test_probe_nonzero_exit(tmp_path: Path, clip: str) -> None:
    ffprobe = _script(tmp_path, "ffprobe", "echo 'moov atom not found' >&2\nexit 1\n")
    with pytest.raises(ProbeFailed) as exc_info:
        await FFprobeMediaProbe(ffprobe).probe(clip)
    # stderr and paths stay in the logs, not in the client-facing message
    assert "moov" not in exc_info.value.detail
    assert clip not in exc_info.value.detail


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "output",
    [
        "not json",
        '{"streams": []}',
        "{}",
        '{"streams": [{"width": 0, "height": 720}]}',
        '{"streams": [{"codec_type": "audio"}]}',
    ],
)
async def test_probe_rejects_bad_output(tmp_path: Path, clip: str, output: str) -> None:
    ffprobe = _ffprobe_printing(tmp_path, output)
    with pytest.raises(ProbeFailed):
        await FFprobeMediaProbe(ffprobe).probe(clip)


@pytest.mark.asyncio
async def test_probe_missing_binary(tmp_path: Path, clip: str) -> None:
    with pytest.raises(ProbeFailed):
        await FFprobeMediaProbe(str(tmp_path / "no-such-ffprobe")).probe(clip)


@pytest.mark.asyncio
async def test_probe_timeout(tmp_path: Path, clip: str) -> None:
    ffprobe = _script(tmp_path, "ffprobe", "exec sleep 5\n")
    with pytest.raises(ProbeFailed):
        await FFprobeMediaProbe(ffprobe, timeout=0.2).probe(clip)


# ── ffmpeg ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_remux_writes_processing_file(tmp_path: Path, clip: str) -> None:
    # Record the argv in the output file
    ffmpeg = _script(tmp_path, "ffmpeg", 'for last; do :; done\necho "$@" > "$last"\n')
    output = await FFmpegFastStartRemuxer(ffmpeg).remux(clip)

    assert output == clip + ".processing"
    argv = Path(output).read_text()
    assert f"-i {clip}" in argv
    assert "-c copy" in argv
    assert "-movflags faststart" in argv
    assert "-f mp4" in argv
    # Input is untouched
    assert Path(clip).read_bytes() == b"\x00\x00\x00\x18ftypmp42"


@pytest.mark.asyncio
async def test_remux_failure_removes_partial_output(tmp_path: Path, clip: str) -> None:
    ffmpeg = _script(
        tmp_path, "ffmpeg", 'for last; do :; done\necho partial > "$last"\nexit 1\n',
    )
    with pytest.raises(RemuxFailed):
        await FFmpegFastStartRemuxer(ffmpeg).remux(clip)
    assert not Path(clip + ".processing").exists()
    assert Path(clip).exists()


@pytest.mark.asyncio
async def test_remux_without_output_fails(tmp_path: Path, clip: str) -> None:
    ffmpeg = _script(tmp_path, "ffmpeg", "exit 0\n")
    with pytest.raises(RemuxFailed):
        await FFmpegFastStartRemuxer(ffmpeg).remux(clip)


@pytest.mark.asyncio
async def test_remux_timeout(tmp_path: Path, clip: str) -> None:
    ffmpeg = _script(tmp_path, "ffmpeg", "exec sleep 5\n")
    with pytest.raises(RemuxFailed):
        await FFmpegFastStartRemuxer(ffmpeg, timeout=0.2).remux(clip)
    assert not Path(clip + ".processing").exists()
