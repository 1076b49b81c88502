"""ffprobe / ffmpeg wrappers: probe metadata, extract frames, encode HEIC and thumbnails.

Every call runs the binaries as asyncio subprocesses with an argument list
(never through a shell). Failures raise FFmpegError with the tail of stderr.
"""
import asyncio
import json
import logging
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path

from app.core.config import settings

logger = logging.getLogger(__name__)

FRAME_RE = re.compile(r"frame=\s*(\d+)")
STDERR_TAIL = 2000  # chars kept for error messages

# Intel QSV decoders by source codec; anything else decodes in software
QSV_DECODERS = {
    "h264": "h264_qsv",
    "avc": "h264_qsv",
    "hevc": "hevc_qsv",
    "h265": "hevc_qsv",
    "av1": "av1_qsv",
}

ProgressCallback = Callable[[int, int], Awaitable[None]]


class FFmpegError(RuntimeError):
    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}: {self.stderr.strip()[-500:]}" if self.stderr.strip() else base


@dataclass
class VideoInfo:
    duration: float
    width: int
    height: int
    fps: float
    total_frames: int
    codec: str = ""

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


def parse_frame_rate(value: str | None) -> float:
    """Parse ffprobe rates such as ``30000/1001`` or ``25``. Unknown rates give 0."""
    if not value:
        return 0.0
    try:
        return float(Fraction(value))
    except (ValueError, ZeroDivisionError):
        return 0.0


def parse_probe_output(data: dict) -> VideoInfo:
    streams = data.get("streams") or []
    if not streams:
        raise FFmpegError("No video stream found")
    stream = streams[0]
    fmt = data.get("format") or {}

    fps = parse_frame_rate(stream.get("r_frame_rate")) or parse_frame_rate(stream.get("avg_frame_rate"))
    duration = float(stream.get("duration") or fmt.get("duration") or 0)
    total_frames = math.floor(duration * fps) if duration and fps else int(stream.get("nb_frames") or 0)
    return VideoInfo(
        duration=duration,
        width=int(stream.get("width") or 0),
        height=int(stream.get("height") or 0),
        fps=fps,
        total_frames=total_frames,
        codec=(stream.get("codec_name") or "").lower(),
    )


def last_frame_number(chunk: str) -> int | None:
    """Return the last ``frame=N`` counter in a chunk of ffmpeg stderr."""
    matches = FRAME_RE.findall(chunk)
    return int(matches[-1]) if matches else None


def quality_to_crf(quality: int) -> int:
    """Map 0-100 quality onto libx265 CRF 51-0 (quality 100 -> CRF 0)."""
    quality = max(0, min(100, quality))
    return math.floor((100 - quality) * 0.51 + 0.5)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill a child that is still running and reap it."""
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()


async def _run(cmd: list[str]) -> bytes:
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise FFmpegError(f"Executable not found: {cmd[0]}", cmd) from e
    try:
        stdout, stderr = await proc.communicate()
    finally:
        await _terminate(proc)
    if proc.returncode != 0:
        raise FFmpegError(
            f"{Path(cmd[0]).name} exited with code {proc.returncode}",
            cmd,
            stderr.decode(errors="replace")[-STDERR_TAIL:],
        )
    return stdout


async def get_video_info(input_path: str | Path) -> VideoInfo:
    cmd = [
        settings.FFPROBE_BIN,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=codec_name,width,height,r_frame_rate,avg_frame_rate,duration,nb_frames:format=duration",
        "-of", "json",
        str(input_path),
    ]
    stdout = await _run(cmd)
    try:
        data = json.loads(stdout or b"{}")
    except json.JSONDecodeError as e:
        raise FFmpegError("Unreadable ffprobe output", cmd) from e
    return parse_probe_output(data)


def build_extract_command(
    input_path: str | Path,
    output_pattern: str | Path,
    fps: float,
    codec: str = "",
    hwaccel: str | None = None,
) -> list[str]:
    cmd = [settings.FFMPEG_BIN, "-hide_banner", "-y"]
    filters: list[str] = []
    decoder = QSV_DECODERS.get(codec) if hwaccel == "qsv" else None
    if decoder:
        # Hardware frames must be downloaded before software filters / PNG encoding
        cmd += ["-hwaccel", "qsv", "-c:v", decoder]
        filters += ["hwdownload", "format=nv12"]
    cmd += ["-i", str(input_path)]
    if fps > 0:
        filters.append(f"fps={fps}")
    if filters:
        cmd += ["-vf", ",".join(filters)]
    cmd.append(str(output_pattern))
    return cmd


async def extract_frames(
    input_path: str | Path,
    output_dir: str | Path,
    prefix: str = "frame",
    on_progress: ProgressCallback | None = None,
    video_info: VideoInfo | None = None,
) -> list[Path]:
    """Extract every frame to ``{prefix}_%04d.png`` and return the PNG paths in frame order."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    info = video_info or await get_video_info(input_path)

    cmd = build_extract_command(
        input_path,
        output_dir / f"{prefix}_%04d.png",
        info.fps,
        info.codec,
        settings.FFMPEG_HWACCEL,
    )
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise FFmpegError(f"Executable not found: {cmd[0]}", cmd) from e

    async def report(text: str) -> None:
        frame = last_frame_number(text)
        if frame is not None and on_progress:
            total = info.total_frames
            await on_progress(min(frame, total) if total else frame, total)

    # ffmpeg rewrites its status line with \r, so read raw chunks rather than lines.
    # Text after the last line break is held back until the next chunk completes it.
    tail = ""
    pending = ""
    assert proc.stderr is not None
    try:
        while chunk := await proc.stderr.read(4096):
            text = chunk.decode(errors="replace")
            tail = (tail + text)[-STDERR_TAIL:]
            pending += text
            cut = max(pending.rfind("\r"), pending.rfind("\n")) + 1
            if cut:
                await report(pending[:cut])
                pending = pending[cut:]
            pending = pending[-STDERR_TAIL:]
        if pending:
            await report(pending)
        returncode = await proc.wait()
    finally:
        await _terminate(proc)

    if returncode != 0:
        raise FFmpegError(f"ffmpeg exited with code {returncode}", cmd, tail)

    # Numeric order: %04d widens past frame 9999
    return sorted(output_dir.glob(f"{prefix}_*.png"), key=lambda p: int(p.stem.rsplit("_", 1)[-1]))


async def convert_to_heic(input_path: str | Path, output_path: str | Path, quality: int | None = None) -> None:
    # HEVC in an ISO-BMFF (mp4) container; most HEIC viewers read it
    crf = quality_to_crf(settings.HEIC_QUALITY if quality is None else quality)
    await _run([
        settings.FFMPEG_BIN, "-hide_banner", "-y",
        "-i", str(input_path),
        "-c:v", "libx265",
        "-crf", str(crf),
        "-pix_fmt", "yuv420p",
        "-tag:v", "hvc1",
        "-f", "mp4",
        str(output_path),
    ])


async def generate_thumbnail(input_path: str | Path, output_path: str | Path, width: int | None = None) -> None:
    width = width or settings.THUMBNAIL_WIDTH
    await _run([
        settings.FFMPEG_BIN, "-hide_banner", "-y",
        "-i", str(input_path),
        "-vf", f"scale={width}:-1",
        "-q:v", "2",
        str(output_path),
    ])
