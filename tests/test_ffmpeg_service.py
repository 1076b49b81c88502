"""Tests for the ffprobe/ffmpeg wrappers (subprocesses are faked)."""
import asyncio
import json
from pathlib import Path

import pytest

from app.core.config import settings
from app.services import ffmpeg_service
from app.services.ffmpeg_service import (
    FFmpegError,
    VideoInfo,
    build_extract_command,
    last_frame_number,
    parse_frame_rate,
    parse_probe_output,
    quality_to_crf,
)


class FakeStream:
    def __init__(self, chunks: list[bytes]):
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""


class FakeProcess:
    def __init__(self, returncode: int = 0, stderr_chunks: list[bytes] | None = None):
        self.returncode = returncode
        self.stderr = FakeStream(stderr_chunks or [])

    async def wait(self) -> int:
        return self.returncode


class RunningProcess(FakeProcess):
    """A child that keeps running until it is killed."""

    def __init__(self, stderr_chunks: list[bytes] | None = None):
        super().__init__(None, stderr_chunks)
        self.killed = False
        self.reaped = False

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int:
        if self.returncode is not None:
            self.reaped = True
        return self.returncode

    async def communicate(self):
        await asyncio.sleep(3600)


class TestParsing:
    def test_parse_rational_frame_rate(self):
        assert parse_frame_rate("30000/1001") == pytest.approx(29.97, abs=0.01)
        assert parse_frame_rate("25") == 25.0

    @pytest.mark.parametrize("value", [None, "", "0/0", "abc"])
    def test_parse_unknown_frame_rate(self, value):
        assert parse_frame_rate(value) == 0.0

    def test_parse_probe_output(self):
        info = parse_probe_output(
            {
                "streams": [
                    {
                        "codec_name": "H264",
                        "width": 1920,
                        "height": 1080,
                        "r_frame_rate": "30/1",
                        "duration": "3.5",
                    }
                ],
                "format": {"duration": "3.6"},
            }
        )
        assert info.total_frames == 105
        assert info.resolution == "1920x1080"
        assert info.codec == "h264"

    def test_probe_falls_back_to_format_duration_and_nb_frames(self):
        info = parse_probe_output({"streams": [{"r_frame_rate": "25/1"}], "format": {"duration": "2"}})
        assert info.total_frames == 50
        info = parse_probe_output({"streams": [{"r_frame_rate": "0/0", "nb_frames": "42"}]})
        assert info.total_frames == 42

    def test_probe_without_video_stream(self):
        with pytest.raises(FFmpegError):
            parse_probe_output({"streams": []})

    def test_last_frame_number_takes_latest_counter(self):
        chunk = "frame=   12 fps=0.0 q=-0.0 size=N/A\rframe=   24 fps=23 q=-0.0 size=N/A\r"
        assert last_frame_number(chunk) == 24
        assert last_frame_number("Stream mapping:\n") is None

    @pytest.mark.parametrize("quality,crf", [(100, 0), (80, 10), (50, 26), (0, 51), (150, 0), (-5, 51)])
    def test_quality_to_crf(self, quality, crf):
        assert quality_to_crf(quality) == crf


class TestExtractCommand:
    def test_software_decode(self):
        cmd = build_extract_command("in.mp4", "out/frame_%04d.png", 25.0, "h264", None)
        assert "-hwaccel" not in cmd
        assert cmd[cmd.index("-vf") + 1] == "fps=25.0"
        assert cmd[-1] == "out/frame_%04d.png"

    def test_qsv_decode_for_known_codec(self):
        cmd = build_extract_command("in.mp4", "out/frame_%04d.png", 30.0, "hevc", "qsv")
        assert cmd[cmd.index("-hwaccel") + 1] == "qsv"
        assert cmd[cmd.index("-c:v") + 1] == "hevc_qsv"
        assert cmd.index("-c:v") < cmd.index("-i")
        assert cmd[cmd.index("-vf") + 1] == "hwdownload,format=nv12,fps=30.0"

    def test_qsv_falls_back_to_software_for_unknown_codec(self):
        cmd = build_extract_command("in.mp4", "out/frame_%04d.png", 30.0, "vp9", "qsv")
        assert "-hwaccel" not in cmd
        assert cmd[cmd.index("-vf") + 1] == "fps=30.0"


class TestSubprocesses:
    async def test_get_video_info_parses_ffprobe_json(self, monkeypatch):
        payload = {"streams": [{"codec_name": "h264", "width": 640, "height": 360, "r_frame_rate": "24/1", "duration": "1"}]}
        calls = []

        async def fake_run(cmd):
            calls.append(cmd)
            return json.dumps(payload).encode()

        monkeypatch.setattr(ffmpeg_service, "_run", fake_run)
        info = await ffmpeg_service.get_video_info("clip.mp4")

        assert info == VideoInfo(duration=1.0, width=640, height=360, fps=24.0, total_frames=24, codec="h264")
        assert calls[0][0] == settings.FFPROBE_BIN
        assert calls[0][-1] == "clip.mp4"
        assert "json" in calls[0]

    async def test_missing_binary_raises_ffmpeg_error(self, monkeypatch):
        monkeypatch.setattr(settings, "FFPROBE_BIN", "/nonexistent/ffprobe-binary")
        with pytest.raises(FFmpegError, match="Executable not found"):
            await ffmpeg_service.get_video_info("clip.mp4")

    async def test_extract_frames_reports_clamped_progress_in_frame_order(self, monkeypatch, tmp_path):
        out_dir = tmp_path / "album"
        chunks = [b"frame=    3 fps=0\r", b"no counter here", b"frame=   12 fps=9\rframe=   15 fps=9\r"]

        async def fake_exec(*cmd, **kwargs):
            pattern = Path(cmd[-1])
            for n in (1, 2, 10000, 3):
                (pattern.parent / (pattern.name % n)).write_bytes(b"png")
            return FakeProcess(0, chunks)

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
        seen = []

        async def on_progress(current, total):
            seen.append((current, total))

        info = VideoInfo(duration=1.0, width=2, height=2, fps=12.0, total_frames=12)
        pngs = await ffmpeg_service.extract_frames("clip.mp4", out_dir, "frame", on_progress, video_info=info)

        assert seen == [(3, 12), (12, 12)]
        assert [p.name for p in pngs] == ["frame_0001.png", "frame_0002.png", "frame_0003.png", "frame_10000.png"]

    async def test_counter_split_across_chunks(self, monkeypatch, tmp_path):
        async def fake_exec(*cmd, **kwargs):
            return FakeProcess(0, [b"frame=  1", b"23 fps=9\r", b"frame=  150"])

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
        seen = []

        async def on_progress(current, total):
            seen.append(current)

        info = VideoInfo(duration=8.0, width=2, height=2, fps=25.0, total_frames=200)
        await ffmpeg_service.extract_frames("clip.mp4", tmp_path, on_progress=on_progress, video_info=info)

        assert seen == [123, 150]

    async def test_failing_progress_callback_kills_ffmpeg(self, monkeypatch, tmp_path):
        proc = RunningProcess([b"frame=    5 fps=0\r"])

        async def fake_exec(*cmd, **kwargs):
            return proc

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

        async def on_progress(current, total):
            raise RuntimeError("database went away")

        info = VideoInfo(duration=1.0, width=2, height=2, fps=10.0, total_frames=10)
        with pytest.raises(RuntimeError, match="database went away"):
            await ffmpeg_service.extract_frames("clip.mp4", tmp_path, on_progress=on_progress, video_info=info)

        assert proc.killed
        assert proc.reaped

    async def test_cancelled_run_kills_child(self, monkeypatch):
        proc = RunningProcess()

        async def fake_exec(*cmd, **kwargs):
            return proc

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
        job = asyncio.ensure_future(ffmpeg_service.convert_to_heic("frame.png", "frame.heic"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        job.cancel()

        with pytest.raises(asyncio.CancelledError):
            await job
        assert proc.killed
        assert proc.reaped

    async def test_extract_frames_failure_carries_stderr_tail(self, monkeypatch, tmp_path):
        async def fake_exec(*cmd, **kwargs):
            return FakeProcess(1, [b"Invalid data found when processing input\n"])

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
        info = VideoInfo(duration=1.0, width=2, height=2, fps=1.0, total_frames=1)

        with pytest.raises(FFmpegError) as excinfo:
            await ffmpeg_service.extract_frames("broken.mp4", tmp_path, video_info=info)
        assert "Invalid data" in excinfo.value.stderr
        assert "exited with code 1" in str(excinfo.value)
