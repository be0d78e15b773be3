import subprocess
from unittest.mock import patch

import pytest

from vgif.ffmpeg_utils import FFmpegError, FFmpegUtils


class Completed:
    def __init__(self, returncode=0, stderr=""):
        self.returncode = returncode
        self.stdout = ""
        self.stderr = stderr


def test_parse_time():
    assert FFmpegUtils.parse_time("00:01:02.50") == pytest.approx(62.5)
    assert FFmpegUtils.parse_time("N/A") is None
    assert FFmpegUtils.parse_time("aa:bb:cc") is None


def test_thread_count_zero_means_all_cores(monkeypatch):
    monkeypatch.setattr("vgif.ffmpeg_utils.os.cpu_count", lambda: 12)
    assert FFmpegUtils.resolve_thread_count(0) == 12
    assert FFmpegUtils.resolve_thread_count(3) == 3


def test_perf_flags_inserted_after_program_name():
    cmd = FFmpegUtils.add_ffmpeg_perf_flags(["ffmpeg", "-i", "in.mp4", "out.gif"], threads=4)
    assert cmd[:6] == ["ffmpeg", "-hide_banner", "-loglevel", "error", "-threads", "4"]
    assert cmd[-1] == "out.gif"


def test_segment_command_stream_copy():
    cmd = FFmpegUtils.build_segment_command("full.mp4", "seg.mp4", 12.5, 5.5)
    assert cmd[cmd.index("-ss") + 1] == "12.5"
    assert cmd[cmd.index("-t") + 1] == "5.5"
    assert cmd[cmd.index("-c:v") + 1] == "copy"
    assert cmd[cmd.index("-c:a") + 1] == "copy"


def test_segment_command_transcode_settings():
    cmd = FFmpegUtils.build_segment_command("full.mp4", "seg.mp4", 0, 5, transcode=True,
                                            transcode_settings={"crf": 28, "preset": "veryfast"})
    assert cmd[cmd.index("-c:v") + 1] == "libx264"
    assert cmd[cmd.index("-crf") + 1] == "28"
    assert cmd[cmd.index("-preset") + 1] == "veryfast"


def test_run_command_raises_with_stderr_tail():
    with patch("vgif.ffmpeg_utils.subprocess.run", return_value=Completed(1, "line1\nInvalid data\n")):
        with pytest.raises(FFmpegError) as excinfo:
            FFmpegUtils.run_command(["ffmpeg", "-i", "x"], description="Encoding GIF")

    assert excinfo.value.returncode == 1
    assert "Invalid data" in str(excinfo.value)


def test_run_command_timeout_and_missing_binary():
    with patch("vgif.ffmpeg_utils.subprocess.run",
               side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1)):
        with pytest.raises(FFmpegError, match="timed out"):
            FFmpegUtils.run_command(["ffmpeg"], timeout=1)

    with patch("vgif.ffmpeg_utils.subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
        with pytest.raises(FFmpegError, match="not found"):
            FFmpegUtils.run_command(["ffmpeg"])


def test_has_audio_stream_reads_probe(monkeypatch):
    monkeypatch.setattr("vgif.ffmpeg_utils.ffmpeg.probe",
                        lambda _path: {"streams": [{"codec_type": "video"}, {"codec_type": "audio"}]})
    assert FFmpegUtils.has_audio_stream("clip.mp4")

    monkeypatch.setattr("vgif.ffmpeg_utils.ffmpeg.probe", lambda _path: {"streams": [{"codec_type": "video"}]})
    assert not FFmpegUtils.has_audio_stream("clip.mp4")
