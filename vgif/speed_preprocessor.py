"""
Playback speed adjustment ahead of GIF encoding.
"""

import logging
from typing import List

import ffmpeg

from .ffmpeg_utils import FFmpegError, FFmpegUtils
from .temp_file_manager import ResourceTracker

logger = logging.getLogger(__name__)

# Range a single atempo filter accepts
ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0


def atempo_chain(speed: float) -> List[float]:
    """Split a tempo factor into atempo stages that each stay within range."""
    factors = []
    remaining = speed
    while remaining > ATEMPO_MAX:
        factors.append(ATEMPO_MAX)
        remaining /= ATEMPO_MAX
    while remaining < ATEMPO_MIN:
        factors.append(ATEMPO_MIN)
        remaining /= ATEMPO_MIN
    factors.append(round(remaining, 6))
    return factors


def build_speed_stream(input_path: str, output_path: str, speed: float, has_audio: bool):
    source = ffmpeg.input(input_path)
    streams = [source.video.filter('setpts', f'PTS/{speed}')]
    if has_audio:
        audio = source.audio
        for factor in atempo_chain(speed):
            audio = audio.filter('atempo', factor)
        streams.append(audio)
    return ffmpeg.output(*streams, output_path)


def apply_speed(input_path: str, speed: float, tracker: ResourceTracker, threads: int = 0,
                show_progress: bool = False) -> str:
    """
    Re-time the clip by `speed`.

    Returns the adjusted clip, or input_path unchanged at speed 1.0 or when
    the engine fails (a warning is logged and the original speed is kept).
    """
    if speed == 1.0:
        return input_path

    output_path = str(tracker.temp_path(f"speed_{speed:g}x.mp4"))
    has_audio = FFmpegUtils.has_audio_stream(input_path)
    stream = build_speed_stream(input_path, output_path, speed, has_audio)
    cmd = FFmpegUtils.add_ffmpeg_perf_flags(FFmpegUtils.compile_stream(stream),
                                            threads=FFmpegUtils.resolve_thread_count(threads))

    logger.info(f"Applying speed factor {speed}x")
    try:
        FFmpegUtils.run_command(cmd, duration=FFmpegUtils.get_duration(input_path) if show_progress else None,
                                description="Adjusting speed", show_progress=show_progress)
    except FFmpegError as e:
        logger.warning(f"Speed adjustment failed, continuing at original speed: {e}")
        tracker.release(output_path)
        return input_path

    return output_path
