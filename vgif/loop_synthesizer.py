"""
Seamless loop synthesis.

The last `crossfade` seconds fade out while the first `crossfade` seconds fade
in on top of them, and that blended transition is appended to the middle of
the clip. When the GIF wraps around, the frame after the transition is the
frame that followed the original opening, so the seam disappears.

For a window of length T and crossfade X the result is T - X seconds long.
"""

import logging
from typing import List

from .error_handler import ConversionFailed, LoopPrecondition
from .ffmpeg_utils import FFmpegError, FFmpegUtils
from .models import FilterGraph
from .temp_file_manager import ResourceTracker

logger = logging.getLogger(__name__)

OUTPUT_LABEL = 'outv'


def _ts(value: float) -> str:
    text = f"{value:.6f}".rstrip('0').rstrip('.')
    return text or '0'


def check_loop_window(total: float, crossfade: float):
    if not 0 < crossfade < total:
        raise LoopPrecondition(
            f"Crossfade duration ({crossfade}s) must be greater than 0 and less than "
            f"the clip duration ({total}s)",
            ["Use a shorter crossfade or a longer duration"],
        )


def build_crossfade_graph(total: float, crossfade: float) -> FilterGraph:
    """Filter graph for a window of `total` seconds starting at t=0 of the input."""
    check_loop_window(total, crossfade)
    x, t = _ts(crossfade), _ts(total)
    tail = _ts(total - crossfade)

    return FilterGraph((
        '[0:v]split=3[begin][middle][end]',
        f'[middle]trim=start={x}:end={tail},setpts=PTS-STARTPTS[main]',
        f'[begin]trim=start=0:end={x},setpts=PTS-STARTPTS,'
        f'format=yuva420p,fade=t=in:st=0:d={x}:alpha=1[fadein]',
        f'[end]trim=start={tail}:end={t},setpts=PTS-STARTPTS,'
        f'format=yuva420p,fade=t=out:st=0:d={x}:alpha=1[fadeout]',
        '[fadeout][fadein]overlay[transition]',
        f'[main][transition]concat=n=2:v=1:a=0[{OUTPUT_LABEL}]',
    ))


def build_loop_command(input_path: str, output_path: str, total: float, crossfade: float,
                       offset: float = 0.0, threads: int = 0) -> List[str]:
    """Input seeking selects the window, so the graph always works from t=0."""
    graph = build_crossfade_graph(total, crossfade)
    cmd = ['ffmpeg', '-y']
    if offset > 0:
        cmd.extend(['-ss', _ts(offset)])
    cmd.extend([
        '-t', _ts(total),
        '-i', input_path,
        '-filter_complex', graph.render(),
        '-map', f'[{OUTPUT_LABEL}]',
        '-map', '0:a?',
        '-c:v', 'libx264', '-crf', '18', '-preset', 'fast', '-pix_fmt', 'yuv420p',
        '-c:a', 'aac',
        '-shortest',
        output_path,
    ])
    return FFmpegUtils.add_ffmpeg_perf_flags(cmd, threads=FFmpegUtils.resolve_thread_count(threads))


def synthesize_loop(input_path: str, total: float, crossfade: float, tracker: ResourceTracker,
                    offset: float = 0.0, threads: int = 0, show_progress: bool = False) -> str:
    """
    Render the loop-ready clip into a tracked temp file and return its path.

    Engine failures raise ConversionFailed; there is no non-looping fallback.
    """
    check_loop_window(total, crossfade)
    output_path = str(tracker.temp_path('loop.mp4'))
    cmd = build_loop_command(input_path, output_path, total, crossfade, offset, threads)

    logger.info(f"Creating seamless loop with {crossfade:g}s crossfade")
    try:
        FFmpegUtils.run_command(cmd, duration=total, description="Creating loop",
                                show_progress=show_progress)
    except FFmpegError as e:
        tracker.release(output_path)
        raise ConversionFailed(f"Failed to create seamless loop: {e}", last_error=e) from e

    if not FFmpegUtils.is_nonempty_file(output_path):
        raise ConversionFailed("Loop synthesis produced no output")
    return output_path
