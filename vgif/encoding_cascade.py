"""
GIF encoding with ordered fallback strategies.

Each tier is tried in turn until one leaves a non-empty GIF behind:
    single_pass  palette generated and applied in one filter graph
    two_pass     palette written to a PNG, then applied in a second run
    basic        fps + scale only, ffmpeg's default GIF palette
    direct       hand-built command lines that bypass the graph builder
"""

import os
import logging
from dataclasses import dataclass
from typing import List, Optional

import ffmpeg

from .error_handler import ConversionFailed
from .ffmpeg_utils import FFmpegError, FFmpegUtils, DEFAULT_TIMEOUT
from .models import EffectiveParameters, EncodingAttempt
from .temp_file_manager import ResourceTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GifSettings:
    """Palette and container options shared by every tier."""
    loops: int = 0
    colors: int = 256
    dither: str = 'sierra2_4a'
    threads: int = 0


def _num(value: float) -> str:
    text = f"{value:.6f}".rstrip('0').rstrip('.')
    return text or '0'


def paletteuse_options(dither: str) -> dict:
    options = {'dither': dither, 'diff_mode': 'rectangle'}
    if dither == 'bayer':
        options['bayer_scale'] = 5
    return options


class EncodingCascade:
    """Runs the encoding tiers in order; the first success wins"""

    def __init__(self, tracker: ResourceTracker, show_progress: bool = False,
                 timeout: Optional[float] = DEFAULT_TIMEOUT):
        self.tracker = tracker
        self.show_progress = show_progress
        self.timeout = timeout

    # --- graph builders -------------------------------------------------

    @staticmethod
    def _scaled_video(input_path: str, params: EffectiveParameters):
        input_kwargs = {'t': _num(params.duration)} if params.duration else {}
        if params.offset:
            input_kwargs['ss'] = _num(params.offset)
        source = ffmpeg.input(input_path, **input_kwargs)
        return (
            source.video
            .filter('fps', fps=params.fps)
            .filter('scale', params.width, -1, flags='lanczos')
        )

    @staticmethod
    def _gif_output(stream, output_path: str, settings: GifSettings):
        return ffmpeg.output(
            stream, output_path,
            loop=settings.loops,
            f='gif',
            threads=FFmpegUtils.resolve_thread_count(settings.threads),
        )

    def build_single_pass(self, input_path: str, output_path: str, params: EffectiveParameters,
                          settings: GifSettings):
        split = self._scaled_video(input_path, params).split()
        palette = split[0].filter('palettegen', stats_mode='diff', max_colors=settings.colors)
        mapped = ffmpeg.filter([split[1], palette], 'paletteuse', **paletteuse_options(settings.dither))
        return self._gif_output(mapped, output_path, settings)

    def build_palette_pass(self, input_path: str, palette_path: str, params: EffectiveParameters,
                           settings: GifSettings):
        palette = self._scaled_video(input_path, params).filter(
            'palettegen', stats_mode='diff', max_colors=settings.colors)
        return ffmpeg.output(palette, palette_path,
                             threads=FFmpegUtils.resolve_thread_count(settings.threads))

    def build_palette_apply(self, input_path: str, palette_path: str, output_path: str,
                            params: EffectiveParameters, settings: GifSettings):
        palette = ffmpeg.input(palette_path)
        mapped = ffmpeg.filter([self._scaled_video(input_path, params), palette],
                               'paletteuse', **paletteuse_options(settings.dither))
        return self._gif_output(mapped, output_path, settings)

    def build_basic(self, input_path: str, output_path: str, params: EffectiveParameters,
                    settings: GifSettings):
        return self._gif_output(self._scaled_video(input_path, params), output_path, settings)

    @staticmethod
    def build_direct_commands(input_path: str, output_path: str, params: EffectiveParameters,
                              settings: GifSettings) -> List[List[str]]:
        """Plain command lines: single-pass palette first, then the basic one."""
        window = []
        if params.offset:
            window.extend(['-ss', _num(params.offset)])
        if params.duration:
            window.extend(['-t', _num(params.duration)])
        scale = f"fps={params.fps},scale={params.width}:-1:flags=lanczos"
        threads = str(FFmpegUtils.resolve_thread_count(settings.threads))

        basic = ['ffmpeg', '-y', *window, '-i', input_path,
                 '-vf', scale,
                 '-loop', str(settings.loops), '-threads', threads, output_path]
        paletted = ['ffmpeg', '-y', *window, '-i', input_path,
                    '-filter_complex', f"{scale},split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse",
                    '-loop', str(settings.loops), '-threads', threads, output_path]
        return [FFmpegUtils.add_ffmpeg_perf_flags(paletted), FFmpegUtils.add_ffmpeg_perf_flags(basic)]

    # --- tier runners ---------------------------------------------------

    def _run_stream(self, stream, params: EffectiveParameters, description: str):
        cmd = FFmpegUtils.add_ffmpeg_perf_flags(FFmpegUtils.compile_stream(stream))
        FFmpegUtils.run_command(cmd, duration=params.duration, description=description,
                                show_progress=self.show_progress, timeout=self.timeout)

    def build_attempts(self, input_path: str, output_path: str, params: EffectiveParameters,
                       settings: GifSettings) -> List[EncodingAttempt]:
        def single_pass():
            self._run_stream(self.build_single_pass(input_path, output_path, params, settings),
                             params, "Encoding GIF")

        def two_pass():
            palette_path = str(self.tracker.temp_path('palette.png'))
            try:
                self._run_stream(self.build_palette_pass(input_path, palette_path, params, settings),
                                 params, "Generating palette")
                self._run_stream(
                    self.build_palette_apply(input_path, palette_path, output_path, params, settings),
                    params, "Applying palette")
            finally:
                self.tracker.release(palette_path)

        def basic():
            self._run_stream(self.build_basic(input_path, output_path, params, settings),
                             params, "Encoding GIF (basic)")

        def direct():
            errors = []
            for cmd in self.build_direct_commands(input_path, output_path, params, settings):
                try:
                    FFmpegUtils.run_command(cmd, description="Encoding GIF (direct)", timeout=self.timeout)
                    if FFmpegUtils.is_nonempty_file(output_path):
                        return
                except FFmpegError as e:
                    logger.debug(f"Direct command failed: {e}")
                    errors.append(e)
            if errors:
                raise errors[-1]
            raise FFmpegError("Direct commands produced no output")

        return [
            EncodingAttempt('single_pass', single_pass),
            EncodingAttempt('two_pass', two_pass),
            EncodingAttempt('basic', basic),
            EncodingAttempt('direct', direct),
        ]

    def execute(self, attempts: List[EncodingAttempt], output_path: str) -> str:
        """Try each attempt in order; returns the name of the one that succeeded."""
        last_error: Optional[BaseException] = None
        for attempt in attempts:
            logger.debug(f"Trying encoding strategy: {attempt.name}")
            try:
                attempt.run()
                if not FFmpegUtils.is_nonempty_file(output_path):
                    raise FFmpegError(f"{attempt.name} produced no output")
            except FFmpegError as e:
                last_error = e
                logger.warning(f"Encoding strategy '{attempt.name}' failed: {e}")
                if os.path.exists(output_path):
                    os.remove(output_path)
                continue

            logger.info(f"GIF encoded with strategy '{attempt.name}'")
            return attempt.name

        raise ConversionFailed(
            f"All GIF conversion methods failed. Last error: {last_error}",
            ["Check that ffmpeg is installed and the input plays correctly",
             "Try a smaller width or lower frame rate"],
            last_error=last_error,
        )

    def run(self, input_path: str, output_path: str, params: EffectiveParameters,
            settings: GifSettings) -> str:
        return self.execute(self.build_attempts(input_path, output_path, params, settings), output_path)
