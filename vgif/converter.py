"""
Video to GIF conversion pipeline.

Stages run strictly in sequence:
    acquire segment -> speed -> size constraints -> [loop] -> encode -> gifsicle
A single ResourceTracker owns every intermediate file, so the temp directory
is gone once convert() returns or raises.
"""

import os
import shutil
import logging
from typing import Optional

from .config_manager import ConfigManager
from .encoding_cascade import EncodingCascade, GifSettings
from .gif_optimizer import GifOptimizer
from .gif_utils import loop_seam_score
from .loop_synthesizer import synthesize_loop
from .memory_monitor import MemoryMonitor
from .models import ConversionRequest, ConversionResult, LocalFile, RemoteVideo
from .remote_source import RemoteVideoSource, YouTubeSource
from .segment_acquirer import SegmentAcquirer
from .segment_cache import SegmentCache
from .size_estimator import constrain_parameters
from .speed_preprocessor import apply_speed
from .temp_file_manager import ResourceTracker

logger = logging.getLogger(__name__)


def _with_gif_suffix(path: str) -> str:
    return path if path.lower().endswith('.gif') else f"{path}.gif"


def unique_path(path: str) -> str:
    """path, or path with -1, -2, ... before the extension when it already exists"""
    if not os.path.exists(path):
        return path
    base, ext = os.path.splitext(path)
    counter = 1
    while os.path.exists(f"{base}-{counter}{ext}"):
        counter += 1
    return f"{base}-{counter}{ext}"


def resolve_output_path(request: ConversionRequest) -> str:
    """Explicit output gets a .gif suffix; otherwise name after the source. Never overwrites."""
    if request.output_path:
        candidate = _with_gif_suffix(request.output_path)
    elif isinstance(request.source, LocalFile):
        candidate = os.path.splitext(request.source.path)[0] + '.gif'
    elif isinstance(request.source, RemoteVideo):
        candidate = f"youtube-{request.source.video_id}.gif"
    else:
        raise TypeError(f"Unsupported source: {request.source!r}")
    return unique_path(candidate)


class VideoGifConverter:
    """Runs one conversion request end to end"""

    def __init__(self, config: Optional[ConfigManager] = None,
                 remote: Optional[RemoteVideoSource] = None,
                 cache: Optional[SegmentCache] = None,
                 optimizer: Optional[GifOptimizer] = None):
        self.config = config or ConfigManager()
        self._remote = remote
        self._cache = cache
        self.optimizer = optimizer or GifOptimizer(
            optimize_level=self.config.get('gifsicle.optimize_level', 3),
            timeout=self.config.get('gifsicle.timeout', 300),
        )

    @property
    def remote(self) -> RemoteVideoSource:
        if self._remote is None:
            self._remote = YouTubeSource(
                chunk_size=self.config.get('download.chunk_size', 1024 * 1024),
                timeout=self.config.get('download.timeout', 60),
            )
        return self._remote

    def _cache_for(self, request: ConversionRequest) -> SegmentCache:
        if self._cache is not None:
            return self._cache
        return SegmentCache(
            cache_dir=self.config.get('cache.dir'),
            max_size_mb=self.config.get('cache.max_size_mb', 2048),
            max_age_days=self.config.get('cache.max_age_days', 7),
            enabled=request.use_cache and self.config.get('cache.enabled', True),
        )

    def _acquirer(self, request: ConversionRequest, tracker: ResourceTracker) -> SegmentAcquirer:
        return SegmentAcquirer(
            remote=self.remote if isinstance(request.source, RemoteVideo) else None,
            cache=self._cache_for(request),
            tracker=tracker,
            max_retries=self.config.get('retry.max_retries', 3),
            base_delay=self.config.get('retry.base_delay', 1.0),
            backoff_factor=self.config.get('retry.backoff_factor', 1.5),
            tail_buffer=self.config.get('download.tail_buffer', 0.5),
            transcode_settings=self.config.get('encoding.transcode', {}),
            max_auto_width=self.config.get('encoding.max_auto_width', 1920),
            auto_width_factor=self.config.get('encoding.auto_width_factor', 1.5),
        )

    def convert(self, request: ConversionRequest) -> ConversionResult:
        request.validate()
        output_path = resolve_output_path(request)
        monitor = MemoryMonitor(limit_mb=request.memory_limit_mb, verbose=request.verbose)
        timeout = self.config.get('encoding.timeout', 600)

        logger.info(f"Converting {request.source.label} -> {output_path}")

        with ResourceTracker() as tracker:
            monitor.check('start')
            segment = self._acquirer(request, tracker).acquire(request)

            monitor.check('speed')
            clip = apply_speed(segment.path, request.speed, tracker, request.threads,
                               show_progress=request.verbose)
            # Re-timing stretches the whole clip, window offset included
            offset = segment.offset / request.speed if clip != segment.path else segment.offset

            params = constrain_parameters(request.width, request.fps, request.duration,
                                          request.max_size_mb,
                                          min_fps=self.config.get('encoding.min_fps', 10))

            if request.wants_loop:
                monitor.check('loop')
                clip = synthesize_loop(clip, request.duration, request.crossfade, tracker,
                                       offset=offset, threads=request.threads,
                                       show_progress=request.verbose)
                params = params.with_window(0.0, request.duration - request.crossfade)
            else:
                params = params.with_window(offset, request.duration)

            monitor.check('encode')
            temp_gif = str(tracker.temp_path('output.gif'))
            cascade = EncodingCascade(tracker, show_progress=request.verbose, timeout=timeout)
            tier = cascade.run(clip, temp_gif, params,
                               GifSettings(loops=request.loops, colors=request.colors,
                                           dither=request.dither, threads=request.threads))

            optimized = self.optimizer.post_compress(temp_gif, request.colors, request.lossy,
                                                     request.dither)

            output_dir = os.path.dirname(os.path.abspath(output_path))
            os.makedirs(output_dir, exist_ok=True)
            shutil.move(temp_gif, output_path)
            tracker.untrack(temp_gif)

        seam = loop_seam_score(output_path) if request.wants_loop else None
        if seam is not None:
            logger.debug(f"Loop seam difference: {seam:.2f}")

        size_mb = os.path.getsize(output_path) / (1024 * 1024)
        logger.info(f"GIF created: {output_path} ({size_mb:.2f}MB, {params.width}px @ {params.fps}fps)")
        return ConversionResult(
            output_path=output_path,
            tier=tier,
            width=params.width,
            fps=params.fps,
            size_mb=round(size_mb, 2),
            optimized=optimized,
            seam_score=seam,
        )
