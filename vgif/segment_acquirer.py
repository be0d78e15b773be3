"""
Segment acquisition: turns a source descriptor into a local clip covering
the requested window, with as little remote transfer as possible.
"""

import os
import shutil
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx
from tqdm import tqdm

from .error_handler import ExtractionFailed, SourceUnavailable, classify_transfer_error
from .ffmpeg_utils import FFmpegError, FFmpegUtils
from .format_selector import select_rendition
from .models import ConversionRequest, LocalFile, RemoteVideo, Rendition, VideoMetadata
from .remote_source import RemoteVideoSource
from .retry import BACKOFF_FACTOR, with_retry
from .segment_cache import SegmentCache
from .temp_file_manager import ResourceTracker

logger = logging.getLogger(__name__)

# Seconds fetched past the window so keyframe-aligned copies are not cut short
TAIL_BUFFER = 0.5


@dataclass(frozen=True)
class AcquiredSegment:
    """A local clip plus where the requested window starts inside it."""
    path: str
    offset: float
    from_cache: bool = False


def remote_window_duration(request: ConversionRequest, tail_buffer: float = TAIL_BUFFER) -> float:
    """Source seconds to fetch so the output timeline covers duration + crossfade."""
    return round((request.duration + request.crossfade) * request.speed + tail_buffer, 6)


class SegmentAcquirer:
    def __init__(self, remote: RemoteVideoSource, cache: SegmentCache, tracker: ResourceTracker,
                 max_retries: int = 3, base_delay: float = 1.0, tail_buffer: float = TAIL_BUFFER,
                 transcode_settings: Optional[dict] = None, max_auto_width: int = 1920,
                 auto_width_factor: float = 1.5, backoff_factor: float = BACKOFF_FACTOR):
        self.remote = remote
        self.cache = cache
        self.tracker = tracker
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.backoff_factor = backoff_factor
        self.tail_buffer = tail_buffer
        self.transcode_settings = transcode_settings or {}
        self.max_auto_width = max_auto_width
        self.auto_width_factor = auto_width_factor

    def acquire(self, request: ConversionRequest) -> AcquiredSegment:
        source = request.source
        if isinstance(source, LocalFile):
            if not os.path.isfile(source.path):
                raise SourceUnavailable(f"Input file not found: {source.path}")
            return AcquiredSegment(path=source.path, offset=request.start)
        if isinstance(source, RemoteVideo):
            return self._acquire_remote(source, request)
        raise TypeError(f"Unsupported source: {source!r}")

    def resolve_metadata(self, video_id: str) -> VideoMetadata:
        """Fresh lookup through the remote source, retried and written to the cache."""
        metadata = with_retry(lambda: self.remote.resolve_metadata(video_id),
                              max_retries=self.max_retries, base_delay=self.base_delay,
                              on_retry=self._log_retry, backoff_factor=self.backoff_factor)
        self.cache.put_info(video_id, metadata)
        return metadata

    def _metadata(self, video_id: str) -> Tuple[VideoMetadata, bool]:
        cached = self.cache.get_info(video_id)
        if cached is not None:
            logger.debug(f"Using cached metadata for {video_id}")
            return cached, True
        return self.resolve_metadata(video_id), False

    @staticmethod
    def _log_retry(error: BaseException, attempt: int, max_attempts: int):
        logger.warning(f"Metadata lookup failed (attempt {attempt}/{max_attempts}): {error}")

    def _copy_cached(self, key: str, segment_path: str) -> bool:
        cached = self.cache.get(key)
        if cached is None:
            return False
        try:
            shutil.copy2(cached, segment_path)
        except OSError as e:
            logger.warning(f"Could not read cached segment {key}, downloading instead: {e}")
            return False
        logger.info("Using cached video segment")
        return True

    def _acquire_remote(self, source: RemoteVideo, request: ConversionRequest) -> AcquiredSegment:
        window = remote_window_duration(request, self.tail_buffer)
        key = self.cache.key(source.video_id, request.start, window)
        segment_path = str(self.tracker.temp_path(f"segment_{key}.mp4"))

        if self._copy_cached(key, segment_path):
            return AcquiredSegment(path=segment_path, offset=0.0, from_cache=True)

        metadata, from_cache = self._metadata(source.video_id)
        downloads: List[str] = []
        try:
            try:
                full_path = self._fetch_full(metadata, source, request, downloads)
            except SourceUnavailable as e:
                # Signed stream URLs expire long before cached metadata does
                if not from_cache or e.status_code != 403:
                    raise
                logger.warning("Cached stream URL was rejected, refreshing video metadata")
                self.cache.drop_info(source.video_id)
                metadata = self.resolve_metadata(source.video_id)
                full_path = self._fetch_full(metadata, source, request, downloads)
            self._extract(full_path, segment_path, request.start, window)
        finally:
            for path in downloads:
                self.tracker.release(path)

        self.cache.put(key, segment_path)
        return AcquiredSegment(path=segment_path, offset=0.0)

    def _fetch_full(self, metadata: VideoMetadata, source: RemoteVideo, request: ConversionRequest,
                    downloads: List[str]) -> str:
        rendition = select_rendition(metadata.renditions, request.quality, request.width,
                                     self.max_auto_width, self.auto_width_factor)
        logger.info(f"Selected format {rendition.format_id}: {rendition.width}x{rendition.height} "
                    f"{rendition.container}")

        full_path = str(self.tracker.temp_path(f"full_{source.video_id}.{rendition.container or 'mp4'}"))
        downloads.append(full_path)
        self._download(rendition, full_path, source, request)
        return full_path

    def _download(self, rendition: Rendition, target_path: str, source: RemoteVideo,
                  request: ConversionRequest):
        logger.info(f"Downloading video {source.video_id}")
        try:
            with open(target_path, 'wb') as f, tqdm(
                desc="Downloading", unit='B', unit_scale=True, unit_divisor=1024,
                disable=not request.verbose, leave=False,
            ) as progress_bar:
                for chunk in self.remote.fetch_rendition(rendition):
                    f.write(chunk)
                    progress_bar.update(len(chunk))
        except httpx.HTTPError as e:
            raise classify_transfer_error(e, source.url, request) from e
        except OSError as e:
            raise SourceUnavailable(f"Could not write downloaded video: {e}") from e

        if not FFmpegUtils.is_nonempty_file(target_path):
            raise SourceUnavailable(f"Download of {source.video_id} produced an empty file")

    def _extract(self, full_path: str, segment_path: str, start: float, window: float):
        try:
            FFmpegUtils.extract_video_segment(full_path, segment_path, start, window)
            if FFmpegUtils.is_nonempty_file(segment_path):
                return
            logger.warning("Stream copy produced an empty segment, re-encoding")
        except FFmpegError as e:
            logger.warning(f"Stream copy extraction failed, re-encoding: {e}")

        try:
            FFmpegUtils.extract_video_segment(full_path, segment_path, start, window, transcode=True,
                                              transcode_settings=self.transcode_settings)
        except FFmpegError as e:
            raise ExtractionFailed(f"Failed to extract video segment: {e}") from e

        if not FFmpegUtils.is_nonempty_file(segment_path):
            raise ExtractionFailed("Segment extraction produced an empty file")
