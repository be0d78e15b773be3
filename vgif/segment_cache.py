"""
On-disk cache of extracted video segments and remote metadata.

Layout under the cache directory:
    segments/<key>.mp4   extracted windows, key = md5("{video_id}|{start}|{duration}")
    info/<video_id>.json resolved metadata

Every entry expires after max_age seconds; total size is capped by evicting the
oldest entries first. All I/O problems degrade to a cache miss and never fail
the conversion.
"""

import hashlib
import json
import os
import shutil
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .logger_setup import get_logger
from .models import VideoMetadata

logger = get_logger('segment_cache')

DEFAULT_CACHE_DIR = Path.home() / '.vgif-cache'
DEFAULT_MAX_SIZE_MB = 2048
DEFAULT_MAX_AGE_DAYS = 7


@dataclass
class CacheEntry:
    """One file on disk in the segment or metadata store."""
    key: str
    path: Path
    size: int
    mtime: float


@dataclass
class CacheStats:
    """Snapshot of the cache contents."""
    segment_count: int
    info_count: int
    total_size_mb: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SegmentCache:
    """Keyed store of extracted segments with age and size limits."""

    def __init__(self, cache_dir: Optional[str] = None, max_size_mb: float = DEFAULT_MAX_SIZE_MB,
                 max_age_days: float = DEFAULT_MAX_AGE_DAYS, enabled: bool = True):
        self.cache_dir = Path(os.path.expanduser(str(cache_dir))) if cache_dir else DEFAULT_CACHE_DIR
        self.segments_dir = self.cache_dir / 'segments'
        self.info_dir = self.cache_dir / 'info'
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.max_age_seconds = max_age_days * 24 * 60 * 60
        self.enabled = enabled

        if not self.enabled:
            logger.debug("Segment cache disabled")
            return

        try:
            self.segments_dir.mkdir(parents=True, exist_ok=True)
            self.info_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create cache directory {self.cache_dir}: {e}; caching disabled")
            self.enabled = False
            return

        self.cleanup()

    @staticmethod
    def key(video_id: str, start: float, duration: float) -> str:
        """Stable key for one extracted window of one video."""
        return hashlib.md5(f"{video_id}|{start}|{duration}".encode('utf-8')).hexdigest()

    def segment_path(self, key: str) -> Path:
        return self.segments_dir / f"{key}.mp4"

    def info_path(self, video_id: str) -> Path:
        return self.info_dir / f"{video_id}.json"

    def _is_fresh(self, path: Path) -> bool:
        stat = path.stat()
        return stat.st_size > 0 and (time.time() - stat.st_mtime) <= self.max_age_seconds

    def get(self, key: str) -> Optional[Path]:
        """Path of a valid cached segment, or None. Stale entries are removed."""
        if not self.enabled:
            return None

        self.cleanup()
        path = self.segment_path(key)
        try:
            if not path.exists():
                return None
            if self._is_fresh(path):
                logger.debug(f"Cache hit for segment {key}")
                return path
            logger.debug(f"Cache entry {key} is stale, removing")
            path.unlink()
        except OSError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
        return None

    def put(self, key: str, source_path: str) -> Path:
        """Copy a segment into the cache and return the cached path.

        The source is left in place. When the copy fails, the source path is
        returned so the caller can keep going with it.
        """
        source = Path(source_path)
        if not self.enabled:
            return source

        target = self.segment_path(key)
        try:
            shutil.copy2(source, target)
            # copy2 preserves the source mtime; age counts from caching time
            os.utime(target, None)
            logger.debug(f"Cached segment {key} ({target.stat().st_size / 1024 / 1024:.2f}MB)")
        except OSError as e:
            logger.warning(f"Failed to cache segment {key}: {e}")
            return source

        self.cleanup()
        if not target.exists():
            logger.warning(f"Segment {key} is larger than the cache limit and was not kept")
            return source
        return target

    def get_info(self, video_id: str) -> Optional[VideoMetadata]:
        if not self.enabled:
            return None

        path = self.info_path(video_id)
        try:
            if not path.exists():
                return None
            if not self._is_fresh(path):
                path.unlink()
                return None
            with open(path, 'r', encoding='utf-8') as f:
                return VideoMetadata.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable metadata cache for {video_id}: {e}")
            return None

    def put_info(self, video_id: str, metadata: VideoMetadata):
        if not self.enabled:
            return

        try:
            with open(self.info_path(video_id), 'w', encoding='utf-8') as f:
                json.dump(metadata.to_dict(), f)
        except (OSError, TypeError) as e:
            logger.warning(f"Failed to cache metadata for {video_id}: {e}")

    def drop_info(self, video_id: str):
        """Forget cached metadata, e.g. once its stream URLs stop working."""
        try:
            self.info_path(video_id).unlink()
            logger.debug(f"Dropped cached metadata for {video_id}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove cached metadata for {video_id}: {e}")

    def entries(self) -> List[CacheEntry]:
        """Every segment and metadata file currently on disk."""
        found = []
        for directory in (self.segments_dir, self.info_dir):
            if not directory.exists():
                continue
            for path in directory.iterdir():
                if path.is_file():
                    stat = path.stat()
                    found.append(CacheEntry(key=path.stem, path=path,
                                            size=stat.st_size, mtime=stat.st_mtime))
        return found

    def cleanup(self):
        """Drop expired entries, then evict oldest-first until under the size cap."""
        if not self.enabled:
            return

        try:
            now = time.time()
            kept = []
            removed = 0
            for entry in self.entries():
                if now - entry.mtime > self.max_age_seconds:
                    entry.path.unlink()
                    removed += 1
                else:
                    kept.append(entry)

            total = sum(entry.size for entry in kept)
            if total > self.max_size_bytes:
                kept.sort(key=lambda entry: entry.mtime)
                for entry in kept:
                    if total <= self.max_size_bytes:
                        break
                    entry.path.unlink()
                    total -= entry.size
                    removed += 1

            if removed:
                logger.debug(f"Cache cleanup removed {removed} entries, {total / 1024 / 1024:.2f}MB remain")
        except OSError as e:
            logger.warning(f"Cache cleanup failed: {e}")

    def stats(self) -> CacheStats:
        segments = info = total = 0
        if self.enabled:
            try:
                for entry in self.entries():
                    if entry.path.parent == self.segments_dir:
                        segments += 1
                    else:
                        info += 1
                    total += entry.size
            except OSError as e:
                logger.warning(f"Could not read cache statistics: {e}")
        return CacheStats(segment_count=segments, info_count=info,
                          total_size_mb=round(total / 1024 / 1024, 2))

    def clear(self):
        """Remove every cached segment and metadata file."""
        for directory in (self.segments_dir, self.info_dir):
            shutil.rmtree(directory, ignore_errors=True)
            if self.enabled:
                directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cleared cache at {self.cache_dir}")
