"""
Data model for the video-to-GIF pipeline.

The request is immutable once validated; derived encoding parameters live
in EffectiveParameters and are threaded explicitly between stages.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .error_handler import InputConflict, InvalidParameter, LoopPrecondition

logger = logging.getLogger(__name__)

DITHER_MODES = ('none', 'floyd_steinberg', 'bayer', 'sierra2_4a')
QUALITY_TIERS = ('auto', 'lowest', 'low', 'medium', 'high', 'highest')

# Speeds outside this range are allowed but usually produce odd results
RECOMMENDED_SPEED_RANGE = (0.25, 4.0)

_VIDEO_ID_PATTERNS = (
    re.compile(r'[?&]v=([A-Za-z0-9_-]{11})'),
    re.compile(r'/shorts/([A-Za-z0-9_-]{11})'),
    re.compile(r'youtu\.be/([A-Za-z0-9_-]{11})'),
    re.compile(r'/embed/([A-Za-z0-9_-]{11})'),
)
_VIDEO_ID_FALLBACK = re.compile(r'(?:^|[^A-Za-z0-9_-])([A-Za-z0-9_-]{11})(?:$|[^A-Za-z0-9_-])')


def extract_video_id(url: str) -> Optional[str]:
    """Pull an 11-character video id out of a watch, shorts, short-link or embed URL."""
    if not url:
        return None
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    match = _VIDEO_ID_FALLBACK.search(url)
    return match.group(1) if match else None


@dataclass(frozen=True)
class RemoteVideo:
    video_id: str
    url: str

    @property
    def label(self) -> str:
        return f"youtube-{self.video_id}"


@dataclass(frozen=True)
class LocalFile:
    path: str

    @property
    def label(self) -> str:
        return self.path


SourceDescriptor = Union[RemoteVideo, LocalFile]


def source_from_options(url: Optional[str], input_path: Optional[str]) -> SourceDescriptor:
    """Build a source descriptor from the mutually exclusive URL / input options."""
    if url and input_path:
        raise InputConflict(
            "Cannot specify both a video URL and a local input file",
            ["Use either -u/--url or -i/--input, not both"],
        )
    if not url and not input_path:
        raise InputConflict(
            "Either a video URL or a local input file is required",
            ["Pass -u <url> for a remote video or -i <file> for a local one"],
        )
    if input_path:
        return LocalFile(path=input_path)

    video_id = extract_video_id(url)
    if not video_id:
        raise InvalidParameter(f"Could not extract a video id from URL: {url}")
    return RemoteVideo(video_id=video_id, url=url)


@dataclass(frozen=True)
class ConversionRequest:
    """Operator intent for one conversion. Never mutated after validation."""
    source: SourceDescriptor
    start: float = 0.0
    duration: float = 5.0
    width: int = 480
    fps: int = 30
    loops: int = 0
    crossfade: float = 0.0
    speed: float = 1.0
    colors: int = 256
    lossy: int = 80
    dither: str = 'sierra2_4a'
    max_size_mb: float = 50.0
    quality: str = 'auto'
    threads: int = 0
    use_cache: bool = True
    output_path: Optional[str] = None
    memory_limit_mb: int = 2048
    verbose: bool = False

    @property
    def wants_loop(self) -> bool:
        return self.crossfade > 0

    def validate(self) -> 'ConversionRequest':
        """Raise on the first invalid field; returns self for chaining."""
        if self.start < 0:
            raise InvalidParameter(f"Start time must be non-negative, got {self.start}")
        if self.duration <= 0:
            raise InvalidParameter(f"Duration must be positive, got {self.duration}")
        if self.crossfade < 0:
            raise InvalidParameter(f"Crossfade must be non-negative, got {self.crossfade}")
        if self.crossfade > 0 and self.crossfade >= self.duration:
            raise LoopPrecondition(
                f"Crossfade duration ({self.crossfade}s) must be less than the clip "
                f"duration ({self.duration}s)",
                ["Use a shorter crossfade or a longer duration"],
            )
        if self.speed <= 0:
            raise InvalidParameter(f"Speed must be greater than 0, got {self.speed}")
        low, high = RECOMMENDED_SPEED_RANGE
        if not low <= self.speed <= high:
            logger.warning(f"Speed {self.speed} is outside the recommended range {low}-{high}")
        if not 2 <= self.colors <= 256:
            raise InvalidParameter(f"Colors must be between 2 and 256, got {self.colors}")
        if not 0 <= self.lossy <= 100:
            raise InvalidParameter(f"Lossy level must be between 0 and 100, got {self.lossy}")
        if self.dither not in DITHER_MODES:
            raise InvalidParameter(
                f"Invalid dither method '{self.dither}'",
                [f"Valid options: {', '.join(DITHER_MODES)}"],
            )
        if self.quality not in QUALITY_TIERS:
            raise InvalidParameter(
                f"Invalid quality '{self.quality}'",
                [f"Valid options: {', '.join(QUALITY_TIERS)}"],
            )
        if self.width <= 0:
            raise InvalidParameter(f"Width must be positive, got {self.width}")
        if self.fps <= 0:
            raise InvalidParameter(f"Frame rate must be positive, got {self.fps}")
        if self.loops < 0:
            raise InvalidParameter(f"Loop count must be non-negative, got {self.loops}")
        if self.max_size_mb <= 0:
            raise InvalidParameter(f"Max size must be positive, got {self.max_size_mb}")
        if self.threads < 0:
            raise InvalidParameter(f"Thread count must be non-negative, got {self.threads}")
        if self.memory_limit_mb < 0:
            raise InvalidParameter(f"Memory limit must be non-negative, got {self.memory_limit_mb}")
        return self


@dataclass(frozen=True)
class Rendition:
    """One encoded variant of a remote video."""
    width: Optional[int]
    height: Optional[int]
    has_audio: bool
    container: str
    url: str
    format_id: str = ''
    headers: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def has_video(self) -> bool:
        return bool(self.width)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'width': self.width,
            'height': self.height,
            'has_audio': self.has_audio,
            'container': self.container,
            'url': self.url,
            'format_id': self.format_id,
            'headers': dict(self.headers),
        }


@dataclass
class VideoMetadata:
    video_id: str
    title: str = ''
    renditions: List[Rendition] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'video_id': self.video_id,
            'title': self.title,
            'renditions': [r.to_dict() for r in self.renditions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VideoMetadata':
        return cls(
            video_id=data['video_id'],
            title=data.get('title', ''),
            renditions=[Rendition(**r) for r in data.get('renditions', [])],
        )


@dataclass(frozen=True)
class EffectiveParameters:
    """Encoding parameters after size constraints, plus the encode window."""
    width: int
    fps: int
    offset: float = 0.0
    duration: float = 0.0

    def with_window(self, offset: float, duration: float) -> 'EffectiveParameters':
        return replace(self, offset=offset, duration=duration)


@dataclass(frozen=True)
class FilterGraph:
    stages: Tuple[str, ...]

    def render(self) -> str:
        return ';'.join(self.stages)


@dataclass
class EncodingAttempt:
    name: str
    run: Callable[[], None]


@dataclass
class ConversionResult:
    output_path: str
    tier: str
    width: int
    fps: int
    size_mb: float
    optimized: bool
    seam_score: Optional[float] = None
