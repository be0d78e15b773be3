"""
Remote video source adapters.

Metadata comes from yt-dlp (no download); rendition bytes are streamed with
httpx so the acquirer controls where they land and how progress is shown.
"""

import logging
from typing import Any, Dict, Iterator, Optional, Protocol

import httpx
import yt_dlp

from .error_handler import SourceUnavailable
from .models import Rendition, VideoMetadata

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
DEFAULT_TIMEOUT = 60.0

# Progressive downloads only; manifests cannot be streamed byte-for-byte
_STREAMABLE_PROTOCOLS = ('http', 'https')


class RemoteVideoSource(Protocol):
    """What the acquirer needs from a remote host."""

    def resolve_metadata(self, video_id: str) -> VideoMetadata:
        ...

    def fetch_rendition(self, rendition: Rendition) -> Iterator[bytes]:
        ...


def _rendition_from_format(fmt: Dict[str, Any]) -> Optional[Rendition]:
    if fmt.get('protocol') not in _STREAMABLE_PROTOCOLS or not fmt.get('url'):
        return None

    vcodec = fmt.get('vcodec') or 'none'
    acodec = fmt.get('acodec') or 'none'
    width = fmt.get('width') if vcodec != 'none' else None

    return Rendition(
        width=width,
        height=fmt.get('height'),
        has_audio=acodec != 'none',
        container=fmt.get('ext') or '',
        url=fmt['url'],
        format_id=str(fmt.get('format_id', '')),
        headers=dict(fmt.get('http_headers') or {}),
    )


class YouTubeSource:
    """RemoteVideoSource backed by yt-dlp metadata and httpx transfers."""

    WATCH_URL = 'https://www.youtube.com/watch?v={video_id}'

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, timeout: float = DEFAULT_TIMEOUT,
                 client: Optional[httpx.Client] = None):
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._client = client

    def _ydl_options(self) -> Dict[str, Any]:
        return {
            'quiet': True,
            'no_warnings': True,
            'skip_download': True,
            'logger': logger,
        }

    def resolve_metadata(self, video_id: str) -> VideoMetadata:
        url = self.WATCH_URL.format(video_id=video_id)
        logger.debug(f"Resolving metadata for {url}")
        try:
            with yt_dlp.YoutubeDL(self._ydl_options()) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise SourceUnavailable(f"Could not resolve video {video_id}: {e}") from e

        if not info:
            raise SourceUnavailable(f"No metadata returned for video {video_id}")

        renditions = []
        for fmt in info.get('formats') or []:
            rendition = _rendition_from_format(fmt)
            if rendition is not None:
                renditions.append(rendition)

        logger.debug(f"Resolved {len(renditions)} streamable renditions for {video_id}")
        return VideoMetadata(video_id=video_id, title=info.get('title') or '', renditions=renditions)

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client

    def fetch_rendition(self, rendition: Rendition) -> Iterator[bytes]:
        """Yield the rendition body in chunks. Raises httpx.HTTPStatusError on 4xx/5xx."""
        with self._http().stream('GET', rendition.url, headers=rendition.headers) as response:
            response.raise_for_status()
            for chunk in response.iter_bytes(chunk_size=self.chunk_size):
                yield chunk

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
