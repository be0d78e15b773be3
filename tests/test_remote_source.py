import httpx
import pytest
import yt_dlp

from vgif.error_handler import SourceUnavailable
from vgif.models import Rendition
from vgif.remote_source import YouTubeSource, _rendition_from_format

FORMATS = [
    {"format_id": "136", "protocol": "https", "url": "https://media.example.com/136",
     "ext": "mp4", "vcodec": "avc1", "acodec": "none", "width": 1280, "height": 720,
     "http_headers": {"User-Agent": "vgif-test"}},
    {"format_id": "140", "protocol": "https", "url": "https://media.example.com/140",
     "ext": "m4a", "vcodec": "none", "acodec": "mp4a", "width": None, "height": None},
    {"format_id": "hls-1", "protocol": "m3u8_native", "url": "https://media.example.com/hls.m3u8",
     "ext": "mp4", "vcodec": "avc1", "acodec": "mp4a", "width": 1920, "height": 1080},
]


class FakeYoutubeDL:
    info = {"title": "Never Gonna", "formats": FORMATS}
    error = None

    def __init__(self, options):
        self.options = options

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def extract_info(self, url, download=True):
        assert not download
        if self.error is not None:
            raise self.error
        return self.info


def test_rendition_from_format_filters_and_maps():
    video, audio, manifest = (_rendition_from_format(fmt) for fmt in FORMATS)

    assert video.width == 1280 and video.has_video and not video.has_audio
    assert video.headers == {"User-Agent": "vgif-test"}
    assert audio.width is None and not audio.has_video and audio.has_audio
    assert manifest is None


def test_resolve_metadata(monkeypatch):
    monkeypatch.setattr("vgif.remote_source.yt_dlp.YoutubeDL", FakeYoutubeDL)

    metadata = YouTubeSource().resolve_metadata("dQw4w9WgXcQ")

    assert metadata.video_id == "dQw4w9WgXcQ"
    assert metadata.title == "Never Gonna"
    assert [r.format_id for r in metadata.renditions] == ["136", "140"]


def test_resolve_metadata_failure(monkeypatch):
    class FailingYoutubeDL(FakeYoutubeDL):
        error = yt_dlp.utils.DownloadError("Video unavailable")

    monkeypatch.setattr("vgif.remote_source.yt_dlp.YoutubeDL", FailingYoutubeDL)

    with pytest.raises(SourceUnavailable):
        YouTubeSource().resolve_metadata("dQw4w9WgXcQ")


def _rendition():
    return Rendition(width=1280, height=720, has_audio=False, container="mp4",
                     url="https://media.example.com/136", headers={"User-Agent": "vgif-test"})


def test_fetch_rendition_streams_body_with_headers():
    seen = {}

    def handler(request):
        seen["agent"] = request.headers.get("User-Agent")
        return httpx.Response(200, content=b"x" * 10)

    source = YouTubeSource(chunk_size=4, client=httpx.Client(transport=httpx.MockTransport(handler)))
    body = b"".join(source.fetch_rendition(_rendition()))
    source.close()

    assert body == b"x" * 10
    assert seen["agent"] == "vgif-test"


def test_fetch_rendition_raises_on_forbidden():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(403)))
    source = YouTubeSource(client=client)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        list(source.fetch_rendition(_rendition()))

    assert excinfo.value.response.status_code == 403
