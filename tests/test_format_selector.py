import pytest

from vgif.error_handler import NoSuitableFormat
from vgif.format_selector import select_rendition
from vgif.models import Rendition


def _rendition(width, has_audio=False, container="mp4", format_id=None):
    return Rendition(width=width, height=int(width * 9 / 16) if width else None,
                     has_audio=has_audio, container=container,
                     url=f"https://example.com/{width}", format_id=format_id or str(width))


LADDER = [_rendition(w) for w in (1080, 120, 720, 240, 480)]


@pytest.mark.parametrize("quality, expected", [
    ("lowest", 120),
    ("low", 240),
    ("medium", 480),
    ("high", 720),
    ("highest", 1080),
])
def test_quality_tiers_index_into_sorted_pool(quality, expected):
    assert select_rendition(LADDER, quality, target_width=480).width == expected


def test_auto_picks_narrowest_at_least_one_and_a_half_times_target():
    # 480 * 1.5 = 720
    assert select_rendition(LADDER, "auto", target_width=480).width == 720
    # 500 * 1.5 = 750 -> next wider is 1080
    assert select_rendition(LADDER, "auto", target_width=500).width == 1080


def test_auto_caps_wanted_width_and_falls_back_to_largest():
    # min(1920, 2000 * 1.5) = 1920, nothing that wide
    assert select_rendition(LADDER, "auto", target_width=2000).width == 1080


def test_video_only_renditions_preferred_over_mixed():
    renditions = [_rendition(1080, has_audio=True), _rendition(360)]
    assert select_rendition(renditions, "highest", target_width=480).width == 360


def test_mixed_renditions_used_when_no_video_only():
    renditions = [_rendition(720, has_audio=True), _rendition(None, has_audio=True)]
    assert select_rendition(renditions, "auto", target_width=480).width == 720


def test_mp4_container_preferred():
    renditions = [_rendition(720, container="webm"), _rendition(480, container="mp4")]
    assert select_rendition(renditions, "highest", target_width=480).container == "mp4"


def test_audio_only_or_empty_raises():
    with pytest.raises(NoSuitableFormat):
        select_rendition([], "auto", target_width=480)
    with pytest.raises(NoSuitableFormat):
        select_rendition([_rendition(None, has_audio=True)], "auto", target_width=480)
