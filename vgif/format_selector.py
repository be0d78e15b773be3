"""
Rendition selection for remote sources.
"""

import logging
import math
from typing import Iterable, List

from .error_handler import NoSuitableFormat
from .models import Rendition

logger = logging.getLogger(__name__)

MAX_AUTO_WIDTH = 1920
AUTO_WIDTH_FACTOR = 1.5

# Position of each tier in the width-sorted pool
QUALITY_FRACTIONS = {
    'lowest': 0.0,
    'low': 0.25,
    'medium': 0.5,
    'high': 0.75,
}


def _candidate_pool(renditions: Iterable[Rendition]) -> List[Rendition]:
    with_video = [r for r in renditions if r.has_video]
    video_only = [r for r in with_video if not r.has_audio]
    pool = video_only or with_video

    mp4 = [r for r in pool if (r.container or '').lower() == 'mp4']
    return mp4 or pool


def select_rendition(renditions: Iterable[Rendition], quality: str, target_width: int,
                     max_auto_width: int = MAX_AUTO_WIDTH,
                     auto_width_factor: float = AUTO_WIDTH_FACTOR) -> Rendition:
    """
    Pick the rendition to download.

    'auto' takes the narrowest rendition at least min(max_auto_width,
    target_width * auto_width_factor) wide, else the widest available. Named
    tiers index into the pool sorted by width.
    """
    pool = sorted(_candidate_pool(renditions), key=lambda r: r.width)
    if not pool:
        raise NoSuitableFormat(
            "No suitable video format found",
            ["The video may be audio-only or unavailable in your region"],
        )

    if quality == 'auto':
        wanted = min(max_auto_width, target_width * auto_width_factor)
        chosen = next((r for r in pool if r.width >= wanted), pool[-1])
        logger.debug(f"Auto quality: wanted >= {wanted:.0f}px, chose {chosen.width}px ({chosen.format_id})")
        return chosen

    if quality == 'highest':
        return pool[-1]

    if quality not in QUALITY_FRACTIONS:
        raise ValueError(f"Unknown quality tier: {quality}")

    index = math.floor(QUALITY_FRACTIONS[quality] * len(pool))
    index = max(0, min(index, len(pool) - 1))
    chosen = pool[index]
    logger.debug(f"Quality '{quality}': chose {chosen.width}px of {[r.width for r in pool]}")
    return chosen
