"""
GIF Utilities
Inspection helpers for finished GIFs: basic info and loop seam measurement
"""

import os
import logging
from typing import Any, Dict, Optional

import numpy as np
from PIL import Image, ImageSequence

logger = logging.getLogger(__name__)


def frame_difference(first: Image.Image, second: Image.Image) -> float:
    """
    Mean absolute per-channel difference between two frames, 0-255.

    Frames of different sizes are compared after resizing the second to the first.
    """
    a = first.convert('RGB')
    b = second.convert('RGB')
    if a.size != b.size:
        b = b.resize(a.size)
    diff = np.abs(np.asarray(a, dtype=np.int16) - np.asarray(b, dtype=np.int16))
    return float(diff.mean())


def loop_seam_score(gif_path: str) -> Optional[float]:
    """
    How visible the wrap-around is: difference between the last and first frame.

    Lower is smoother. Returns None for unreadable or single-frame files.
    """
    try:
        with Image.open(gif_path) as img:
            n_frames = getattr(img, 'n_frames', 1)
            if n_frames < 2:
                return None
            img.seek(0)
            first = img.convert('RGB')
            img.seek(n_frames - 1)
            last = img.convert('RGB')
    except (OSError, ValueError, EOFError) as e:
        logger.debug(f"Could not measure loop seam of {gif_path}: {e}")
        return None
    return frame_difference(last, first)


def get_gif_info(gif_path: str) -> Dict[str, Any]:
    """Width, height, frame count, duration and size of a GIF via Pillow"""
    info: Dict[str, Any] = {
        'width': 0,
        'height': 0,
        'frame_count': 0,
        'duration': 0.0,
        'file_size_mb': 0.0,
    }
    if not os.path.exists(gif_path):
        return info

    info['file_size_mb'] = os.path.getsize(gif_path) / (1024 * 1024)
    try:
        with Image.open(gif_path) as img:
            info['width'], info['height'] = img.size
            total_ms = 0
            frames = 0
            for frame in ImageSequence.Iterator(img):
                frames += 1
                total_ms += frame.info.get('duration', 0)
            info['frame_count'] = frames
            info['duration'] = total_ms / 1000.0
    except (OSError, ValueError) as e:
        logger.debug(f"Failed to get GIF info: {e}")
    return info
