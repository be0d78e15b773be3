"""
Rough GIF size prediction used to pull width and frame rate under the size budget.
"""

import math
import logging

from .models import EffectiveParameters

logger = logging.getLogger(__name__)

# Height/width ratio assumed for a typical 16:9 source
ASPECT_FACTOR = 0.56
BYTES_PER_PIXEL = 3
MIN_FPS = 10
FPS_REDUCTION_DAMPING = 0.7


def estimate_size_mb(width: int, fps: float, duration: float) -> float:
    """sizeMB = frames * (width^2 * 0.56) * 3 / (8 * 1024 * 1024)"""
    frames = fps * duration
    pixels_per_frame = width * width * ASPECT_FACTOR
    return frames * pixels_per_frame * BYTES_PER_PIXEL / (8 * 1024 * 1024)


def constrain_parameters(width: int, fps: int, duration: float, max_size_mb: float,
                         min_fps: int = MIN_FPS) -> EffectiveParameters:
    """
    Scale width and fps down when the estimate exceeds max_size_mb.

    Advisory only: the real output size is never re-measured against the
    budget.
    """
    estimate = estimate_size_mb(width, fps, duration)
    logger.debug(f"Estimated GIF size: {estimate:.2f}MB (budget {max_size_mb}MB)")

    if estimate <= max_size_mb:
        return EffectiveParameters(width=width, fps=fps)

    reduction = math.sqrt(estimate / max_size_mb)
    new_width = math.floor(width / reduction)
    new_fps = max(min_fps, math.floor(fps / (reduction * FPS_REDUCTION_DAMPING)))

    logger.info(
        f"Estimated size {estimate:.2f}MB exceeds {max_size_mb}MB; "
        f"reducing to {new_width}px @ {new_fps}fps"
    )
    return EffectiveParameters(width=new_width, fps=new_fps)
