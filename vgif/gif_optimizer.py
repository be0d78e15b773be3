"""
GIF post-compression with gifsicle.

Runs once on the encoded GIF. Any problem here is non-fatal: the
unoptimized GIF is kept and a warning is logged.
"""

import os
import subprocess
import logging
from typing import List, Optional

from .error_handler import CompressionSkipped

logger = logging.getLogger(__name__)

# Dither method name -> gifsicle flag; sierra2_4a keeps gifsicle's default
DITHER_FLAGS = {
    'none': '--no-dither',
    'floyd_steinberg': '--dither=floyd-steinberg',
    'bayer': '--dither=ordered',
    'sierra2_4a': None,
}


class GifOptimizer:
    """Lossy palette reduction and frame optimization of finished GIFs"""

    def __init__(self, optimize_level: int = 3, timeout: int = 300, executable: str = 'gifsicle'):
        self.optimize_level = max(1, min(3, optimize_level))
        self.timeout = timeout
        self.executable = executable

    @staticmethod
    def needs_compression(colors: int, lossy: int) -> bool:
        """Full palette with no lossy pass leaves nothing for gifsicle to do."""
        return not (colors == 256 and lossy == 0)

    def build_command(self, input_path: str, output_path: str, colors: int, lossy: int,
                      dither: str) -> List[str]:
        cmd = [
            self.executable,
            f"--optimize={self.optimize_level}",
            "--no-warnings",
            f"--colors={max(2, min(256, colors))}",
        ]
        if lossy and lossy > 0:
            cmd.append(f"--lossy={int(lossy)}")
        dither_flag = DITHER_FLAGS.get(dither)
        if dither_flag:
            cmd.append(dither_flag)
        cmd.extend([input_path, "--output", output_path])
        return cmd

    def post_compress(self, gif_path: str, colors: int, lossy: int, dither: str) -> bool:
        """
        Compress gif_path in place.

        Returns True when the file was replaced by a compressed version, False
        when compression was skipped (fast path, missing tool or failure).
        """
        if not self.needs_compression(colors, lossy):
            logger.debug("Skipping gifsicle: 256 colors with no lossy compression")
            return False

        try:
            self._run_gifsicle(gif_path, colors, lossy, dither)
        except CompressionSkipped as e:
            logger.warning(f"GIF post-compression skipped: {e.message}")
            return False
        return True

    def _run_gifsicle(self, gif_path: str, colors: int, lossy: int, dither: str):
        if not os.path.exists(gif_path):
            raise CompressionSkipped(f"input file does not exist: {gif_path}")

        temp_output = f"{gif_path}.tmp"
        cmd = self.build_command(gif_path, temp_output, colors, lossy, dither)
        logger.debug(f"gifsicle command: {' '.join(cmd)}")

        original_size = os.path.getsize(gif_path)
        try:
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    encoding='utf-8',
                    errors='replace',
                    timeout=self.timeout
                )
            except FileNotFoundError as e:
                raise CompressionSkipped(
                    "gifsicle not found. Is gifsicle installed?",
                    ["Install gifsicle (https://www.lcdf.org/gifsicle/) for smaller GIFs"],
                ) from e
            except subprocess.TimeoutExpired as e:
                raise CompressionSkipped(f"gifsicle timed out after {self.timeout}s") from e

            if result.returncode != 0:
                stderr_preview = result.stderr[:500] if result.stderr else "No stderr output"
                raise CompressionSkipped(f"gifsicle failed with return code {result.returncode}: {stderr_preview}")

            if not os.path.exists(temp_output) or os.path.getsize(temp_output) == 0:
                raise CompressionSkipped(f"gifsicle produced no output: {temp_output}")

            os.replace(temp_output, gif_path)
        finally:
            self._discard(temp_output)

        new_size = os.path.getsize(gif_path)
        saved_pct = (1 - new_size / original_size) * 100 if original_size else 0.0
        logger.info(
            f"gifsicle: {original_size / 1024 / 1024:.2f}MB -> {new_size / 1024 / 1024:.2f}MB "
            f"({saved_pct:.1f}% smaller)"
        )

    @staticmethod
    def _discard(path: Optional[str]):
        if path and os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.debug(f"Could not remove {path}: {e}")
