"""
FFmpeg Utilities Module
Shared helpers for running ffmpeg: thread defaults, probing, progress-tracked
execution and segment extraction
"""

import os
import subprocess
import logging
from typing import Any, Dict, List, Optional

import ffmpeg
from tqdm import tqdm

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600


class FFmpegError(Exception):
    """An ffmpeg invocation exited non-zero, timed out or could not start."""

    def __init__(self, message: str, cmd: Optional[List[str]] = None,
                 returncode: Optional[int] = None, stderr: str = ''):
        super().__init__(message)
        self.cmd = cmd or []
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self):
        base = super().__str__()
        tail = (self.stderr or '').strip().splitlines()[-3:]
        return f"{base}: {' | '.join(tail)}" if tail else base


class FFmpegUtils:
    """Shared utilities for FFmpeg operations"""

    @staticmethod
    def resolve_thread_count(threads: int) -> int:
        """0 means every available core."""
        if threads and threads > 0:
            return threads
        return os.cpu_count() or 1

    @staticmethod
    def add_ffmpeg_perf_flags(cmd: List[str], threads: Optional[int] = None,
                              show_stats: bool = False) -> List[str]:
        """Insert noise-reduction and thread flags right after the program name.

        Mutates and returns the same list for convenience.
        """
        if not cmd:
            return cmd
        insert_index = 1 if os.path.basename(cmd[0]).lower().startswith('ffmpeg') else 0

        flags = ['-hide_banner', '-loglevel', 'error']
        if show_stats:
            flags.append('-stats')
        if threads is not None and '-threads' not in cmd:
            flags.extend(['-threads', str(threads)])

        for i, flag in enumerate(flags):
            cmd.insert(insert_index + i, flag)
        return cmd

    @staticmethod
    def parse_time(time_str: str) -> Optional[float]:
        """Parse an ffmpeg HH:MM:SS.ms timestamp into seconds."""
        parts = time_str.split(':')
        if len(parts) != 3:
            return None
        try:
            hours, minutes, seconds = (float(p) for p in parts)
        except ValueError:
            return None
        return hours * 3600 + minutes * 60 + seconds

    @staticmethod
    def compile_stream(stream) -> List[str]:
        """Turn an ffmpeg-python output node into an argument list."""
        return ffmpeg.compile(stream, overwrite_output=True)

    @staticmethod
    def run_command(cmd: List[str], duration: Optional[float] = None,
                    description: str = "Processing", show_progress: bool = False,
                    timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
        """Execute an ffmpeg command, raising FFmpegError on any failure.

        With show_progress and a known duration, a tqdm bar follows the
        `time=` stats ffmpeg writes to stderr.
        """
        logger.debug(f"Running: {subprocess.list2cmdline(cmd)}")

        if show_progress and duration:
            FFmpegUtils._run_with_progress(cmd, duration, description, timeout)
            return

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=timeout
            )
        except subprocess.TimeoutExpired as e:
            raise FFmpegError(f"{description} timed out after {timeout}s", cmd) from e
        except FileNotFoundError as e:
            raise FFmpegError(f"ffmpeg executable not found: {cmd[0]}", cmd) from e

        if result.returncode != 0:
            raise FFmpegError(f"{description} failed with exit code {result.returncode}",
                              cmd, result.returncode, result.stderr)

    @staticmethod
    def _run_with_progress(cmd: List[str], duration: float, description: str,
                           timeout: Optional[float]) -> None:
        # -loglevel error hides the stats line unless asked for explicitly
        if '-stats' not in cmd:
            cmd = cmd[:1] + ['-stats'] + cmd[1:]

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                encoding='utf-8',
                errors='replace'
            )
        except FileNotFoundError as e:
            raise FFmpegError(f"ffmpeg executable not found: {cmd[0]}", cmd) from e

        stderr_tail: List[str] = []
        with tqdm(total=100, desc=description, unit="%", leave=False) as progress_bar:
            for line in process.stderr:
                if 'time=' in line:
                    current = FFmpegUtils.parse_time(line.split('time=')[1].split()[0])
                    if current is not None:
                        progress_bar.n = min(int(current / duration * 100), 100)
                        progress_bar.refresh()
                else:
                    stderr_tail = (stderr_tail + [line])[-20:]

        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            raise FFmpegError(f"{description} timed out after {timeout}s", cmd) from e

        if process.returncode != 0:
            raise FFmpegError(f"{description} failed with exit code {process.returncode}",
                              cmd, process.returncode, ''.join(stderr_tail))

    @staticmethod
    def probe(video_path: str) -> Dict[str, Any]:
        """ffprobe metadata through ffmpeg-python; raises FFmpegError."""
        try:
            return ffmpeg.probe(video_path)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode('utf-8', errors='replace') if e.stderr else ''
            raise FFmpegError(f"ffprobe failed for {video_path}", stderr=stderr) from e

    @staticmethod
    def has_audio_stream(video_path: str) -> bool:
        """Whether the file carries at least one audio stream"""
        try:
            info = FFmpegUtils.probe(video_path)
        except FFmpegError as e:
            logger.debug(f"Could not probe audio for {video_path}: {e}")
            return False
        return any(s.get('codec_type') == 'audio' for s in info.get('streams', []))

    @staticmethod
    def get_duration(video_path: str) -> Optional[float]:
        try:
            info = FFmpegUtils.probe(video_path)
            return float(info.get('format', {}).get('duration'))
        except (FFmpegError, TypeError, ValueError) as e:
            logger.debug(f"Could not read duration of {video_path}: {e}")
            return None

    @staticmethod
    def is_nonempty_file(path: str) -> bool:
        return os.path.isfile(path) and os.path.getsize(path) > 0

    @staticmethod
    def build_segment_command(input_path: str, output_path: str, start_time: float,
                              duration: float, transcode: bool = False,
                              transcode_settings: Optional[Dict[str, Any]] = None) -> List[str]:
        """Window extraction: stream copy, or a fast libx264 re-encode"""
        cmd = ['ffmpeg', '-y', '-ss', str(start_time), '-i', input_path, '-t', str(duration)]
        if transcode:
            settings = transcode_settings or {}
            cmd.extend([
                '-c:v', settings.get('codec', 'libx264'),
                '-crf', str(settings.get('crf', 23)),
                '-preset', settings.get('preset', 'fast'),
                '-c:a', 'aac',
            ])
        else:
            cmd.extend(['-c:v', 'copy', '-c:a', 'copy'])
        cmd.append(output_path)
        return FFmpegUtils.add_ffmpeg_perf_flags(cmd)

    @staticmethod
    def extract_video_segment(input_path: str, output_path: str, start_time: float,
                              duration: float, transcode: bool = False,
                              transcode_settings: Optional[Dict[str, Any]] = None,
                              timeout: Optional[float] = DEFAULT_TIMEOUT) -> None:
        """Extract a segment from video; raises FFmpegError"""
        cmd = FFmpegUtils.build_segment_command(input_path, output_path, start_time, duration,
                                                transcode, transcode_settings)
        description = "Transcoding segment" if transcode else "Extracting segment"
        FFmpegUtils.run_command(cmd, description=description, timeout=timeout)
