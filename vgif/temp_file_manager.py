# temp_file_manager.py
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Set, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ResourceTracker:
    """Owns one run's temp directory and every intermediate file created in it.

    Used as a context manager; leaving the block always sweeps, whether the
    run succeeded, failed with a handled error, or raised.
    """

    def __init__(self, parent_dir: Optional[PathLike] = None, prefix: str = 'vgif-'):
        self._parent_dir = str(parent_dir) if parent_dir else None
        self._prefix = prefix
        self._temp_files: Set[Path] = set()
        self.temp_dir: Optional[Path] = None

    def __enter__(self) -> 'ResourceTracker':
        self.temp_dir = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._parent_dir))
        logger.debug(f"Created temporary directory: {self.temp_dir}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.sweep()
        return False

    def temp_path(self, name: str) -> Path:
        """Path for a new intermediate inside the run directory, already tracked."""
        if self.temp_dir is None:
            raise RuntimeError("ResourceTracker used outside of its context")
        return self.track(self.temp_dir / name)

    def track(self, file_path: PathLike) -> Path:
        """Register a temporary file for cleanup."""
        path = Path(file_path)
        self._temp_files.add(path)
        return path

    def untrack(self, file_path: PathLike):
        """Stop tracking a file that has been handed over (e.g. moved to the output)."""
        self._temp_files.discard(Path(file_path))

    def release(self, file_path: PathLike):
        """Delete a tracked file now. Unknown or already-missing paths are ignored."""
        path = Path(file_path)
        if path not in self._temp_files:
            return
        self._temp_files.discard(path)
        try:
            if path.exists():
                path.unlink()
                logger.debug(f"Released temporary file: {path}")
        except OSError as e:
            logger.warning(f"Failed to release temporary file {path}: {e}")

    def sweep(self):
        """Delete all remaining tracked files, then the run directory."""
        for path in list(self._temp_files):
            try:
                if path.exists():
                    path.unlink()
                    logger.debug(f"Cleaned up temporary file: {path}")
            except OSError as e:
                logger.error(f"Failed to clean up temporary file {path}: {e}")
            self._temp_files.discard(path)

        if self.temp_dir is not None and self.temp_dir.exists():
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            logger.debug(f"Removed temporary directory: {self.temp_dir}")

    def get_temp_count(self) -> int:
        """Get count of tracked temporary files."""
        return len(self._temp_files)

    def list_temp_files(self):
        """List all tracked temporary files."""
        return list(self._temp_files)
