"""
Process memory reporting between pipeline stages.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class MemorySnapshot:
    rss_mb: float
    system_total_mb: float
    system_available_mb: float
    system_percent: float


class MemoryMonitor:
    """Logs RSS and system memory; warns when RSS passes the configured limit (0 disables)."""

    def __init__(self, limit_mb: int = 2048, verbose: bool = False,
                 process: Optional[psutil.Process] = None):
        self.limit_mb = limit_mb
        self.verbose = verbose
        self._process = process or psutil.Process()

    def snapshot(self) -> MemorySnapshot:
        memory = psutil.virtual_memory()
        return MemorySnapshot(
            rss_mb=self._process.memory_info().rss / MB,
            system_total_mb=memory.total / MB,
            system_available_mb=memory.available / MB,
            system_percent=memory.percent,
        )

    def check(self, stage: str) -> MemorySnapshot:
        snap = self.snapshot()
        if self.verbose:
            logger.debug(
                f"Memory [{stage}]: RSS {snap.rss_mb:.1f}MB, system "
                f"{snap.system_total_mb - snap.system_available_mb:.0f}/{snap.system_total_mb:.0f}MB "
                f"({snap.system_percent:.0f}%)"
            )
        if self.limit_mb and snap.rss_mb > self.limit_mb:
            logger.warning(f"Memory usage {snap.rss_mb:.0f}MB exceeds limit of {self.limit_mb}MB at {stage}")
        return snap
