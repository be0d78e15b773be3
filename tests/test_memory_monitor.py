import logging
from types import SimpleNamespace

from vgif.memory_monitor import MB, MemoryMonitor


class FakeProcess:
    def __init__(self, rss_mb):
        self.rss_mb = rss_mb

    def memory_info(self):
        return SimpleNamespace(rss=int(self.rss_mb * MB))


def test_snapshot_reports_process_rss():
    snap = MemoryMonitor(process=FakeProcess(300)).snapshot()

    assert round(snap.rss_mb) == 300
    assert snap.system_total_mb > 0


def test_warns_when_over_limit(caplog):
    monitor = MemoryMonitor(limit_mb=100, process=FakeProcess(250))

    with caplog.at_level(logging.WARNING, logger="vgif.memory_monitor"):
        monitor.check("encode")

    assert "exceeds limit of 100MB at encode" in caplog.text


def test_zero_limit_disables_warning(caplog):
    monitor = MemoryMonitor(limit_mb=0, process=FakeProcess(10_000))

    with caplog.at_level(logging.WARNING, logger="vgif.memory_monitor"):
        monitor.check("encode")

    assert caplog.records == []
