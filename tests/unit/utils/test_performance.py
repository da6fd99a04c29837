"""Tests for scan duration recording."""

import logging
import time

from lfs_scanner.utils.performance import record_duration


def test_record_duration_logs_elapsed_time(caplog):
    start = time.perf_counter()

    with caplog.at_level(logging.DEBUG, logger="lfs_scanner.performance"):
        elapsed = record_duration("scan", start)

    assert elapsed >= 0
    assert any("performance scan:" in record.message for record in caplog.records)
