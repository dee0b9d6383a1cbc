from __future__ import annotations

import time
from typing import Any

import psutil


def process_snapshot(started_monotonic: float) -> dict[str, Any]:
    process = psutil.Process()
    with process.oneshot():
        memory = process.memory_info()
        threads = process.num_threads()
        cpu_percent = process.cpu_percent(interval=None)
    return {
        "pid": process.pid,
        "rss_mb": round(memory.rss / (1024 * 1024), 3),
        "threads": int(threads),
        "cpu_percent": round(float(cpu_percent), 3),
        "uptime_s": round(max(0.0, time.monotonic() - float(started_monotonic)), 3),
    }
