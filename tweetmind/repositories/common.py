from __future__ import annotations

import time


def utc_now_millis() -> int:
    return time.time_ns() // 1_000_000
