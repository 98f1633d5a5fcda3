from __future__ import annotations

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


def now_s() -> float:
    """Wall-clock seconds; cache ages must be comparable across processes."""
    return time.time()
