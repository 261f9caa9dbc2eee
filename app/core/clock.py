from datetime import datetime, timezone
import time


def utc_now_iso() -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix; sorts lexically in time order."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_seconds() -> int:
    return int(time.time())
