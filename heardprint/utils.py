"""
Shared helpers: logging, chunking, date parsing.
"""

import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence

from tqdm import tqdm

from . import config

# Global log function (a host script may replace it)
_log_fn = None
# Global verbose flag
_verbose = config.VERBOSE


def set_log_function(fn) -> None:
    """Route all heardprint log lines through `fn` (None restores the default)."""
    global _log_fn
    _log_fn = fn


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = bool(enabled)


def log(msg: str) -> None:
    """Print message with timestamp.

    Uses tqdm.write() to avoid interfering with progress bars.
    """
    if _log_fn:
        _log_fn(msg)
        return
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    tqdm.write(f"[{timestamp}] {msg}")


def verbose_log(msg: str) -> None:
    """Log only when verbose mode is enabled."""
    if _verbose:
        log(f"🔍 [VERBOSE] {msg}")


@contextmanager
def timed_step(step_name: str):
    """Context manager to time and log execution of a step."""
    start_time = time.time()
    log(f"⏱️  [START] {step_name}")
    try:
        yield
    finally:
        elapsed = time.time() - start_time
        log(f"⏱️  [END] {step_name} (took {elapsed:.2f}s)")


def chunks(seq: Sequence, n: int) -> Iterator[list]:
    """Yield successive n-sized chunks of seq."""
    for i in range(0, len(seq), n):
        yield list(seq[i:i + n])


def parse_release_year(release_date: Optional[str]) -> Optional[int]:
    """Extract the year from a release date ("1994", "1994-03", "1994-03-01").

    Returns None when the year is missing or not historically plausible
    (must be > 1900 and <= next year).
    """
    if not release_date:
        return None
    head = str(release_date)[:4]
    if not head.isdigit():
        return None
    year = int(head)
    if year <= 1900 or year > datetime.now().year + 1:
        return None
    return year


def decade_label(year: int) -> str:
    return f"{(year // 10) * 10}s"


def dedupe(items: List[str]) -> List[str]:
    """Drop duplicates while preserving first-seen order."""
    seen = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (round() is banker's)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
