"""
Error types raised by the rate-limited client.

All of them derive from spotipy's SpotifyException so code that already
handles spotipy errors (and inspects `http_status` / `headers`) keeps working.
"""

from typing import Optional

from spotipy.exceptions import SpotifyException

LONG_COOLDOWN_PREFIX = "rate_limit_long"


class UpstreamError(SpotifyException):
    """Terminal non-success response from the upstream API."""

    def __init__(self, status: int, body: str = "", path: str = "", headers: Optional[dict] = None):
        self.status = status
        self.body = body or ""
        self.path = path
        super().__init__(status, -1, f"{path}: {self.body[:200]}", headers=headers)

    def __str__(self) -> str:
        return f"Spotify {self.status}: {self.body[:200]}"


class AuthError(UpstreamError):
    """Credential rejected outright (401). Fatal to the whole run."""


class RetryExhausted(UpstreamError):
    """Throttled (or transient failures) repeatedly; the local retry budget ran out."""

    def __init__(self, path: str, attempts: int):
        self.attempts = attempts
        super().__init__(429, f"rate limited on {path} after {attempts} attempts", path=path)


class LongCooldown(UpstreamError):
    """Server asked for a wait above the local ceiling.

    Never absorbed locally; str() is the machine-readable
    "rate_limit_long:<seconds>" signal the boundary passes through.
    """

    def __init__(self, seconds: int, path: str = ""):
        self.seconds = int(seconds)
        super().__init__(
            429, f"{LONG_COOLDOWN_PREFIX}:{self.seconds}", path=path,
            headers={"Retry-After": str(self.seconds)},
        )

    def __str__(self) -> str:
        return f"{LONG_COOLDOWN_PREFIX}:{self.seconds}"


def parse_long_cooldown(message: str) -> Optional[int]:
    """Return the seconds encoded in a "rate_limit_long:<seconds>" string, else None."""
    if not message or not message.startswith(f"{LONG_COOLDOWN_PREFIX}:"):
        return None
    tail = message.split(":", 1)[1]
    digits = ""
    for ch in tail:
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else None
