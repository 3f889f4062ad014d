"""
Cache-Control interpretation and result-cache reconciliation.

Recognized directives: max-age, s-maxage, stale-while-revalidate.
Everything else is ignored.
"""

import math
import threading
from datetime import timedelta

from loguru import logger

from zap_http.services.cache import ResultCache
from zap_http.services.models import CacheHint


def _parse_seconds(raw: str) -> float | None:
    value = raw.strip().strip('"')
    try:
        seconds = float(value)
    except ValueError:
        return None
    # delta-seconds carry no sign
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def parse_cache_control(value: str | None) -> CacheHint | None:
    """
    Parse a Cache-Control header value into a CacheHint.

    Returns None when no usable max-age / s-maxage directive is present.
    """
    if not value:
        return None

    directives: dict[str, float] = {}
    for part in value.split(","):
        name, sep, raw = part.partition("=")
        name = name.strip().lower()
        if not sep or name not in ("max-age", "s-maxage", "stale-while-revalidate"):
            continue
        seconds = _parse_seconds(raw)
        if seconds is not None:
            directives.setdefault(name, seconds)

    fresh = directives.get("max-age", directives.get("s-maxage"))
    if fresh is None:
        return None

    fresh_for = timedelta(seconds=fresh)
    retain_for = fresh_for + timedelta(seconds=directives.get("stale-while-revalidate", 0))
    return CacheHint(fresh_for=fresh_for, retain_for=retain_for)


class CacheDefaults:
    """
    Currently applied result-cache defaults.

    Owned by whoever builds the executor; reconcile() only touches the
    result cache when a response carries a hint that differs from the
    applied one. Concurrent callers converge on the last hint seen.
    """

    def __init__(self, cache: ResultCache, initial: CacheHint | None = None):
        self.cache = cache
        self._applied = initial or CacheHint(cache.fresh_for, cache.retain_for)
        self._lock = threading.Lock()
        self.updates = 0

    @property
    def applied(self) -> CacheHint:
        return self._applied

    def reconcile(self, hint: CacheHint) -> bool:
        """Apply `hint` if it differs from the current defaults."""
        with self._lock:
            if hint == self._applied:
                return False
            self.cache.configure_defaults(hint.fresh_for, hint.retain_for)
            self._applied = hint
            self.updates += 1

        logger.debug(
            f"Cache defaults reconciled to fresh {hint.fresh_for.total_seconds()}s / "
            f"retain {hint.retain_for.total_seconds()}s"
        )
        return True
