"""
Application timezone cache.
An explicit object owned by whoever constructs it; no module-level state.
"""
import threading
import time
from typing import Callable, Optional

import structlog

from .time_rules import get_timezone

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class TimezoneCache:
    """
    Caches the configured IANA timezone for a limited time.

    Args:
        loader: Returns the stored timezone name (or None when unset)
        ttl_seconds: How long a loaded value stays fresh
        clock: Monotonic clock in seconds, injectable for tests
        default: Used when nothing is stored and nothing is cached
    """

    def __init__(
        self,
        loader: Callable[[], Optional[str]],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        default: str = "UTC",
    ):
        get_timezone(default)
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._default = default
        self._value: Optional[str] = None
        self._loaded_at: float = 0.0
        self._lock = threading.Lock()

    @property
    def cached(self) -> Optional[str]:
        return self._value

    def _is_fresh(self) -> bool:
        return self._value is not None and (self._clock() - self._loaded_at) < self._ttl

    def get(self, force_refresh: bool = False) -> str:
        """Cached timezone, reloading when stale or when forced."""
        with self._lock:
            if not force_refresh and self._is_fresh():
                return self._value
        return self.refresh()

    def refresh(self) -> str:
        """
        Reload from the loader.

        Loader failures keep the last cached value (or the default).

        Raises:
            InvalidTimezoneError: if the stored value is not a valid IANA name
        """
        try:
            loaded = self._loader()
        except Exception as e:
            logger.warning("timezone_load_failed", error=str(e))
            with self._lock:
                return self._value or self._default

        value = loaded or self._default
        get_timezone(value)
        with self._lock:
            self._value = value
            self._loaded_at = self._clock()
        return value

    def invalidate(self) -> None:
        """Forget the cached value; the next get() reloads."""
        with self._lock:
            self._value = None
            self._loaded_at = 0.0
