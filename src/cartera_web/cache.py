from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from cartera_cli.feeds import PriceSnapshot


class PriceCache:
    """
    Holds one immutable PriceSnapshot and swaps it wholesale once it is older
    than `ttl` seconds. Readers always get a complete snapshot; the lock only
    keeps two requests from refreshing at the same time.
    """

    def __init__(self, fetch: Callable[[], PriceSnapshot], ttl: float = 60.0, clock: Callable[[], float] = time.time):
        self._fetch = fetch
        self._ttl = float(ttl)
        self._clock = clock
        self._snapshot: Optional[PriceSnapshot] = None
        self._lock = threading.Lock()

    def get(self) -> PriceSnapshot:
        snap = self._snapshot
        if snap is not None and self._clock() - snap.fetched_at < self._ttl:
            return snap
        with self._lock:
            snap = self._snapshot
            if snap is None or self._clock() - snap.fetched_at >= self._ttl:
                snap = self._fetch()
                self._snapshot = snap
        return snap

    def invalidate(self) -> None:
        self._snapshot = None
