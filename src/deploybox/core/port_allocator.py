"""Port bookkeeping for live projects."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from deploybox.core.errors import ResourceExhaustedError


class PortAllocator:
    """Hand out listening ports, skipping assigned and reserved ones.

    Accounting is best-effort: a port is considered free when no project holds it,
    whether or not another program on the host is bound to it.
    """

    def __init__(
        self,
        *,
        base_port: int = 4000,
        reserved: Iterable[int] = (),
        max_attempts: int = 10_000,
    ) -> None:
        self._base_port = base_port
        self._reserved = frozenset(reserved)
        self._max_attempts = max_attempts
        self._assigned: set[int] = set()
        self._lock = threading.Lock()

    @property
    def in_use(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._assigned)

    def allocate(self) -> int:
        with self._lock:
            for port in range(self._base_port, self._base_port + self._max_attempts):
                if port in self._assigned or port in self._reserved:
                    continue
                self._assigned.add(port)
                return port
        msg = (
            f"No free port in {self._base_port}-{self._base_port + self._max_attempts - 1}"
        )
        raise ResourceExhaustedError(msg)

    def release(self, port: int) -> None:
        with self._lock:
            self._assigned.discard(port)
