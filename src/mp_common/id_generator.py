"""Snowflake-style ID generator for business IDs (offer_id, transaction_id).

IDs are zero-padded to a fixed width so that VARCHAR ordering in PostgreSQL
matches numeric ordering: "newest first" is simply ``ORDER BY id DESC``.
Simplified for a single process; machine_id distinguishes workers.
"""

import threading
import time

ID_WIDTH = 19  # max decimal digits of a 63-bit integer


class SnowflakeIdGenerator:
    """Layout (63 bits): 41 bits ms timestamp | 10 bits machine_id | 12 bits sequence."""

    _EPOCH_MS = 1_700_000_000_000  # 2023-11-14 approx
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << self._MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_int(self) -> int:
        with self._lock:
            now_ms = int(time.time() * 1000)
            if now_ms < self._last_ms:
                # Clock stepped backwards: keep issuing from the last timestamp
                now_ms = self._last_ms
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    while now_ms <= self._last_ms:
                        now_ms = int(time.time() * 1000)
            else:
                self._sequence = 0
            self._last_ms = now_ms
            return (
                ((now_ms - self._EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS))
                | (self._machine_id << self._SEQUENCE_BITS)
                | self._sequence
            )

    def next_id(self) -> str:
        return str(self.next_int()).zfill(ID_WIDTH)


_default_generator = SnowflakeIdGenerator()


def generate_id() -> str:
    """Generate a unique, sortable string ID using the module-level default generator."""
    return _default_generator.next_id()
