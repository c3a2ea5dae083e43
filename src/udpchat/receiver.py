from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path

from .packet import Segment

log = logging.getLogger(__name__)


@dataclass(slots=True)
class TransferStats:
    segments: int = 0
    bytes_sent: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_sent * 8 / 1_000_000) / self.duration_s


class FileReceiver:
    """Collects the segments of one file transfer.

    Segments are keyed by sequence number, so duplicates and out-of-order
    delivery are harmless. The transfer is complete once the keys are exactly
    ``0..max`` and the segment at ``max`` is empty; completion is signalled
    once, from inside the same critical section that inserted the segment.
    """

    def __init__(self, transfer_id: int, filename: str):
        self.transfer_id = transfer_id
        self.filename = filename
        self._segments: dict[int, Segment] = {}
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._complete = False

    # REQUIRE: self._lock held
    def _is_complete(self) -> bool:
        if not self._segments:
            return False
        last = max(self._segments)
        if len(self._segments) != last + 1:
            return False
        return self._segments[last].is_last

    def is_complete(self) -> bool:
        with self._lock:
            return self._is_complete()

    @property
    def complete(self) -> bool:
        return self._complete

    def __len__(self) -> int:
        with self._lock:
            return len(self._segments)

    def insert(self, segment: Segment) -> bool:
        """Store ``segment``; return True if it completed the transfer."""
        if segment.transfer_id != self.transfer_id:
            raise ValueError(f"segment for transfer {segment.transfer_id} sent to receiver {self.transfer_id}")

        with self._lock:
            if self._complete:
                log.debug("ignoring %s after completion", segment)
                return False
            self._segments[segment.seq] = segment
            log.debug("received segment %s", segment)
            if self._is_complete():
                self._complete = True
                self._done.set()
                log.info("all %d segments of %r received", len(self._segments), self.filename)
                return True
        return False

    def wait(self, timeout: float | None = None) -> bool:
        """Block until completion or release; True only if complete."""
        self._done.wait(timeout)
        return self._complete

    def release(self) -> None:
        """Wake the waiter without completing, e.g. on hub shutdown."""
        self._done.set()

    def assemble(self) -> bytes:
        with self._lock:
            ordered = [self._segments[seq].payload for seq in sorted(self._segments)]
        return b"".join(ordered)

    def write_to(self, out_dir: str | os.PathLike[str]) -> Path:
        # never hold the segment lock across file I/O
        data = self.assemble()
        path = Path(out_dir) / os.path.basename(self.filename)
        with open(path, "wb") as out:
            out.write(data)
        log.info("wrote %d bytes to %s", len(data), path)
        return path
