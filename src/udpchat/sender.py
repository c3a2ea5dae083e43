from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator

from .constants import MAX_SEGMENT_SIZE
from .errors import TransferRejected
from .net import Address, UdpEndpoint, format_address
from .packet import Response, Segment, decode_file_response, file_request
from .receiver import TransferStats

log = logging.getLogger(__name__)


def new_transfer_id() -> int:
    return random.SystemRandom().getrandbits(64)


def iter_segments(f: BinaryIO, transfer_id: int, segment_size: int = MAX_SEGMENT_SIZE) -> Iterator[Segment]:
    """Yield the file's segments, always ending with an empty one."""
    if not 0 < segment_size <= MAX_SEGMENT_SIZE:
        raise ValueError(f"segment size must be in 1..{MAX_SEGMENT_SIZE}, got {segment_size}")

    seq = 0
    while True:
        chunk = f.read(segment_size)
        yield Segment(transfer_id=transfer_id, seq=seq, payload=chunk)
        if not chunk:
            return
        seq += 1


@dataclass(slots=True)
class FileSender:
    """Uploads one file to a hub.

    Segments are fire-and-forget: each is sent exactly once and never
    acknowledged, so a lost segment leaves the transfer incomplete on the hub.
    """

    udp: UdpEndpoint
    dest: Address
    path: str
    transfer_id: int = field(default_factory=new_transfer_id)
    segment_size: int = MAX_SEGMENT_SIZE

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    def request(self) -> None:
        """Ask the hub to accept the transfer; raise TransferRejected if it refuses."""
        self.udp.sendto(file_request(self.transfer_id, self.filename), self.dest)
        raw, _ = self.udp.recvfrom()
        if decode_file_response(raw) is Response.SEND_FILE_FAILED:
            raise TransferRejected(f"hub {format_address(self.dest)} refused {self.filename!r}")

    def run(self) -> TransferStats:
        with open(self.path, "rb") as f:
            self.request()
            log.info("sending %r as transfer %d", self.filename, self.transfer_id)

            stats = TransferStats()
            for segment in iter_segments(f, self.transfer_id, self.segment_size):
                self.udp.sendto(segment.to_bytes(), self.dest)
                stats.segments += 1
                stats.bytes_sent += segment.length
                log.debug("sent segment %d (%d bytes)", segment.seq, segment.length)

        stats.end_ts = time.monotonic()
        return stats
