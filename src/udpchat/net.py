from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass, field
from typing import Tuple

from .constants import MAX_UDP_PAYLOAD

log = logging.getLogger(__name__)

Address = Tuple[str, int]


@dataclass(frozen=True, slots=True)
class Impairment:
    """Simulated loss and delay, applied to both directions of an endpoint."""

    loss_rate: float = 0.0
    delay_ms: int = 0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    @property
    def active(self) -> bool:
        return self.loss_rate > 0 or self.delay_ms > 0

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and self.rng.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


def format_address(addr: Address) -> str:
    return f"{addr[0]}:{addr[1]}"


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_s: float | None = None,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        sock.settimeout(timeout_s)
        return cls(sock, impairment)

    @classmethod
    def sending(
        cls,
        timeout_s: float | None = None,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.settimeout(timeout_s)
        return cls(sock, impairment)

    @property
    def address(self) -> Address:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop():
            log.debug("dropped outbound %d bytes to %s", len(data), format_address(addr))
            return
        self.impairment.sleep_if_needed()
        self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = MAX_UDP_PAYLOAD) -> Tuple[bytes, Address]:
        while True:
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop():
                log.debug("dropped inbound %d bytes from %s", len(data), format_address(addr))
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()
