from __future__ import annotations

import logging

from .constants import (
    DEFAULT_TIMEOUT_S,
    EMPTY_HISTORY,
    HISTORY_SEPARATOR,
    SERVICE_HOST,
    SERVICE_PORT,
)
from .net import Address, Impairment, UdpEndpoint
from .packet import Opcode, encode
from .receiver import TransferStats
from .sender import FileSender

log = logging.getLogger(__name__)


class Client:
    """Talks to one hub, one request at a time.

    Responses are not demultiplexed: ``receive`` returns whatever datagram
    arrives next, so callers must not have two requests in flight.
    """

    def __init__(self, udp: UdpEndpoint, remote: Address):
        self.udp = udp
        self.remote = remote

    @classmethod
    def connect(
        cls,
        host: str = SERVICE_HOST,
        port: int = SERVICE_PORT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        impairment: Impairment | None = None,
    ) -> "Client":
        return cls(UdpEndpoint.sending(timeout_s=timeout_s, impairment=impairment), (host, port))

    def send(self, opcode: Opcode, payload: bytes = b"") -> None:
        self.udp.sendto(encode(opcode, payload), self.remote)

    def receive(self) -> bytes:
        """Next datagram from the hub; raises TimeoutError after the socket timeout."""
        data, _ = self.udp.recvfrom()
        log.debug("received %d bytes", len(data))
        return data

    def send_chat(self, text: str) -> None:
        self.send(Opcode.SEND_CHAT_MSG, text.encode("utf-8"))

    def history(self) -> list[str]:
        self.send(Opcode.GET_HISTORY)
        reply = self.receive().decode("utf-8", errors="replace")
        if reply == EMPTY_HISTORY:
            return []
        return reply.split(HISTORY_SEPARATOR)

    def send_file(self, path: str) -> TransferStats:
        return FileSender(self.udp, self.remote, path).run()

    def close(self) -> None:
        self.udp.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
