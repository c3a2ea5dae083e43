from __future__ import annotations


class UdpChatError(Exception):
    pass


class ProtocolError(UdpChatError, ValueError):
    """Malformed, undersized or oversized datagram, or an unknown opcode."""


class EmptyMessage(ProtocolError):
    pass


class TransferNotFound(UdpChatError):
    def __init__(self, transfer_id: int):
        super().__init__(f"no active transfer with id {transfer_id}")
        self.transfer_id = transfer_id


class TransferRejected(UdpChatError):
    """The hub answered a file request with SendFileFailed."""
