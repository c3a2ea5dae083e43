from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from .constants import (
    BUFFER_SIZE,
    FILE_REQUEST_HEADER_LEN,
    GET_HISTORY,
    MAX_CHAT_MSG_LEN,
    MAX_FILENAME_LEN,
    MAX_SEGMENT_SIZE,
    OPCODE_LEN,
    RESP_SEND_FILE_FAILED,
    RESP_SEND_FILE_OK,
    SEGMENT_HEADER_FORMAT,
    SEGMENT_HEADER_LEN,
    SEND_CHAT_MSG,
    SEND_FILE,
    SEND_SEGMENT,
    TRANSFER_ID_FORMAT,
)
from .errors import EmptyMessage, ProtocolError


class Opcode(enum.IntEnum):
    SEND_CHAT_MSG = SEND_CHAT_MSG
    GET_HISTORY = GET_HISTORY
    SEND_FILE = SEND_FILE
    SEND_SEGMENT = SEND_SEGMENT


class Response(enum.IntEnum):
    SEND_FILE_OK = RESP_SEND_FILE_OK
    SEND_FILE_FAILED = RESP_SEND_FILE_FAILED


# shortest valid datagram per opcode, opcode byte included
MIN_LENGTH = {
    Opcode.SEND_CHAT_MSG: OPCODE_LEN,
    Opcode.GET_HISTORY: OPCODE_LEN,
    Opcode.SEND_FILE: FILE_REQUEST_HEADER_LEN,
    Opcode.SEND_SEGMENT: SEGMENT_HEADER_LEN,
}

_MAX_PAYLOAD = {
    Opcode.SEND_CHAT_MSG: MAX_CHAT_MSG_LEN,
    Opcode.GET_HISTORY: 0,
    Opcode.SEND_FILE: FILE_REQUEST_HEADER_LEN - OPCODE_LEN + MAX_FILENAME_LEN,
    Opcode.SEND_SEGMENT: SEGMENT_HEADER_LEN - OPCODE_LEN + MAX_SEGMENT_SIZE,
}

_TRANSFER_ID = struct.Struct(TRANSFER_ID_FORMAT)
_SEGMENT_HEADER = struct.Struct(SEGMENT_HEADER_FORMAT)


@dataclass(frozen=True, slots=True)
class Request:
    opcode: Opcode
    payload: bytes = b""


@dataclass(frozen=True, slots=True)
class Segment:
    transfer_id: int
    seq: int
    payload: bytes = b""

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def is_last(self) -> bool:
        return not self.payload

    def to_bytes(self) -> bytes:
        return encode(Opcode.SEND_SEGMENT, _SEGMENT_HEADER.pack(self.transfer_id, self.seq) + self.payload)

    @staticmethod
    def from_payload(payload: bytes) -> "Segment":
        if len(payload) < _SEGMENT_HEADER.size:
            raise ProtocolError("segment payload shorter than its header")
        transfer_id, seq = _SEGMENT_HEADER.unpack_from(payload)
        return Segment(transfer_id=transfer_id, seq=seq, payload=bytes(payload[_SEGMENT_HEADER.size :]))

    def __str__(self) -> str:
        return f"<TRANSFER_ID: {self.transfer_id}, SEQ: {self.seq}, LEN: {self.length}>"


def encode(opcode: int, payload: bytes = b"") -> bytes:
    try:
        op = Opcode(opcode)
    except ValueError:
        raise ProtocolError(f"unknown opcode {opcode}") from None

    if op is Opcode.SEND_CHAT_MSG and not payload:
        raise EmptyMessage("sending empty messages is not allowed")
    limit = _MAX_PAYLOAD[op]
    if len(payload) > limit:
        raise ProtocolError(f"{op.name} payload of {len(payload)} bytes exceeds {limit}")

    return bytes([op]) + payload


def decode(raw: bytes) -> Request:
    if not raw:
        raise ProtocolError("empty datagram")
    if len(raw) > BUFFER_SIZE:
        raise ProtocolError(f"datagram of {len(raw)} bytes exceeds the {BUFFER_SIZE}-byte buffer")

    try:
        op = Opcode(raw[0])
    except ValueError:
        raise ProtocolError(f"unknown opcode {raw[0]}") from None

    if len(raw) < MIN_LENGTH[op]:
        raise ProtocolError(f"{op.name} datagram too small: {len(raw)} < {MIN_LENGTH[op]}")
    if len(raw) - OPCODE_LEN > _MAX_PAYLOAD[op]:
        raise ProtocolError(f"{op.name} payload of {len(raw) - OPCODE_LEN} bytes exceeds {_MAX_PAYLOAD[op]}")

    return Request(opcode=op, payload=bytes(raw[OPCODE_LEN:]))


def file_request(transfer_id: int, filename: str) -> bytes:
    return encode(Opcode.SEND_FILE, _TRANSFER_ID.pack(transfer_id) + filename.encode("utf-8"))


def parse_file_request(payload: bytes) -> tuple[int, str]:
    if len(payload) < _TRANSFER_ID.size:
        raise ProtocolError("file request payload shorter than a transfer id")
    (transfer_id,) = _TRANSFER_ID.unpack_from(payload)
    try:
        filename = payload[_TRANSFER_ID.size :].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"filename is not valid UTF-8: {exc}") from None
    return transfer_id, filename


def decode_file_response(raw: bytes) -> Response:
    if len(raw) != 1:
        raise ProtocolError(f"file response must be a single byte, got {len(raw)}")
    try:
        return Response(raw[0])
    except ValueError:
        raise ProtocolError(f"unknown response code {raw[0]}") from None
