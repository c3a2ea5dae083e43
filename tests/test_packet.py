from __future__ import annotations

import pytest

from udpchat.constants import BUFFER_SIZE, MAX_CHAT_MSG_LEN, MAX_FILENAME_LEN, MAX_SEGMENT_SIZE
from udpchat.errors import EmptyMessage, ProtocolError
from udpchat.packet import (
    Opcode,
    Response,
    Segment,
    decode,
    decode_file_response,
    encode,
    file_request,
    parse_file_request,
)


def test_encode_prefixes_opcode():
    assert encode(Opcode.SEND_CHAT_MSG, b"hi") == b"\x01hi"
    assert encode(Opcode.GET_HISTORY) == b"\x02"


def test_encode_rejects_empty_chat():
    with pytest.raises(EmptyMessage):
        encode(Opcode.SEND_CHAT_MSG, b"")


def test_encode_enforces_payload_limits():
    encode(Opcode.SEND_CHAT_MSG, b"x" * MAX_CHAT_MSG_LEN)
    with pytest.raises(ProtocolError):
        encode(Opcode.SEND_CHAT_MSG, b"x" * (MAX_CHAT_MSG_LEN + 1))
    with pytest.raises(ProtocolError):
        file_request(1, "f" * (MAX_FILENAME_LEN + 1))
    with pytest.raises(ProtocolError):
        Segment(transfer_id=1, seq=0, payload=b"x" * (MAX_SEGMENT_SIZE + 1)).to_bytes()


def test_encode_unknown_opcode():
    with pytest.raises(ProtocolError):
        encode(9, b"")


def test_segment_layout_is_little_endian():
    raw = Segment(transfer_id=0x0102030405060708, seq=5, payload=b"abc").to_bytes()
    assert raw == b"\x04" + bytes([8, 7, 6, 5, 4, 3, 2, 1]) + bytes([5, 0, 0, 0]) + b"abc"


def test_full_segment_fits_buffer():
    raw = Segment(transfer_id=1, seq=1, payload=b"x" * MAX_SEGMENT_SIZE).to_bytes()
    assert len(raw) == BUFFER_SIZE


def test_decode_segment():
    req = decode(Segment(transfer_id=42, seq=3, payload=b"data").to_bytes())
    assert req.opcode is Opcode.SEND_SEGMENT
    seg = Segment.from_payload(req.payload)
    assert (seg.transfer_id, seg.seq, seg.payload, seg.length) == (42, 3, b"data", 4)
    assert not seg.is_last


def test_decode_file_request():
    req = decode(file_request(7, "notes.txt"))
    assert req.opcode is Opcode.SEND_FILE
    assert parse_file_request(req.payload) == (7, "notes.txt")


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"\x00",
        b"\x07hello",
        b"\x03" + b"\x00" * 7,
        b"\x04" + b"\x00" * 11,
        b"\x01" + b"x" * BUFFER_SIZE,
        b"\x01" + b"x" * (MAX_CHAT_MSG_LEN + 1),
        b"\x02extra",
    ],
)
def test_decode_rejects_malformed(raw):
    with pytest.raises(ProtocolError):
        decode(raw)


def test_decode_accepts_minimum_lengths():
    assert decode(b"\x03" + b"\x00" * 8).payload == b"\x00" * 8
    assert decode(b"\x04" + b"\x00" * 12).opcode is Opcode.SEND_SEGMENT
    assert decode(b"\x01").payload == b""


def test_file_response_codes():
    assert decode_file_response(b"\x03") is Response.SEND_FILE_OK
    assert decode_file_response(b"\x04") is Response.SEND_FILE_FAILED
    with pytest.raises(ProtocolError):
        decode_file_response(b"\x01")
    with pytest.raises(ProtocolError):
        decode_file_response(b"No history now.")


def test_decode_accepts_longest_chat():
    raw = encode(Opcode.SEND_CHAT_MSG, b"x" * MAX_CHAT_MSG_LEN)
    assert decode(raw).payload == b"x" * MAX_CHAT_MSG_LEN
