from __future__ import annotations

SERVICE_HOST = "127.0.0.1"
SERVICE_PORT = 3000

# request opcodes
SEND_CHAT_MSG = 1
GET_HISTORY = 2
SEND_FILE = 3
SEND_SEGMENT = 4

# response codes, reply direction only
RESP_SEND_FILE_OK = 3
RESP_SEND_FILE_FAILED = 4

TRANSFER_ID_FORMAT = "<Q"
SEGMENT_HEADER_FORMAT = "<QI"  # transfer_id, sequence

BUFFER_SIZE = 512  # hub receive buffer; no request may exceed it
MAX_UDP_PAYLOAD = 65507
OPCODE_LEN = 1
FILE_REQUEST_HEADER_LEN = OPCODE_LEN + 8
SEGMENT_HEADER_LEN = OPCODE_LEN + 8 + 4

MAX_CHAT_MSG_LEN = 250
MAX_FILENAME_LEN = BUFFER_SIZE - FILE_REQUEST_HEADER_LEN
MAX_SEGMENT_SIZE = BUFFER_SIZE - SEGMENT_HEADER_LEN

EMPTY_HISTORY = "No history now."
HISTORY_SEPARATOR = "; "
HISTORY_TIME_FORMAT = "%a %b %d %H:%M:%S %Z %Y"

DEFAULT_TIMEOUT_S = 3.0
DEFAULT_WORKERS = 16
