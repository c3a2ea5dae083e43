from __future__ import annotations

import logging
import os
import socket
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from .constants import (
    DEFAULT_WORKERS,
    EMPTY_HISTORY,
    HISTORY_SEPARATOR,
    HISTORY_TIME_FORMAT,
    MAX_UDP_PAYLOAD,
)
from .errors import EmptyMessage, ProtocolError, TransferNotFound
from .net import Address, Impairment, UdpEndpoint, format_address
from .packet import Opcode, Response, Segment, decode, parse_file_request
from .receiver import FileReceiver

log = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.5


def history_reply(history: list[str], limit: int = MAX_UDP_PAYLOAD) -> bytes:
    """Join history into one datagram, keeping the newest entries that fit."""
    if not history:
        return EMPTY_HISTORY.encode("utf-8")

    entries = [entry.encode("utf-8") for entry in history]
    sep = HISTORY_SEPARATOR.encode("utf-8")
    start = 0
    size = sum(len(e) for e in entries) + len(sep) * (len(entries) - 1)
    while size > limit and start < len(entries) - 1:
        size -= len(entries[start]) + len(sep)
        start += 1
    if start:
        log.warning("history reply too large; omitting %d oldest entries", start)
    return sep.join(entries[start:])[:limit]


def valid_filename(filename: str) -> bool:
    name = os.path.basename(filename)
    return bool(name) and name not in (".", "..") and "\x00" not in filename


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        log.error("request handler failed", exc_info=exc)


class RequestHandler:
    """Processes a single datagram from ``origin``."""

    def __init__(self, hub: "Hub", origin: Address):
        self.hub = hub
        self.origin = origin
        self._routes = {
            Opcode.SEND_CHAT_MSG: self.handle_chat,
            Opcode.GET_HISTORY: self.handle_history,
            Opcode.SEND_FILE: self.handle_send_file,
            Opcode.SEND_SEGMENT: self.handle_segment,
        }

    @property
    def peer(self) -> str:
        return format_address(self.origin)

    def handle(self, raw: bytes) -> None:
        try:
            request = decode(raw)
            self._routes[request.opcode](request.payload)
        except ProtocolError as exc:
            log.warning("dropping datagram from %s: %s", self.peer, exc)
        except TransferNotFound as exc:
            log.warning("unexpected segment from %s: %s", self.peer, exc)
        except OSError as exc:
            log.error("request from %s aborted: %s", self.peer, exc)

    def reply(self, data: bytes) -> None:
        self.hub.udp.sendto(data, self.origin)

    def handle_chat(self, payload: bytes) -> None:
        if not payload:
            raise EmptyMessage(f"empty message from {self.peer}")
        self.hub.append_history(payload.decode("utf-8", errors="replace"), self.origin)

    def handle_history(self, payload: bytes) -> None:
        data = history_reply(self.hub.history())
        log.info("sending %d bytes of history to %s", len(data), self.peer)
        self.reply(data)

    def handle_send_file(self, payload: bytes) -> None:
        transfer_id, filename = parse_file_request(payload)
        if not valid_filename(filename):
            log.warning("refusing transfer %d from %s: bad filename %r", transfer_id, self.peer, filename)
            self.reply(bytes([Response.SEND_FILE_FAILED]))
            return

        receiver = FileReceiver(transfer_id, filename)
        if not self.hub.register(receiver):
            log.warning("refusing transfer %d from %s: id already in use", transfer_id, self.peer)
            self.reply(bytes([Response.SEND_FILE_FAILED]))
            return

        try:
            self.reply(bytes([Response.SEND_FILE_OK]))
        except OSError:
            self.hub.unregister(transfer_id)
            receiver.release()
            raise

        log.info("file %r transferring from %s as transfer %d", filename, self.peer, transfer_id)
        self.hub.start_waiter(receiver, self.collect)

    def handle_segment(self, payload: bytes) -> None:
        segment = Segment.from_payload(payload)
        receiver = self.hub.lookup(segment.transfer_id)
        if receiver is None:
            raise TransferNotFound(segment.transfer_id)
        receiver.insert(segment)

    def collect(self, receiver: FileReceiver) -> None:
        """Wait for ``receiver`` to complete, then write the file out."""
        if not receiver.wait():
            log.info("transfer %d of %r abandoned", receiver.transfer_id, receiver.filename)
            return

        try:
            receiver.write_to(self.hub.out_dir)
        except (OSError, ValueError) as exc:
            log.error("failed to write file %r: %s", receiver.filename, exc)
            return
        finally:
            self.hub.unregister(receiver.transfer_id)

        self.hub.append_history(f"Sending file {receiver.filename}", self.origin)


class Hub:
    """Chat relay: owns the history and the table of active transfers.

    History, the transfer table and the list of waiter threads each have
    their own lock, and every FileReceiver guards its segments with another;
    no two are ever held at once.
    """

    def __init__(
        self,
        udp: UdpEndpoint,
        out_dir: str | os.PathLike[str] = ".",
        max_workers: int = DEFAULT_WORKERS,
    ):
        self.udp = udp
        self.out_dir = Path(out_dir)
        self._history: list[str] = []
        self._history_lock = threading.Lock()
        self._transfers: dict[int, FileReceiver] = {}
        self._transfers_lock = threading.Lock()
        self._waiters: list[threading.Thread] = []
        self._waiters_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="hub")
        self._closed = threading.Event()
        self._idle = threading.Event()
        self._idle.set()

    @classmethod
    def bind(
        cls,
        host: str,
        port: int,
        impairment: Impairment | None = None,
        **kwargs,
    ) -> "Hub":
        udp = UdpEndpoint.listening(host, port, timeout_s=POLL_INTERVAL_S, impairment=impairment)
        return cls(udp, **kwargs)

    @property
    def address(self) -> Address:
        return self.udp.address

    def history(self) -> list[str]:
        with self._history_lock:
            return list(self._history)

    def append_history(self, text: str, origin: Address) -> None:
        stamp = time.strftime(HISTORY_TIME_FORMAT)
        record = f"{stamp} {text} from {format_address(origin)}"
        with self._history_lock:
            self._history.append(record)
        log.info("history: %s", record)

    def register(self, receiver: FileReceiver) -> bool:
        with self._transfers_lock:
            if receiver.transfer_id in self._transfers:
                return False
            self._transfers[receiver.transfer_id] = receiver
            return True

    def lookup(self, transfer_id: int) -> FileReceiver | None:
        with self._transfers_lock:
            return self._transfers.get(transfer_id)

    def unregister(self, transfer_id: int) -> FileReceiver | None:
        with self._transfers_lock:
            return self._transfers.pop(transfer_id, None)

    def active_transfers(self) -> list[int]:
        with self._transfers_lock:
            return list(self._transfers)

    def _run_waiter(self, target, receiver: FileReceiver) -> None:
        try:
            target(receiver)
        finally:
            with self._waiters_lock:
                self._waiters.remove(threading.current_thread())

    def start_waiter(self, receiver: FileReceiver, target) -> threading.Thread:
        t = threading.Thread(
            target=self._run_waiter,
            args=(target, receiver),
            name=f"transfer-{receiver.transfer_id}",
            daemon=True,
        )
        with self._waiters_lock:
            self._waiters.append(t)
            t.start()
        return t

    def join_transfers(self, timeout: float | None = None) -> bool:
        """Join waiters started so far; True if none is still running."""
        with self._waiters_lock:
            waiters = list(self._waiters)
        deadline = None if timeout is None else time.monotonic() + timeout
        for t in waiters:
            t.join(None if deadline is None else max(0.0, deadline - time.monotonic()))
        with self._waiters_lock:
            return not self._waiters

    def pending_waiters(self) -> int:
        with self._waiters_lock:
            return len(self._waiters)

    def dispatch(self, raw: bytes, origin: Address) -> Future:
        future = self._executor.submit(RequestHandler(self, origin).handle, raw)
        future.add_done_callback(_log_failure)
        return future

    def serve_forever(self) -> None:
        self._idle.clear()
        log.info("hub listening on %s", format_address(self.address))
        try:
            while not self._closed.is_set():
                try:
                    raw, origin = self.udp.recvfrom()
                except socket.timeout:
                    continue
                except OSError as exc:
                    if self._closed.is_set():
                        break
                    log.error("read error: %s", exc)
                    continue
                self.dispatch(raw, origin)
        finally:
            self._idle.set()
            log.info("hub stopped")

    def close(self) -> None:
        self._closed.set()
        self._idle.wait(POLL_INTERVAL_S * 4)
        self._executor.shutdown(wait=True)

        with self._transfers_lock:
            orphaned = list(self._transfers.values())
        for receiver in orphaned:
            receiver.release()
        if orphaned:
            log.info("released %d unfinished transfers", len(orphaned))

        self.join_transfers(timeout=POLL_INTERVAL_S * 4)
        self.udp.close()

    def __enter__(self) -> "Hub":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
