from __future__ import annotations

import argparse
import json
import logging

import colorama
from colorama import Fore, Style

from .client import Client
from .constants import DEFAULT_TIMEOUT_S, DEFAULT_WORKERS, SERVICE_HOST, SERVICE_PORT
from .errors import UdpChatError
from .hub import Hub
from .net import Impairment
from .shell import Shell


def _impairment(args: argparse.Namespace) -> Impairment:
    return Impairment(args.loss_rate, args.delay_ms)


def _client(args: argparse.Namespace) -> Client:
    return Client.connect(args.host, args.port, timeout_s=args.timeout, impairment=_impairment(args))


def cmd_hub(args: argparse.Namespace) -> int:
    hub = Hub.bind(
        args.host,
        args.port,
        impairment=_impairment(args),
        out_dir=args.out_dir,
        max_workers=args.workers,
    )
    try:
        hub.serve_forever()
    except KeyboardInterrupt:
        logging.info("interrupted; shutting down")
    finally:
        hub.close()
    return 0


def cmd_client(args: argparse.Namespace) -> int:
    colorama.init(autoreset=True)
    with _client(args) as client:
        print(f"{Fore.GREEN}Connected to {args.host}:{args.port}, type \"help\" for commands.{Style.RESET_ALL}")
        Shell(client).run()
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    with _client(args) as client:
        client.send_chat(args.message)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    with _client(args) as client:
        entries = client.history()
    print(json.dumps(entries, indent=2) if args.json else "\n".join(entries) or "No history now.")
    return 0


def cmd_sendfile(args: argparse.Namespace) -> int:
    with _client(args) as client:
        stats = client.send_file(args.file)

    payload = {
        "role": "sender",
        "file": args.file,
        "segments": stats.segments,
        "bytes": stats.bytes_sent,
        "seconds": stats.duration_s,
        "mbps": stats.throughput_mbps,
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="udpchat", description="Chat and file relay over UDP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--host", default=SERVICE_HOST)
        x.add_argument("--port", type=int, default=SERVICE_PORT)
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulate packet loss")
        x.add_argument("--delay-ms", type=int, default=0, help="simulate per-datagram delay")

    def add_client(x: argparse.ArgumentParser) -> None:
        add_common(x)
        x.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S, help="seconds to wait for a reply")
        x.add_argument("--json", action="store_true")

    hub = sub.add_parser("hub", help="run the relay")
    add_common(hub)
    hub.add_argument("--out-dir", default=".", help="where received files are written")
    hub.add_argument("--workers", type=int, default=DEFAULT_WORKERS)
    hub.set_defaults(func=cmd_hub)

    client = sub.add_parser("client", help="interactive chat shell")
    add_client(client)
    client.set_defaults(func=cmd_client)

    send = sub.add_parser("send", help="send one chat message")
    add_client(send)
    send.add_argument("--message", required=True)
    send.set_defaults(func=cmd_send)

    history = sub.add_parser("history", help="print the chat history")
    add_client(history)
    history.set_defaults(func=cmd_history)

    sendfile = sub.add_parser("sendfile", help="upload a file to the hub")
    add_client(sendfile)
    sendfile.add_argument("--file", required=True)
    sendfile.set_defaults(func=cmd_sendfile)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except (UdpChatError, OSError) as exc:
        print(f"{Fore.RED}[Error] {exc or type(exc).__name__}{Style.RESET_ALL}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
