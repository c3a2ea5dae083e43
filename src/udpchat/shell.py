from __future__ import annotations

import sys
from typing import TextIO

from colorama import Fore, Style

from .client import Client
from .constants import MAX_CHAT_MSG_LEN
from .errors import UdpChatError

PROMPT = ">>> "

HELP = (
    "Usage:\n"
    "\t>>> help ------------------ get help information\n"
    "\t>>> history --------------- get chat history\n"
    "\t>>> send: <msg> ----------- send message to the server\n"
    "\t>>> sendfile: <filename> -- request for file transfer\n"
    "\t>>> quit ------------------ exit from udpchat"
)


class Shell:
    """Line-oriented front end over a Client."""

    def __init__(self, client: Client, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout):
        self.client = client
        self.stdin = stdin
        self.stdout = stdout

    def say(self, text: str, color: str = "") -> None:
        print(f"{color}{text}{Style.RESET_ALL}" if color else text, file=self.stdout)

    def error(self, text: str) -> None:
        self.say(f"[Error] {text}", Fore.RED)

    def read_line(self) -> str:
        self.stdout.write(PROMPT)
        self.stdout.flush()
        line = self.stdin.readline()
        if not line:
            raise EOFError("end of input")
        return line.strip()

    def run(self) -> None:
        while True:
            try:
                line = self.read_line()
            except (EOFError, OSError) as exc:
                raise SystemExit(f"Input error: {exc}") from exc
            if not self.execute(line):
                return

    def execute(self, line: str) -> bool:
        """Run one command; False once the user quits."""
        lowered = line.lower()
        try:
            if lowered == "quit":
                return False
            elif lowered == "help":
                self.say(HELP)
            elif lowered == "history":
                self.show_history()
            elif line.startswith("sendfile:"):
                self.send_file(line[len("sendfile:") :].strip())
            elif line.startswith("send:"):
                self.send_chat(line[len("send:") :].strip())
            else:
                self.say('Unsupported command, type "help" for more information.', Fore.YELLOW)
        except (UdpChatError, OSError) as exc:
            self.error(str(exc) or type(exc).__name__)
        return True

    def show_history(self) -> None:
        entries = self.client.history()
        if not entries:
            self.say("No history now.", Fore.CYAN)
        for entry in entries:
            self.say(entry)

    def send_chat(self, msg: str) -> None:
        if not msg:
            self.say("Input message should not be empty.", Fore.YELLOW)
        elif len(msg.encode("utf-8")) > MAX_CHAT_MSG_LEN:
            self.say(f"Length of message should not be larger than {MAX_CHAT_MSG_LEN}", Fore.YELLOW)
        else:
            self.client.send_chat(msg)

    def send_file(self, path: str) -> None:
        if not path:
            self.say("Input file name should not be empty.", Fore.YELLOW)
            return
        stats = self.client.send_file(path)
        self.say(f"Sent {stats.bytes_sent} bytes in {stats.segments} segments", Fore.GREEN)
