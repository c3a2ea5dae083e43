"""udpchat: chat and file relay over UDP

A single hub keeps an in-memory chat history and reassembles files that
clients upload segment by segment. The pieces are kept apart on purpose:
- wire framing (``packet``) vs. the hub's request state machine (``hub``)
- per-transfer segment bookkeeping (``receiver``) vs. upload (``sender``)
- small units that can be exercised without a network

Segments are sent once and never acknowledged; loss leaves a transfer
unfinished on the hub.
"""

from .client import Client
from .hub import Hub, RequestHandler
from .receiver import FileReceiver
from .sender import FileSender

__all__ = ["Client", "FileReceiver", "FileSender", "Hub", "RequestHandler"]
