from __future__ import annotations

import random

import pytest

from udpchat.net import Impairment, UdpEndpoint, format_address
from udpchat.packet import Segment, file_request


def test_impairment_drop_rate_is_seedable():
    always = Impairment(loss_rate=1.0)
    never = Impairment()
    assert always.active and not never.active
    assert always.should_drop()
    assert not never.should_drop()

    a = Impairment(loss_rate=0.5, rng=random.Random(3))
    b = Impairment(loss_rate=0.5, rng=random.Random(3))
    assert [a.should_drop() for _ in range(20)] == [b.should_drop() for _ in range(20)]


def test_format_address():
    assert format_address(("127.0.0.1", 3000)) == "127.0.0.1:3000"


def test_lost_segment_leaves_transfer_registered(hub, peer):
    # segments are never retransmitted, so a gap stays open until shutdown
    hub.dispatch(file_request(21, "lossy.bin"), peer).result(timeout=5)
    for seg in [Segment(21, 0, b"a"), Segment(21, 2, b"")]:
        hub.dispatch(seg.to_bytes(), peer).result(timeout=5)

    assert hub.active_transfers() == [21]
    assert not hub.lookup(21).is_complete()


def test_loopback_sendto_drops_everything_at_full_loss():
    receiver = UdpEndpoint.listening("127.0.0.1", 0, timeout_s=0.2)
    sender = UdpEndpoint.sending(impairment=Impairment(loss_rate=1.0))
    try:
        sender.sendto(b"\x02", receiver.address)
        with pytest.raises(TimeoutError):
            receiver.recvfrom()
    finally:
        sender.close()
        receiver.close()
