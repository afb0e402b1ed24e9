import math
import struct

from monopool.counters import ExtraNonce1Generator, ShareCounts, SubscriptionCounter


def test_share_counts_total_and_percent():
    counts = ShareCounts(valid=3, invalid=1)
    assert counts.total() == 4
    assert counts.bad_percent() == 25.0


def test_share_counts_reset():
    counts = ShareCounts(valid=5, invalid=2)
    counts.reset()
    assert counts.total() == 0
    assert math.isnan(counts.bad_percent())


def test_subscription_counter_sequence():
    counter = SubscriptionCounter()
    first = counter.next()
    second = counter.next()
    assert first == struct.pack("<Q", 1)
    assert second == struct.pack("<Q", 2)


def test_subscription_counter_wraps():
    counter = SubscriptionCounter(count=(1 << 64) - 2)
    assert counter.next() == bytes(8)
    assert counter.count == 0


def test_subscription_counter_padding():
    counter = SubscriptionCounter(padding=b"\xab")
    value = counter.next()
    assert value[:1] == b"\xab"
    assert value[1:] == struct.pack("<Q", 1)


def test_extra_nonce1_sizes():
    assert len(ExtraNonce1Generator().generate()) == 4
    assert len(ExtraNonce1Generator(size=8).generate()) == 8