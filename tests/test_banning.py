import time

import pytest

from monopool.banning import BanningManager
from monopool.config import BanningOptions


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_unknown_address_is_not_banned():
    bm = BanningManager(BanningOptions(time=60, purge_interval=10), clock=FakeClock())
    assert bm.check_ban("10.0.0.1:3333") is False


def test_ban_then_forgive():
    clock = FakeClock(100.0)
    bm = BanningManager(BanningOptions(time=60, purge_interval=10), clock=clock)
    bm.add_banned_ip("10.0.0.1:3333")
    clock.now = 130.0
    assert bm.check_ban("10.0.0.1:3333") is True
    clock.now = 160.0
    assert bm.check_ban("10.0.0.1:3333") is False
    assert "10.0.0.1:3333" not in bm.banned_ips


def test_purge_removes_only_expired():
    clock = FakeClock(0.0)
    bm = BanningManager(BanningOptions(time=60, purge_interval=10), clock=clock)
    bm.add_banned_ip("old")
    clock.now = 50.0
    bm.add_banned_ip("new")
    clock.now = 61.0
    assert bm.purge() == ["old"]
    assert list(bm.banned_ips) == ["new"]


def test_purge_keeps_ban_at_exact_boundary():
    clock = FakeClock(0.0)
    bm = BanningManager(BanningOptions(time=60, purge_interval=10), clock=clock)
    bm.add_banned_ip("edge")
    clock.now = 60.0
    assert bm.purge() == []
    assert "edge" in bm.banned_ips


def test_start_requires_positive_interval():
    bm = BanningManager(BanningOptions(time=60, purge_interval=0))
    with pytest.raises(ValueError):
        bm.start()


def test_background_purge():
    bm = BanningManager(BanningOptions(time=0, purge_interval=0.01))
    bm.add_banned_ip("1.2.3.4:1")
    bm.start()
    try:
        deadline = time.monotonic() + 2.0
        while bm.banned_ips and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        bm.stop()
    assert bm.banned_ips == {}