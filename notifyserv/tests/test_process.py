import os
import select
import signal

import pytest

from notifyserv.process import SignalWatcher


@pytest.fixture
def watcher(reactor):
    with SignalWatcher(reactor) as watcher:
        yield watcher


def test_shutdown_signal_stops_reactor(watcher, reactor):
    watcher._wakeup.send(bytes([signal.SIGTERM]))
    watcher.process_data()
    assert reactor.shutdown_request.status == 0
    assert not reactor.shutdown_request.restart
    assert reactor.shutdown_request.reason == 'Received SIGTERM'


def test_hangup_ignored(watcher, reactor):
    watcher._wakeup.send(bytes([signal.SIGHUP]))
    watcher.process_data()
    assert reactor.shutdown_request is None


def test_delivered_signal_wakes_the_loop(watcher, reactor):
    os.kill(os.getpid(), signal.SIGINT)
    readable, _, _ = select.select([watcher.socket], [], [], 5)
    assert readable
    reactor.process_once(0)
    assert reactor.shutdown_request.reason == 'Received SIGINT'


def test_uninstall_restores_handlers(reactor):
    before = signal.getsignal(signal.SIGTERM)
    with SignalWatcher(reactor) as watcher:
        assert signal.getsignal(signal.SIGTERM) != before
        assert watcher in reactor.connections
    assert signal.getsignal(signal.SIGTERM) == before
    assert watcher not in reactor.connections
