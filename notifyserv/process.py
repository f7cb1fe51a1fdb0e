"""
Process-level plumbing: detaching from the terminal, and signals.
"""

import logging
import os
import signal
import socket
import sys

log = logging.getLogger(__name__)


def daemonize():
    """
    Fork a child and end the parent (detach from parent), twice, so the
    daemon can't reacquire a controlling terminal. Standard streams are
    pointed at /dev/null and the working directory at /, so relative
    paths must be resolved before calling.
    """
    if os.fork() > 0:
        os._exit(0)
    os.setsid()
    if os.fork() > 0:
        os._exit(0)
    os.chdir('/')
    os.umask(0o022)
    sys.stdout.flush()
    sys.stderr.flush()
    with open(os.devnull, 'r+b') as devnull:
        for stream in (sys.stdin, sys.stdout, sys.stderr):
            os.dup2(devnull.fileno(), stream.fileno())


def _noop(signum, frame):
    "The wake-up socket carries the signal number; nothing to do here."


class SignalWatcher:
    """
    Turns signals into work on the reactor's loop.

    Signal handlers only cause the signal number to be written to a
    socket pair (``signal.set_wakeup_fd``); the reactor reads it like any
    other source, and the shutdown itself happens in the loop.

    SIGINT, SIGTERM and SIGQUIT stop the reactor. SIGHUP is logged and
    otherwise ignored.
    """

    shutdown_signals = (signal.SIGINT, signal.SIGTERM, signal.SIGQUIT)
    ignored_signals = (signal.SIGHUP,)

    def __init__(self, reactor):
        self.reactor = reactor
        self.socket, self._wakeup = socket.socketpair()
        self.socket.setblocking(False)
        self._wakeup.setblocking(False)
        self._saved_handlers = {}
        self._saved_wakeup_fd = None

    def install(self):
        self._saved_wakeup_fd = signal.set_wakeup_fd(self._wakeup.fileno())
        for signum in self.shutdown_signals + self.ignored_signals:
            self._saved_handlers[signum] = signal.signal(signum, _noop)
        self.reactor.add_connection(self)
        return self

    def uninstall(self):
        for signum, handler in self._saved_handlers.items():
            signal.signal(signum, handler)
        self._saved_handlers.clear()
        if self._saved_wakeup_fd is not None:
            signal.set_wakeup_fd(self._saved_wakeup_fd)
            self._saved_wakeup_fd = None
        self.reactor._remove_connection(self)
        self.socket.close()
        self._wakeup.close()

    __enter__ = install

    def __exit__(self, *exc_info):
        self.uninstall()

    def process_data(self):
        """[Internal]"""
        try:
            data = self.socket.recv(64)
        except BlockingIOError:
            return
        for signum in data:
            self.handle_signal(signum)

    def handle_signal(self, signum):
        name = signal.Signals(signum).name
        if signum in self.ignored_signals:
            log.info("Received %s, ignoring.", name)
            return
        log.info("Received %s, exiting.", name)
        self.reactor.stop(reason="Received " + name)
