"""
Local relay listeners.

Other processes connect to a :class:`Listener` (TCP or Unix-domain) and
write lines of text; each accepted connection becomes a
:class:`RelayClient` serviced by the reactor until the peer closes it.
All sockets are non-blocking, so a stalled peer can't hold up the loop.
"""

import errno
import logging
import os
import socket
import time

from jaraco.stream import buffer

log = logging.getLogger(__name__)


class ListenerError(Exception):
    "A listener could not be set up"


class RelayClient:
    """
    One accepted connection on a listener.

    Complete lines are relayed as they arrive; a trailing partial line is
    relayed once the peer closes the connection.
    """

    max_pending = 2 ** 14
    "bytes a client may send without a newline before being cut off"

    def __init__(self, listener, sock, peer):
        self.listener = listener
        self.socket = sock
        self.peer = peer
        self.buffer = buffer.LenientDecodingLineBuffer()
        self.last_activity = time.monotonic()

    @property
    def reactor(self):
        return self.listener.reactor

    def process_data(self):
        """[Internal]"""
        try:
            new_data = self.socket.recv(2 ** 14)
        except BlockingIOError:
            return
        except OSError as ex:
            log.warning("Reading from %s client failed: %s", self.listener.origin, ex)
            self.close()
            return
        self.last_activity = time.monotonic()

        if not new_data:
            # Read nothing: the client is done.
            self._relay(list(self.buffer) + [self._remainder()])
            self.close()
            return

        self.buffer.feed(new_data)
        self._relay(list(self.buffer))

        if len(self.buffer) > self.max_pending:
            # Bad peer! Naughty peer!
            log.info(
                "Received >16k from a %s client without a newline; disconnecting.",
                self.listener.origin,
            )
            self.close()

    def _remainder(self):
        rest, self.buffer.buffer = self.buffer.buffer, b''
        try:
            return rest.decode('utf-8')
        except UnicodeDecodeError:
            return rest.decode('latin-1')

    def _relay(self, lines):
        text = '\n'.join(filter(None, lines))
        if text:
            self.listener.relay.relay(text, origin=self.listener.origin)

    def close(self):
        if self.socket is None:
            return
        self.socket.close()
        self.socket = None
        self.reactor._remove_connection(self)
        self.listener.clients.discard(self)


class Listener:
    """
    A listening socket whose connections feed the relay.

    Use :meth:`tcp` or :meth:`unix` to create one.
    """

    backlog = 5
    client_timeout = 30
    "seconds of silence after which a client is disconnected"

    def __init__(self, reactor, relay, sock, origin, path=None):
        self.reactor = reactor
        self.relay = relay
        self.socket = sock
        self.origin = origin
        self.path = path
        self.clients = set()
        reactor.add_connection(self)
        reactor.scheduler.execute_every(self.client_timeout, self.reap_idle)

    @classmethod
    def tcp(cls, reactor, relay, address, port):
        """
        Listen on the first address ``address`` resolves to that can be
        bound (IPv4 or IPv6).
        """
        try:
            candidates = socket.getaddrinfo(
                address, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
            )
        except socket.gaierror as ex:
            raise ListenerError("Cannot resolve %s: %s" % (address, ex)) from ex

        error = None
        for family, type_, proto, _, sockaddr in candidates:
            sock = None
            try:
                sock = socket.socket(family, type_, proto)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind(sockaddr)
                sock.listen(cls.backlog)
                sock.setblocking(False)
            except OSError as ex:
                error = ex
                if sock is not None:
                    sock.close()
                continue
            log.info("Listening on %s:%d", address, port)
            return cls(reactor, relay, sock, 'TCP')
        raise ListenerError("Couldn't listen on %s:%s: %s" % (address, port, error))

    @classmethod
    def unix(cls, reactor, relay, path):
        """
        Listen on a Unix-domain socket at ``path``, replacing any stale
        socket file left there.
        """
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as ex:
            raise ListenerError("Couldn't remove %s: %s" % (path, ex)) from ex

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(path)
            sock.listen(cls.backlog)
            sock.setblocking(False)
        except OSError as ex:
            sock.close()
            raise ListenerError("Couldn't listen on %s: %s" % (path, ex)) from ex
        log.info("Listening on Unix domain socket %s", path)
        return cls(reactor, relay, sock, 'Unix domain', path=path)

    def process_data(self):
        """[Internal]"""
        try:
            conn, peer = self.socket.accept()
        except BlockingIOError:
            return
        except OSError as ex:
            if ex.errno not in (errno.ECONNABORTED, errno.EPROTO):
                log.warning("Accepting on %s socket failed: %s", self.origin, ex)
            return
        conn.setblocking(False)
        log.debug("%s connection from %s", self.origin, peer or 'local peer')
        client = RelayClient(self, conn, peer)
        self.clients.add(client)
        self.reactor.add_connection(client)

    def reap_idle(self):
        cutoff = time.monotonic() - self.client_timeout
        for client in list(self.clients):
            if client.last_activity < cutoff:
                log.info("Closing idle %s client", self.origin)
                client._relay([client._remainder()])
                client.close()

    def close(self):
        """Stop listening, drop the clients and remove the socket file."""
        for client in list(self.clients):
            client.close()
        if self.socket is None:
            return
        self.socket.close()
        self.socket = None
        self.reactor._remove_connection(self)
        if self.path:
            try:
                os.unlink(self.path)
            except OSError as ex:
                log.warning("Couldn't remove %s: %s", self.path, ex)
