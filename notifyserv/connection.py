"""
The stream connection to the IRC server.

There are no retries here; what to do after a failure is up to the caller.
"""

import errno
import logging
import os
import select
import socket
import time

log = logging.getLogger(__name__)


class TransportError(Exception):
    "The connection to the server failed"


class ConnectError(TransportError):
    """
    No connection could be established.

    ``reason`` tells the kinds of failure apart.
    """

    reason = 'error'


class ConnectTimeout(ConnectError):
    reason = 'timeout'


class ConnectRefused(ConnectError):
    reason = 'refused'


class Unresolvable(ConnectError):
    reason = 'unresolvable'


class ReadError(TransportError):
    pass


class EndOfStream(ReadError):
    "The peer closed the connection"


class WriteError(TransportError):
    pass


def _wait_writable(sock, timeout):
    _, writable, _ = select.select([], [sock], [], max(timeout, 0))
    return bool(writable)


class Transport:
    """
    A connected, non-blocking stream socket.

    Reads never wait. Writes are synchronous, but give up after
    ``write_timeout`` seconds if the peer stops accepting data.
    """

    chunk_size = 2 ** 14
    write_timeout = 15

    def __init__(self, sock):
        self.socket = sock

    def read(self):
        """
        Return whatever bytes are available, possibly none.

        Raise EndOfStream when the peer has hung up.
        """
        try:
            data = self.socket.recv(self.chunk_size)
        except BlockingIOError:
            return b''
        except OSError as ex:
            raise ReadError(str(ex)) from ex
        if not data:
            raise EndOfStream("Connection closed by peer")
        return data

    def write(self, data):
        view = memoryview(data)
        deadline = time.monotonic() + self.write_timeout
        while view:
            try:
                sent = self.socket.send(view)
            except BlockingIOError:
                sent = 0
            except OSError as ex:
                raise WriteError(str(ex)) from ex
            view = view[sent:]
            if view and not _wait_writable(self.socket, deadline - time.monotonic()):
                raise WriteError("Write timed out")

    def close(self):
        if self.socket is None:
            return
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.socket.close()
        self.socket = None


class Factory:
    """
    A class for creating connections to a server.

    .. code-block:: python

       server_address = ('irc.example.net', 6667)
       transport = Factory()(server_address)

    The resolver's candidates (IPv4 and IPv6 alike) are tried in the order
    returned; the first to connect wins. All of them together must
    complete within ``timeout`` seconds.

    Factory doesn't keep the connection, so one Factory may be used for
    any number of connections.
    """

    timeout = 15
    transport_class = Transport

    def __init__(self, timeout=None):
        if timeout is not None:
            self.timeout = timeout

    def connect(self, server_address):
        host, port = server_address
        try:
            candidates = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except socket.gaierror as ex:
            raise Unresolvable("Cannot resolve %s: %s" % (host, ex)) from ex
        if not candidates:
            raise Unresolvable("No addresses for %s" % host)

        deadline = time.monotonic() + self.timeout
        error = None
        for family, type_, proto, _, address in candidates:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                sock = socket.socket(family, type_, proto)
            except OSError as ex:
                error = ConnectRefused(str(ex))
                continue
            try:
                self._connect_one(sock, address, remaining)
            except ConnectError as ex:
                log.debug("Connecting to %s failed: %s", address, ex)
                sock.close()
                error = ex
                if isinstance(ex, ConnectTimeout):
                    break
                continue
            return self.transport_class(sock)

        if error is None or time.monotonic() >= deadline:
            error = ConnectTimeout("Timed out after %s seconds" % self.timeout)
        raise error

    __call__ = connect

    @staticmethod
    def _connect_one(sock, address, timeout):
        sock.setblocking(False)
        try:
            err = sock.connect_ex(address)
        except OSError as ex:
            raise ConnectRefused(str(ex)) from ex
        if err in (errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN):
            if not _wait_writable(sock, timeout):
                raise ConnectTimeout("Timed out connecting to %s" % (address,))
            err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if err:
            raise ConnectRefused(os.strerror(err))
