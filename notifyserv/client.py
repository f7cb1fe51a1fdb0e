# -*- coding: utf-8 -*-

"""
The IRC session and the reactor that drives it.

A :class:`Session` is the one connection to the IRC server: it registers,
joins the configured channels once welcomed, answers PINGs, rejoins when
kicked, and hangs up on server errors. It reports what it sees as events
(see :mod:`notifyserv.events`) to handlers registered on the reactor.

The :class:`Reactor` runs a select loop over the session and every other
readable source (relay listeners, their clients, the signal wake-up
socket), never blocking longer than the loop timeout, and runs scheduled
work such as reconnect checks between reads.

Here is an example:

    reactor = notifyserv.client.Reactor()
    session = reactor.session()
    session.connect("irc.some.where", 6667, "notify", channels=["#ops"])
    reactor.process_forever()

Notes:
  * Data is not written asynchronously to the server, i.e. the write()
    may block (for a bounded time) if the TCP buffers are stuffed.
  * ERROR from the server triggers the error event and the disconnect event.
  * dropping of the connection triggers the disconnect event.
"""

import bisect
import collections
import enum
import itertools
import logging
import select
import time

import jaraco.functools

from . import VERSION_STRING
from . import buffer
from . import connection
from . import events
from . import message
from . import schedule
from .dict import IRCDict

log = logging.getLogger(__name__)


class IRCError(Exception):
    "An IRC exception"


class ServerConnectionError(IRCError):
    pass


class ServerNotConnectedError(ServerConnectionError):
    pass


class Phase(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    REGISTERING = 'registering'
    JOINING = 'joining'
    ACTIVE = 'active'
    SHUTTING_DOWN = 'shutting down'


class Session:
    """
    The connection to the IRC server and its state.

    Sessions are created by calling the session method on a Reactor.
    """

    buffer_class = buffer.DecodingLineBuffer
    transport = None
    phase = Phase.DISCONNECTED
    last_connect_attempt = None

    def __init__(self, reactor):
        self.reactor = reactor
        self.joined = IRCDict()

    @property
    def socket(self):
        return self.transport.socket if self.transport else None

    # save the method args to allow for easier reconnection.
    @jaraco.functools.save_method_args
    def connect(
        self,
        server,
        port,
        nickname,
        ident=None,
        channels=(),
        realname=VERSION_STRING,
        connect_factory=connection.Factory(),
    ):
        """Connect/reconnect to a server.

        Arguments:

        * server - Server name
        * port - Port number
        * nickname - The nickname
        * ident - The username sent with USER
        * channels - Channels to join once welcomed, in order
        * realname - The IRC name ("realname")
        * connect_factory - A callable that takes the server address and
          returns a connected Transport

        This function can be called to reconnect a closed connection.
        Everything but the arguments is reset.

        Returns the Session object.
        """
        log.debug(
            "connect(server=%r, port=%r, nickname=%r, ...)", server, port, nickname
        )

        if self.phase is Phase.SHUTTING_DOWN:
            raise ServerConnectionError("Session is shutting down")
        if self.transport is not None:
            self.disconnect("Changing servers")

        self.buffer = self.buffer_class()
        self.joined = IRCDict()
        self.server = server
        self.port = port
        self.server_address = (server, port)
        self.nickname = nickname
        self.real_nickname = nickname
        self.ident = ident or nickname
        self.channels = tuple(channels)
        self.realname = realname
        self.connect_factory = connect_factory
        self.last_connect_attempt = time.time()
        self.phase = Phase.CONNECTING
        try:
            self.transport = self.connect_factory(self.server_address)
        except connection.ConnectError as ex:
            self.phase = Phase.DISCONNECTED
            raise ServerConnectionError(
                "Couldn't connect to %s:%s: %s" % (server, port, ex)
            ) from ex
        log.info("Connected to IRC server %s:%s", server, port)

        # Log on...
        self.phase = Phase.REGISTERING
        self.user(self.ident, self.realname)
        self.nick(self.nickname)
        return self

    def reconnect(self):
        """
        Reconnect with the last arguments passed to self.connect()
        """
        return self.connect(*self._saved_connect.args, **self._saved_connect.kwargs)

    def get_nickname(self):
        """Get the (real) nick name.

        This is the nickname passed to connect() unless it has since
        been changed with nick().
        """
        return self.real_nickname

    def is_connected(self):
        return self.transport is not None

    def is_active(self):
        return self.phase is Phase.ACTIVE

    def process_data(self):
        "read and process input from the server"
        try:
            new_data = self.transport.read()
        except connection.EndOfStream:
            self.disconnect("Connection closed by server")
            return
        except connection.ReadError as ex:
            log.warning("Reading from server failed: %s", ex)
            self.disconnect("Connection reset by peer")
            return

        self.buffer.feed(new_data)

        # process each non-empty line after logging all lines
        try:
            for line in self.buffer:
                log.debug("FROM SERVER: %s", line)
                if not line:
                    continue
                self._process_line(line)
                if self.transport is None:
                    # a handler hung up; the rest belongs to a dead connection
                    break
        except buffer.LineTooLong as ex:
            log.warning("Server sent an overlong line: %s", ex)
            self.disconnect("Line too long")

    def _process_line(self, line):
        try:
            msg = message.Message.parse(line)
        except message.InvalidMessage:
            log.warning("Ignoring malformed line from server: %r", line)
            return

        event = events.classify(msg, self.real_nickname)
        log.debug("event: %s", event)

        try:
            if event.type == "welcome":
                self._on_welcome()
            elif event.type == "kick":
                self._on_kick(event)

            self._handle_event(event)
        except (message.InvalidCharacters, message.MessageTooLong) as ex:
            # a reply built from what the server sent can't be sent back
            log.warning("Dropped reply to %r: %s", line, ex)

        if event.type == "error":
            self._on_error(event)

    def _on_welcome(self):
        if self.phase is not Phase.REGISTERING:
            log.debug("Ignoring welcome while %s", self.phase.value)
            return
        log.info("Connection complete.")
        self.phase = Phase.JOINING
        for channel in self.channels:
            if not self.is_connected():
                return
            log.info("Joining %s.", channel)
            self.join(channel)
            self.joined[channel] = True
        if self.phase is Phase.JOINING:
            self.phase = Phase.ACTIVE

    def _on_kick(self, event):
        if event.channel not in self.joined:
            return
        log.info("Kicked from %s, rejoining.", event.channel)
        self.join(event.channel)

    def _on_error(self, event):
        if event.timed_out:
            log.warning("Server closed the connection: %s", event.text)
        else:
            log.error("Received error: %s", event.text)
        self.disconnect(event.text)

    def _handle_event(self, event):
        """[Internal]"""
        self.reactor._handle_event(self, event)

    def disconnect(self, message=""):
        """Hang up the connection.

        Arguments:

            message -- The reason, for the log and the disconnect event.
        """
        transport, self.transport = self.transport, None
        if transport is None:
            return
        transport.close()
        self.joined = IRCDict()
        if self.phase is not Phase.SHUTTING_DOWN:
            self.phase = Phase.DISCONNECTED
        log.info("Disconnected from %s: %s", self.server, message)
        self._handle_event(events.Disconnect(message))

    def shutdown(self, message=""):
        """Leave for good: send QUIT if still connected, then hang up.

        After this the session refuses to connect again.
        """
        if self.phase is Phase.SHUTTING_DOWN and not self.is_connected():
            return
        self.phase = Phase.SHUTTING_DOWN
        if self.is_connected():
            self.quit(message)
        self.disconnect(message)

    def join(self, channel):
        """Send a JOIN command."""
        self.send_items('JOIN', channel)

    def nick(self, newnick):
        """Send a NICK command."""
        self.send_items('NICK', newnick)
        self.real_nickname = newnick

    def pong(self, target):
        """Send a PONG command."""
        self.send_items('PONG', trailing=target)

    def privmsg(self, target, text):
        """Send a PRIVMSG command."""
        self.send_items('PRIVMSG', target, trailing=text)

    def quit(self, message=""):
        """Send a QUIT command."""
        self.send_items('QUIT', trailing=message or None)

    def user(self, username, realname):
        """Send a USER command."""
        self.send_items('USER', username, '0', '*', trailing=realname)

    def send_items(self, *items, trailing=None):
        """
        Send all non-empty items, separated by spaces, and the trailing
        parameter, if given.
        """
        self.send(message.Command.build(*items, trailing=trailing))

    def send(self, command):
        """Send a Command to the server.

        A failed write hangs up the connection.
        """
        if self.transport is None:
            raise ServerNotConnectedError("Not connected.")
        try:
            self.transport.write(command.to_bytes())
            log.debug("TO SERVER: %s", command)
        except connection.WriteError as ex:
            log.warning("Writing to server failed: %s", ex)
            self.disconnect("Connection reset by peer.")


ShutdownRequest = collections.namedtuple('ShutdownRequest', 'status restart reason')


class PrioritizedHandler(collections.namedtuple('Base', ('priority', 'callback'))):
    def __lt__(self, other):
        "when sorting prioritized handlers, only use the priority"
        return self.priority < other.priority


class Reactor:
    """
    Processes events from the IRC session and the relay sources.

    This class implements a reactor in the style of the `reactor pattern
    <http://en.wikipedia.org/wiki/Reactor_pattern>`_.

    Each source registered with the reactor (the session, listeners,
    accepted clients) exposes a ``socket`` (or None when it has none) and a
    ``process_data`` method called when that socket is readable. The
    reactor selects over all of them at once, with a timeout, and runs the
    scheduler after every wait, so scheduled work runs even when nothing
    arrives.

    Calling `process_forever` runs the loop until `stop` is called; the
    reactor is owned by a single thread.
    """

    scheduler_class = schedule.DefaultScheduler
    session_class = Session

    def __init__(self):
        scheduler = self.scheduler_class()
        assert isinstance(scheduler, schedule.IScheduler)
        self.scheduler = scheduler

        self.connections = []
        self.handlers = {}
        self.shutdown_request = None

        self.add_global_handler("ping", _ping_ponger, -42)

    def session(self):
        """Creates and returns a Session object."""
        return self.add_connection(self.session_class(self))

    def add_connection(self, conn):
        self.connections.append(conn)
        return conn

    def process_data(self, sockets):
        """Called when there is more data to read on sockets.

        Arguments:

            sockets -- A list of socket objects.
        """
        log.log(logging.DEBUG - 2, "process_data()")
        for sock, conn in itertools.product(sockets, list(self.connections)):
            if sock is conn.socket:
                conn.process_data()

    def process_timeout(self):
        """Called when a timeout notification is due."""
        self.scheduler.run_pending()

    @property
    def sockets(self):
        return [
            conn.socket
            for conn in self.connections
            if conn is not None and conn.socket is not None
        ]

    def process_once(self, timeout=0):
        """Process data from connections once.

        Arguments:

            timeout -- How long the select() call should wait if no
                       data is available.
        """
        log.log(logging.DEBUG - 2, "process_once()")
        sockets = self.sockets
        if sockets:
            in_, out, err = select.select(sockets, [], [], timeout)
            self.process_data(in_)
        else:
            time.sleep(timeout)
        self.process_timeout()

    def process_forever(self, timeout=1.0):
        """Run the loop, processing data from connections, until stopped.

        Arguments:

            timeout -- Parameter to pass to process_once.

        Returns the ShutdownRequest that ended the loop.
        """
        log.debug("process_forever(timeout=%s)", timeout)
        while self.shutdown_request is None:
            self.process_once(timeout)
        return self.shutdown_request

    def stop(self, status=0, restart=False, reason=""):
        """Ask the loop to end after the current iteration.

        The first request wins.
        """
        if self.shutdown_request is None:
            self.shutdown_request = ShutdownRequest(status, restart, reason)

    def add_global_handler(self, event, handler, priority=0):
        """Adds a global handler function for a specific event type.

        Arguments:

            event -- Event type (a string).  Check notifyserv.events.all
                     for possible event types.

            handler -- Callback function taking 'connection' and 'event'
                       parameters.

            priority -- A number (the lower number, the higher priority).

        The handler functions are called in priority order (lowest
        number is highest priority).  If a handler function returns
        "NO MORE", no more handlers will be called.
        """
        handler = PrioritizedHandler(priority, handler)
        event_handlers = self.handlers.setdefault(event, [])
        bisect.insort(event_handlers, handler)

    def _handle_event(self, connection, event):
        """
        Handle an event arising on a connection.
        """
        matching_handlers = sorted(
            self.handlers.get("all_events", []) + self.handlers.get(event.type, [])
        )
        for handler in matching_handlers:
            result = handler.callback(connection, event)
            if result == "NO MORE":
                return

    def _remove_connection(self, connection):
        """[Internal]"""
        if connection in self.connections:
            self.connections.remove(connection)


def _ping_ponger(connection, event):
    "A global handler for the 'ping' event"
    connection.pong(event.token)
