# -*- coding: utf-8 -*-

"""
The notification bot.

This module ties the session, the relay and the listeners together into a
single-server bot that keeps itself connected and answers a few commands
in its channels.
"""

import abc
import itertools
import logging
import random

import notifyserv.client
from . import VERSION_STRING
from .listen import Listener
from .relay import Relay

log = logging.getLogger(__name__)


class ServerSpec:
    """
    An IRC server specification.

    >>> spec = ServerSpec('localhost')
    >>> spec.host
    'localhost'
    >>> spec.port
    6667
    """

    def __init__(self, host, port=6667):
        self.host = host
        self.port = port

    def __repr__(self):
        return "<notifyserv.bot.ServerSpec for server %s:%s>" % (self.host, self.port)

    @classmethod
    def parse(cls, text):
        """
        Parse ``host[:port]``. IPv6 addresses with a port go in brackets.

        >>> ServerSpec.parse('irc.example.org').port
        6667
        >>> ServerSpec.parse('irc.example.org:6697').port
        6697
        >>> ServerSpec.parse('[2001:db8::1]:7000').host
        '2001:db8::1'
        >>> ServerSpec.parse('2001:db8::1').host
        '2001:db8::1'
        >>> ServerSpec.parse('irc.example.org:99999')
        Traceback (most recent call last):
        ...
        ValueError: port out of range: 99999
        """
        if text.startswith('['):
            host, _, rest = text[1:].partition(']')
            port = rest[1:] if rest.startswith(':') else None
        elif text.count(':') == 1:
            host, _, port = text.partition(':')
        else:
            host, port = text, None
        if not host:
            raise ValueError("no host in %r" % text)
        if not port:
            return cls(host)
        port = int(port)
        if not 0 < port < 65536:
            raise ValueError("port out of range: %d" % port)
        return cls(host, port)


class ReconnectStrategy(metaclass=abc.ABCMeta):
    """
    An abstract base class describing the interface used by
    NotifyBot for handling reconnect following
    disconnect events.
    """

    @abc.abstractmethod
    def run(self, bot):
        """
        Invoked by the bot on disconnect or a failed connection. Here
        a strategy can determine how to react.
        """


class FixedInterval(ReconnectStrategy):
    """
    A ReconnectStrategy making one attempt every ``interval`` seconds
    for as long as the bot stays disconnected.
    """

    interval = 60

    def __init__(self, **attrs):
        vars(self).update(attrs)
        assert self.interval > 0
        self._check_scheduled = False

    def run(self, bot):
        self.bot = bot

        if self._check_scheduled:
            return

        self.bot.reactor.scheduler.execute_after(self.next_interval(), self.check)
        self._check_scheduled = True

    def next_interval(self):
        return self.interval

    def check(self):
        self._check_scheduled = False
        if not self.bot.connection.is_connected():
            self.run(self.bot)
            self.bot.reconnect()


class ExponentialBackoff(FixedInterval):
    """
    A ReconnectStrategy implementing exponential backoff
    with jitter.
    """

    min_interval = 60
    max_interval = 300

    def __init__(self, **attrs):
        super().__init__(**attrs)
        assert 0 <= self.min_interval <= self.max_interval
        self.attempt_count = itertools.count(1)

    def next_interval(self):
        # calculate interval in seconds based on connection attempts
        intvl = 2 ** next(self.attempt_count) - 1

        # limit the max interval
        intvl = min(intvl, self.max_interval)

        # add jitter and truncate to integer seconds
        intvl = int(intvl * random.random())

        # limit the min interval
        return max(intvl, self.min_interval)


class NotifyBot:
    r"""A single-server notification bot.

    The bot tries to reconnect whenever it is disconnected; nothing that
    happens on the IRC side stops it, except a nick collision (unless
    ``retry_nick`` is set) or the ``!die`` and ``!reboot`` commands.

    Events are dispatched to ``on_<event type>`` methods; channel commands
    (``!name``) to ``do_<name>`` methods. Commands are honored from
    anyone in the bot's channels.

    Arguments:

        server -- A ServerSpec.

        channels -- Channels to join and relay to, in order.

        nickname -- The bot's nickname.

        ident -- The bot's ident (USER name).

        recon -- A ReconnectStrategy for reconnecting on
            disconnect or failed connection.

        retry_nick -- On a nick collision, try again with an
            underscore appended instead of exiting.

        \*\*connect_params -- parameters to pass through to the connect
            method.
    """

    reactor_class = notifyserv.client.Reactor

    def __init__(
        self,
        server,
        channels,
        nickname,
        ident=None,
        recon=None,
        retry_nick=False,
        **connect_params
    ):
        self.reactor = self.reactor_class()
        self.connection = self.reactor.session()
        self.reactor.add_global_handler("all_events", self._dispatcher, -10)
        self.server = server
        self.channels = tuple(channels)
        self._nickname = nickname
        self._ident = ident or nickname
        self.recon = recon or FixedInterval()
        self.retry_nick = retry_nick
        self.__connect_params = connect_params
        self.relay = Relay(self.connection, self.channels)
        self.listeners = []

    def _dispatcher(self, connection, event):
        """
        Dispatch events to on_<event.type> method, if present.
        """
        log.debug("_dispatcher: %s", event.type)

        def do_nothing(connection, event):
            return None

        method = getattr(self, "on_" + event.type, do_nothing)
        method(connection, event)

    def _connect(self):
        """
        Establish a connection to the server.
        """
        try:
            self.connection.connect(
                self.server.host,
                self.server.port,
                self._nickname,
                self._ident,
                self.channels,
                **self.__connect_params
            )
        except notifyserv.client.ServerConnectionError as ex:
            log.warning("%s", ex)
            self.recon.run(self)

    def reconnect(self):
        """Try the server again, unless the bot is on its way out."""
        if self.reactor.shutdown_request is not None:
            return
        log.info("Reconnecting to %s:%s", self.server.host, self.server.port)
        self._connect()

    def listen_tcp(self, address, port):
        self.listeners.append(Listener.tcp(self.reactor, self.relay, address, port))

    def listen_unix(self, path):
        self.listeners.append(Listener.unix(self.reactor, self.relay, path))

    def on_disconnect(self, connection, event):
        if self.reactor.shutdown_request is not None:
            return
        self.recon.run(self)

    def on_nicknameinuse(self, connection, event):
        nick = connection.get_nickname()
        if self.retry_nick:
            log.warning("Nickname %s is already in use, trying %s_.", nick, nick)
            connection.nick(nick + '_')
            return
        log.error("Nickname %s is already in use.", nick)
        self.die("Nickname is already in use", status=1)

    def on_command(self, connection, event):
        """
        Run the do_<command> method for a recognized command; ignore
        anything else.
        """
        handler = getattr(self, 'do_' + event.command, None)
        if handler is None:
            return
        handler(connection, event)

    def do_ping(self, connection, event):
        log.debug("%s pinged me, sending pong.", event.nick)
        connection.privmsg(event.channel, "%s: pong" % event.nick)

    def do_version(self, connection, event):
        log.debug("%s asked for my version.", event.nick)
        connection.privmsg(event.channel, "This is %s" % self.get_version())

    def do_die(self, connection, event):
        log.info(
            "Dying as requested by %s (%s@%s) on IRC.",
            event.nick,
            event.ident,
            event.host,
        )
        self.die("Dying")

    def do_reboot(self, connection, event):
        log.info(
            "Rebooting as requested by %s (%s@%s) on IRC.",
            event.nick,
            event.ident,
            event.host,
        )
        self.die("Rebooting", restart=True)

    def get_version(self):
        """Returns the bot version.

        Used when answering the !version command.
        """
        return VERSION_STRING

    def die(self, msg="Dying", status=0, restart=False):
        """Let the bot die.

        The session quits right away; the loop then ends and ``start``
        returns so the caller can clean up and exit (or restart).

        Arguments:

            msg -- Quit message.
        """
        self.reactor.stop(status=status, restart=restart, reason=msg)
        self.connection.shutdown(msg)

    def cleanup(self):
        """Quit IRC if still connected and close all listeners."""
        request = self.reactor.shutdown_request
        self.connection.shutdown(request.reason if request else "")
        for listener in self.listeners:
            listener.close()
        self.listeners = []

    def start(self):
        """Run the bot until it is told to stop.

        Returns the ShutdownRequest that stopped it.
        """
        self._connect()
        try:
            return self.reactor.process_forever()
        finally:
            self.cleanup()
