"""
The kinds of server message the relay reacts to.

:func:`classify` turns one tokenized :class:`~notifyserv.message.Message`
into one of the event values below. Each has a ``type`` naming it for
dispatch (``on_<type>`` handlers). Anything else is ``Unrecognized``.
"""

import collections
import logging

from . import strings

log = logging.getLogger(__name__)

numeric = {
    "001": "welcome",
    "433": "nicknameinuse",
}


class Event:
    """
    Events are equal only to events of the same kind.

    >>> WelcomeBanner() == NickInUse()
    False
    >>> KickNotice('#ops') == KickNotice('#ops')
    True
    """

    __slots__ = ()

    def __eq__(self, other):
        return type(self) is type(other) and tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.type, tuple(self)))


class PingMessage(Event, collections.namedtuple('PingMessage', 'token')):
    type = 'ping'


class ErrorMessage(Event, collections.namedtuple('ErrorMessage', 'text')):
    type = 'error'

    @property
    def timed_out(self):
        """
        Did the server drop us for inactivity? That is an ordinary
        disconnect rather than something needing attention.
        """
        return 'Connection timed out' in self.text


class WelcomeBanner(Event, collections.namedtuple('WelcomeBanner', ())):
    type = 'welcome'


class NickInUse(Event, collections.namedtuple('NickInUse', ())):
    type = 'nicknameinuse'


class KickNotice(Event, collections.namedtuple('KickNotice', 'channel')):
    type = 'kick'


class ChannelMessage(
    Event,
    collections.namedtuple('ChannelMessage', 'nick ident host channel text')
):
    type = 'pubmsg'


class CommandInvocation(
    Event,
    collections.namedtuple(
        'CommandInvocation', 'nick ident host channel command args'
    )
):
    type = 'command'


class Unrecognized(Event, collections.namedtuple('Unrecognized', ())):
    type = 'unrecognized'


class Disconnect(Event, collections.namedtuple('Disconnect', 'reason')):
    "Generated when the connection to the server goes away"

    type = 'disconnect'


generated = ["disconnect"]

protocol = [
    "ping",
    "error",
    "kick",
    "pubmsg",
    "command",
]

all = generated + protocol + list(numeric.values()) + ["unrecognized"]


_classifiers = {}


def _classifies(command):
    def register(func):
        _classifiers[command] = func
        return func

    return register


def classify(message, nickname):
    """
    Determine what ``message`` means to a client going by ``nickname``.

    >>> from notifyserv.message import Message
    >>> classify(Message.parse('PING :abc123'), 'notify')
    PingMessage(token='abc123')

    >>> classify(Message.parse(':srv 001 notify :Welcome to the net'), 'notify')
    WelcomeBanner()

    A welcome addressed to another nick is none of ours.

    >>> classify(Message.parse(':srv 001 other :Welcome to the net'), 'notify')
    Unrecognized()

    >>> line = ':bob!b@h PRIVMSG #ops :!VERSION please'
    >>> classify(Message.parse(line), 'notify')
    CommandInvocation(nick='bob', ident='b', host='h', channel='#ops', command='version', args='please')

    Text that merely looks like a protocol line is still just text.

    >>> classify(Message.parse(':bob!b@h PRIVMSG #ops :PING :x'), 'notify').type
    'pubmsg'
    """
    command = numeric.get(message.command, message.command.lower())
    classifier = _classifiers.get(command, _unrecognized)
    return classifier(message, nickname)


def _unrecognized(message, nickname):
    return Unrecognized()


@_classifies('error')
def _error(message, nickname):
    text = message.arguments[-1] if message.arguments else ''
    return ErrorMessage(text)


@_classifies('nicknameinuse')
def _nick_in_use(message, nickname):
    # 433 <current nick or *> <attempted nick> :Nickname is already in use
    args = message.arguments
    if len(args) > 1 and strings.same_nick(args[1], nickname):
        return NickInUse()
    return Unrecognized()


@_classifies('ping')
def _ping(message, nickname):
    token = message.arguments[0] if message.arguments else ''
    return PingMessage(token)


@_classifies('welcome')
def _welcome(message, nickname):
    args = message.arguments
    if args and strings.same_nick(args[0], nickname):
        return WelcomeBanner()
    return Unrecognized()


@_classifies('privmsg')
def _privmsg(message, nickname):
    args = message.arguments
    if len(args) < 2:
        log.warning("Ignoring PRIVMSG without text: %s", args)
        return Unrecognized()
    channel, text = args[:2]
    if not channel.startswith('#'):
        # private messages are not for us to act on
        return Unrecognized()
    if not strings.is_channel(channel):
        log.debug("Ignoring message to degenerate channel %r", channel)
        return Unrecognized()
    source = message.prefix
    if not source:
        log.warning("Ignoring channel message without a source: %s", args)
        return Unrecognized()

    if text.startswith('!'):
        word, *rest = text.split(None, 1)
        name = word[1:].lower()
        if name:
            args = rest[0].strip() if rest else ''
            return CommandInvocation(
                source.nick, source.user, source.host, channel, name, args
            )
    return ChannelMessage(source.nick, source.user, source.host, channel, text)


@_classifies('kick')
def _kick(message, nickname):
    # KICK <channel> <nick> [:comment]
    args = message.arguments
    if len(args) < 2:
        log.warning("Ignoring malformed KICK: %s", args)
        return Unrecognized()
    channel, target = args[:2]
    if strings.same_nick(target, nickname):
        return KickNotice(channel)
    return Unrecognized()
