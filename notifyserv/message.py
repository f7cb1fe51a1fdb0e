"""
The IRC message grammar, both directions.

Inbound lines are tokenized into prefix, command and parameters
(``[:prefix] COMMAND param* [:trailing]``); everything downstream matches
on those fields. Outbound lines are built as :class:`Command` values,
which are checked once, when constructed.
"""

import collections
import re


class InvalidMessage(ValueError):
    "The line does not follow the IRC message grammar"


class InvalidCharacters(ValueError):
    "Invalid characters were encountered in the message"


class MessageTooLong(ValueError):
    "Message is too long"


_cmd_pat = (
    r"^(:(?P<prefix>[^ ]+) +)?"
    r"(?P<command>[A-Za-z]+|\d{3})"
    r"(?P<argument> .*)?$"
)
_rfc_1459_command_regexp = re.compile(_cmd_pat)


class NickMask(str):
    """
    A nickmask (the source of a message)

    >>> nm = NickMask('alice!a@example.com')
    >>> nm.nick
    'alice'
    >>> nm.user
    'a'
    >>> nm.host
    'example.com'

    Messages from the server itself carry no userhost.

    >>> nm = NickMask('irc.example.net')
    >>> nm.nick
    'irc.example.net'
    >>> nm.user
    >>> nm.host
    """

    @property
    def nick(self):
        nick, sep, userhost = self.partition("!")
        return nick

    @property
    def host(self):
        nick, sep, userhost = self.partition("!")
        user, sep, host = userhost.partition('@')
        return host or None

    @property
    def user(self):
        nick, sep, userhost = self.partition("!")
        user, sep, host = userhost.partition('@')
        return user or None

    @classmethod
    def from_group(cls, group):
        return cls(group) if group else None


class Arguments(list):
    @staticmethod
    def from_group(group):
        """
        Construct arguments from the regex group

        >>> Arguments.from_group(None)
        []

        >>> Arguments.from_group(' #ops')
        ['#ops']

        >>> Arguments.from_group(' #ops :hello :world')
        ['#ops', 'hello :world']

        >>> Arguments.from_group(' :abc123')
        ['abc123']

        >>> Arguments.from_group(' #ops :')
        ['#ops', '']
        """
        if not group:
            return []

        main, sep, ext = group.partition(" :")
        arguments = main.split()
        if sep:
            arguments.append(ext)

        return arguments


class Message(collections.namedtuple('Message', 'prefix command arguments')):
    """
    One tokenized line from the server.

    >>> msg = Message.parse(':alice!a@h PRIVMSG #ops :!ping')
    >>> msg.prefix.nick, msg.command, msg.arguments
    ('alice', 'PRIVMSG', ['#ops', '!ping'])

    >>> Message.parse('ping :irc.example.net')
    Message(prefix=None, command='PING', arguments=['irc.example.net'])

    >>> Message.parse(':truncated')
    Traceback (most recent call last):
    ...
    notifyserv.message.InvalidMessage: ':truncated'
    """

    @classmethod
    def parse(cls, line):
        match = _rfc_1459_command_regexp.match(line)
        if not match:
            raise InvalidMessage(repr(line))
        grp = match.group
        return cls(
            NickMask.from_group(grp('prefix')),
            grp('command').upper(),
            Arguments.from_group(grp('argument')),
        )


class Command(str):
    r"""
    One line to send to the server, without its terminator.

    Every outbound line is built through this class so that none leaves
    with an embedded line break or over the length limit.

    >>> Command.build('JOIN', '#ops')
    'JOIN #ops'
    >>> Command.build('PRIVMSG', '#ops', trailing='alice: pong').to_bytes()
    b'PRIVMSG #ops :alice: pong\r\n'
    >>> Command.build('QUIT', trailing='')
    'QUIT :'

    >>> Command('PRIVMSG #ops :one\ntwo')
    Traceback (most recent call last):
    ...
    notifyserv.message.InvalidCharacters: Line breaks not allowed in a command
    >>> Command.build('PRIVMSG', '#ops', trailing='x' * 600)
    Traceback (most recent call last):
    ...
    notifyserv.message.MessageTooLong: Messages limited to 512 bytes including CR/LF
    """

    max_length = 512
    encoding = 'utf-8'

    def __new__(cls, line):
        if '\n' in line or '\r' in line:
            raise InvalidCharacters("Line breaks not allowed in a command")
        # According to the RFC http://tools.ietf.org/html/rfc2812#page-6,
        # clients should not transmit more than 512 bytes.
        if len(line.encode(cls.encoding)) + 2 > cls.max_length:
            raise MessageTooLong("Messages limited to 512 bytes including CR/LF")
        return super().__new__(cls, line)

    @classmethod
    def build(cls, *items, trailing=None):
        """
        Join the non-empty items with spaces, followed by the trailing
        parameter, if any.
        """
        items = list(filter(None, items))
        if trailing is not None:
            items.append(':' + trailing)
        return cls(' '.join(items))

    def to_bytes(self):
        return self.encode(self.encoding) + b'\r\n'
