"""
Forwarding of listener text to the IRC channels.

A line starting with ``#channel `` goes to that channel only; any other
line goes to every configured channel. Delivery is best effort: a line
that can't be sent right now is logged and dropped.
"""

import collections
import logging

from . import client
from . import message
from . import strings

log = logging.getLogger(__name__)


class Route(collections.namedtuple('Route', 'channel text')):
    """
    Where one relayed line should go. A ``channel`` of None means every
    configured channel.
    """

    @classmethod
    def from_line(cls, line):
        """
        >>> Route.from_line('#ops hello world')
        Route(channel='#ops', text='hello world')
        >>> Route.from_line('hello world')
        Route(channel=None, text='hello world')

        A bare ``#`` names no channel, so the line is broadcast whole.

        >>> Route.from_line('# not a channel')
        Route(channel=None, text='# not a channel')
        """
        if line.startswith('#'):
            head, *rest = line.split(None, 1)
            if strings.is_channel(head):
                return cls(head, rest[0] if rest else '')
        return cls(None, line)


def split_message(text, max_bytes):
    """
    Split text into pieces of at most ``max_bytes`` UTF-8 bytes,
    preferring to break at spaces and never inside a character.

    >>> split_message('short', 400)
    ['short']
    >>> split_message('one two three', 8)
    ['one two', 'three']
    >>> split_message('éééé', 5)
    ['éé', 'éé']
    """
    pieces = []
    while len(text.encode('utf-8')) > max_bytes:
        head = text.encode('utf-8')[:max_bytes].decode('utf-8', 'ignore')
        head = head or text[0]
        if text[len(head):len(head) + 1] != ' ':
            cut = head.rfind(' ')
            if cut > 0:
                head = head[:cut]
        pieces.append(head)
        text = text[len(head):].lstrip(' ')
    if text:
        pieces.append(text)
    return pieces


class Relay:
    """
    Sends text arriving on the listeners to IRC through the session.
    """

    max_payload = 400
    """
    Bytes of text per PRIVMSG. The server prepends our nick!ident@host when
    passing the message on, and the whole must stay within 512 bytes.
    """

    def __init__(self, session, channels):
        self.session = session
        self.channels = tuple(channels)

    def relay(self, raw_text, origin='unknown'):
        """
        Send each line of ``raw_text`` to its channel(s).

        ``origin`` names the listener the text came in on, for the log.
        """
        for line in raw_text.split('\n'):
            line = line.rstrip('\r')
            if not line.strip():
                continue
            self._relay_line(Route.from_line(line), origin)

    def _relay_line(self, route, origin):
        channels = (route.channel,) if route.channel else self.channels
        if not route.text.strip():
            log.debug("Nothing to say to %s; ignoring", route.channel)
            return
        if not self.session.is_active():
            log.warning(
                "Not connected to IRC; dropping line from %s socket: %s",
                origin,
                route.text,
            )
            return
        log.info(
            "Forwarding data from %s socket to %s: %s",
            origin,
            ', '.join(channels),
            route.text,
        )
        for channel in channels:
            room = self.room_for(channel)
            if room < 1:
                log.warning("Channel name too long to send to: %s", channel)
                continue
            for piece in split_message(route.text, room):
                try:
                    self.session.privmsg(channel, piece)
                except client.ServerNotConnectedError:
                    log.warning("Lost the IRC connection; dropped line to %s", channel)
                    return
                except message.InvalidCharacters:
                    log.warning("Dropped line with control characters: %r", piece)
                    return
                except message.MessageTooLong:
                    log.warning("Dropped overlong line to %s: %r", channel, piece)
                    return

    def room_for(self, channel):
        """
        Bytes of text that fit in one PRIVMSG to ``channel``.

        >>> Relay(None, ()).room_for('#ops')
        400
        >>> Relay(None, ()).room_for('#' + 'a' * 495)
        4
        """
        overhead = len(("PRIVMSG %s :\r\n" % channel).encode(message.Command.encoding))
        limit = message.Command.max_length - overhead
        return min(self.max_payload, limit)
