"""
Framing of the server's byte stream into protocol lines.

The server may deliver a line in several reads, or several lines in one
read. The buffers here keep the unterminated remainder between reads and
refuse to let it grow past one protocol line.
"""

from jaraco.stream import buffer


class LineTooLong(ValueError):
    "A line exceeded the protocol limit"


class LineBuffer(buffer.LineBuffer):
    r"""
    A line buffer bounded by the IRC line limit.

    >>> b = LineBuffer()
    >>> b.feed(b'PING :abc\r\nPING :de')
    >>> list(b)
    [b'PING :abc']
    >>> b.feed(b'f\n')
    >>> list(b)
    [b'PING :def']

    A peer that never terminates its line is cut off, and nothing of the
    partial line is kept.

    >>> b.feed(b'x' * 600)
    >>> list(b)
    Traceback (most recent call last):
    ...
    notifyserv.buffer.LineTooLong: 600 bytes without a line terminator
    >>> len(b)
    0
    """

    max_length = 512
    "longest permitted line in bytes, terminator included"

    @property
    def max_content(self):
        return self.max_length - len(b'\r\n')

    def lines(self):
        for line in super().lines():
            if len(line) > self.max_content:
                self.buffer = b''
                raise LineTooLong("line of %d bytes" % len(line))
            yield line
        pending = self.buffer
        if len(pending.rstrip(b'\r')) > self.max_content:
            self.buffer = b''
            raise LineTooLong("%d bytes without a line terminator" % len(pending))


class DecodingLineBuffer(buffer.LenientDecodingLineBuffer, LineBuffer):
    """
    A bounded line buffer yielding text. Lines that aren't UTF-8 are
    decoded as latin-1 rather than dropped.

    >>> b = DecodingLineBuffer()
    >>> b.feed('PRIVMSG #ops :caf\\xe9\\r\\n'.encode('latin-1'))
    >>> list(b)
    ['PRIVMSG #ops :café']
    """
