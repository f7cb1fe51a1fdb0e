from unittest import mock

import pytest

import notifyserv.client
from notifyserv import VERSION_STRING
from notifyserv import connection
from notifyserv import events
from notifyserv.client import Phase


@pytest.fixture
def session(reactor, factory):
    session = reactor.session()
    session.connect(
        'irc.example.net', 6667, 'notify', channels=['#ops', '#dev'],
        connect_factory=factory,
    )
    return session


def welcome(session):
    session.transport.feed(':irc.example.net 001 notify :Welcome to the net\r\n')
    session.process_data()


def test_connect_registers(session, factory):
    assert factory.attempts == [('irc.example.net', 6667)]
    assert factory.transport.lines == [
        'USER notify 0 * :' + VERSION_STRING,
        'NICK notify',
    ]
    assert session.phase is Phase.REGISTERING
    assert not session.is_active()


def test_connect_failure(reactor, factory):
    factory.refuse()
    session = reactor.session()
    with pytest.raises(notifyserv.client.ServerConnectionError):
        session.connect('irc.example.net', 6667, 'notify', connect_factory=factory)
    assert session.phase is Phase.DISCONNECTED
    assert not session.is_connected()


def test_ping_answered_with_pong(session, factory):
    factory.transport.feed(b'PING :irc.example.net\r\n')
    session.process_data()
    assert factory.transport.lines[-1] == 'PONG :irc.example.net'


def test_lines_split_across_reads(session, factory):
    factory.transport.feed(b'PI')
    session.process_data()
    factory.transport.feed(b'NG :abc\r\nPING :de')
    session.process_data()
    factory.transport.feed(b'f\r\n')
    session.process_data()
    pongs = [line for line in factory.transport.lines if line.startswith('PONG')]
    assert pongs == ['PONG :abc', 'PONG :def']


def test_welcome_joins_channels_in_order(session, factory):
    welcome(session)
    assert factory.transport.lines[2:] == ['JOIN #ops', 'JOIN #dev']
    assert session.is_active()
    assert '#OPS' in session.joined


def test_welcome_for_another_nick_ignored(session, factory):
    factory.transport.feed(':irc.example.net 001 someone :Welcome\r\n')
    session.process_data()
    assert session.phase is Phase.REGISTERING
    assert len(factory.transport.lines) == 2


def test_second_welcome_ignored(session, factory):
    welcome(session)
    welcome(session)
    assert factory.transport.lines.count('JOIN #ops') == 1


def test_kick_rejoins(session, factory):
    welcome(session)
    factory.transport.feed(':op!o@h KICK #dev notify :out\r\n')
    session.process_data()
    assert factory.transport.lines[-1] == 'JOIN #dev'
    # one from the welcome, one from the rejoin
    assert factory.transport.lines.count('JOIN #dev') == 2


def test_kick_from_channel_never_joined(session, factory):
    welcome(session)
    sent = list(factory.transport.lines)
    factory.transport.feed(':op!o@h KICK #elsewhere notify :out\r\n')
    session.process_data()
    assert factory.transport.lines == sent


def test_kick_of_someone_else(session, factory):
    welcome(session)
    factory.transport.feed(':op!o@h KICK #dev bob :out\r\n')
    session.process_data()
    assert factory.transport.lines[-1] == 'JOIN #dev'
    assert factory.transport.lines.count('JOIN #dev') == 1


def test_protocol_text_in_channel_message(session, factory):
    """
    A channel message that looks like a PING is just a message.
    """
    welcome(session)
    factory.transport.feed(':bob!b@h PRIVMSG #ops :PING :gotcha\r\n')
    session.process_data()
    assert not any(line.startswith('PONG') for line in factory.transport.lines)


def test_unsendable_pong_dropped(session, factory):
    """
    A PING token that doesn't fit back into a PONG (latin-1 bytes grow
    when sent as UTF-8) is dropped, and the session carries on.
    """
    factory.transport.feed(b'PING :' + b'\xe9' * 300 + b'\r\nPING :next\r\n')
    session.process_data()
    assert session.is_connected()
    pongs = [line for line in factory.transport.lines if line.startswith('PONG')]
    assert pongs == ['PONG :next']


def test_malformed_line_ignored(session, factory):
    factory.transport.feed(b':no-command-here\r\nPING :still-here\r\n')
    session.process_data()
    assert factory.transport.lines[-1] == 'PONG :still-here'
    assert session.is_connected()


@pytest.mark.parametrize(
    'text',
    [
        'Closing Link: notify (Connection timed out)',
        'Closing Link: notify (Killed)',
    ],
)
def test_error_disconnects(session, factory, reactor, text):
    handler = mock.Mock()
    reactor.add_global_handler('disconnect', handler)
    factory.transport.feed('ERROR :%s\r\n' % text)
    session.process_data()
    assert factory.transport.closed
    assert session.phase is Phase.DISCONNECTED
    handler.assert_called_once_with(session, events.Disconnect(text))


def test_read_failure_disconnects(session, factory):
    welcome(session)
    factory.transport.fail(connection.ReadError("Connection reset by peer"))
    session.process_data()
    assert session.phase is Phase.DISCONNECTED
    assert not session.is_connected()
    assert not session.joined


def test_end_of_stream_disconnects(session, factory):
    factory.transport.fail(connection.EndOfStream("Connection closed by peer"))
    session.process_data()
    assert session.phase is Phase.DISCONNECTED


def test_overlong_line_disconnects(session, factory):
    factory.transport.feed(b'x' * 600)
    session.process_data()
    assert factory.transport.closed


def test_write_failure_disconnects(session, factory):
    welcome(session)
    factory.transport.closed = True
    session.privmsg('#ops', 'hello')
    assert session.phase is Phase.DISCONNECTED


def test_send_when_not_connected(reactor):
    session = reactor.session()
    with pytest.raises(notifyserv.client.ServerNotConnectedError):
        session.privmsg('#ops', 'hello')


def test_privmsg_rejects_line_breaks(session):
    with pytest.raises(ValueError):
        session.privmsg('#ops', 'You are great\nSo are you')


def test_shutdown_sends_quit(session, factory):
    welcome(session)
    session.shutdown("Dying")
    assert factory.transport.lines[-1] == 'QUIT :Dying'
    assert factory.transport.closed
    assert session.phase is Phase.SHUTTING_DOWN
    with pytest.raises(notifyserv.client.ServerConnectionError):
        session.reconnect()


def test_reconnect_uses_saved_arguments(session, factory):
    session.disconnect("gone")
    session.reconnect()
    assert factory.attempts == [('irc.example.net', 6667)] * 2
    assert factory.transport.lines[-1] == 'NICK notify'


class TestHandlers:
    def test_handlers_same_priority(self):
        """
        Two handlers of the same priority should still compare.
        """
        handler1 = notifyserv.client.PrioritizedHandler(1, lambda: None)
        handler2 = notifyserv.client.PrioritizedHandler(1, lambda: 'other')
        assert not handler1 < handler2
        assert not handler2 < handler1

    def test_no_more(self, session, factory, reactor):
        """
        A handler returning "NO MORE" stops lower-priority handlers.
        """
        reactor.add_global_handler('ping', lambda conn, event: "NO MORE", -50)
        factory.transport.feed(b'PING :abc\r\n')
        session.process_data()
        assert factory.transport.lines[-1] == 'NICK notify'


def test_stop_first_request_wins(reactor):
    reactor.stop(status=0, restart=True, reason='Rebooting')
    reactor.stop(status=1, reason='later')
    assert reactor.process_forever() == notifyserv.client.ShutdownRequest(
        0, True, 'Rebooting'
    )
