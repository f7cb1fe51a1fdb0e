from unittest import mock

import pytest

from notifyserv import client
from notifyserv import message
from notifyserv.relay import Relay, split_message


@pytest.fixture
def session():
    session = mock.Mock()
    session.is_active.return_value = True
    return session


@pytest.fixture
def relay(session):
    return Relay(session, ['#ops', '#dev'])


def test_broadcast_in_configured_order(relay, session):
    relay.relay('hello world')
    assert session.privmsg.call_args_list == [
        mock.call('#ops', 'hello world'),
        mock.call('#dev', 'hello world'),
    ]


def test_addressed_line(relay, session):
    relay.relay('#elsewhere deploy done')
    session.privmsg.assert_called_once_with('#elsewhere', 'deploy done')


def test_channel_without_text_ignored(relay, session):
    relay.relay('#ops')
    relay.relay('#ops   ')
    session.privmsg.assert_not_called()


def test_bare_hash_is_broadcast(relay, session):
    relay.relay('# heading')
    assert session.privmsg.call_count == 2
    session.privmsg.assert_called_with('#dev', '# heading')


def test_multiple_lines(relay, session):
    relay.relay('one\r\n\n#dev two\r\n')
    assert session.privmsg.call_args_list == [
        mock.call('#ops', 'one'),
        mock.call('#dev', 'one'),
        mock.call('#dev', 'two'),
    ]


def test_dropped_when_not_active(relay, session):
    session.is_active.return_value = False
    relay.relay('hello')
    session.privmsg.assert_not_called()


def test_long_text_split(relay, session):
    relay.max_payload = 10
    relay.relay('#ops alpha beta gamma')
    assert session.privmsg.call_args_list == [
        mock.call('#ops', 'alpha beta'),
        mock.call('#ops', 'gamma'),
    ]


def test_lost_connection_while_sending(relay, session):
    session.privmsg.side_effect = client.ServerNotConnectedError("Not connected.")
    relay.relay('hello')
    assert session.privmsg.call_count == 1


def test_control_characters_dropped(relay, session):
    session.privmsg.side_effect = message.InvalidCharacters("no")
    relay.relay('#ops bad')
    assert session.privmsg.call_count == 1


def test_overlong_line_dropped(relay, session):
    session.privmsg.side_effect = message.MessageTooLong("too long")
    relay.relay('hello')
    assert session.privmsg.call_count == 1


def test_pieces_sized_for_channel(relay, session):
    channel = '#' + 'c' * 450
    relay.relay('%s %s' % (channel, 'x' * 200))
    pieces = [call[0][1] for call in session.privmsg.call_args_list]
    assert ''.join(pieces) == 'x' * 200
    room = 512 - len('PRIVMSG %s :\r\n' % channel)
    assert all(len(piece) <= room for piece in pieces)


def test_split_without_spaces():
    assert split_message('abcdefgh', 3) == ['abc', 'def', 'gh']


def test_split_pieces_fit():
    text = 'word ' * 200
    pieces = split_message(text, 400)
    assert all(len(piece.encode('utf-8')) <= 400 for piece in pieces)
    assert ' '.join(pieces).strip() == text.strip()
