import pytest

from notifyserv import events
from notifyserv.message import Message


def classify(line, nickname='notify'):
    return events.classify(Message.parse(line), nickname)


@pytest.mark.parametrize(
    'line, expected',
    [
        ('PING :abc', events.PingMessage('abc')),
        ('PING abc', events.PingMessage('abc')),
        ('ERROR :Closing Link', events.ErrorMessage('Closing Link')),
        (':srv 001 Notify :hi', events.WelcomeBanner()),
        (':srv 433 * notify :in use', events.NickInUse()),
        (':srv 433 * other :in use', events.Unrecognized()),
        (':op!o@h KICK #ops notify :bye', events.KickNotice('#ops')),
        (':op!o@h KICK #ops bob :bye', events.Unrecognized()),
        (':bob!b@h PRIVMSG #ops :hi there', events.ChannelMessage('bob', 'b', 'h', '#ops', 'hi there')),
        (':bob!b@h PRIVMSG #ops :!ping', events.CommandInvocation('bob', 'b', 'h', '#ops', 'ping', '')),
        (':bob!b@h PRIVMSG notify :!die', events.Unrecognized()),
        (':bob!b@h PRIVMSG # :!die', events.Unrecognized()),
        ('PRIVMSG #ops :!die', events.Unrecognized()),
        (':bob!b@h PRIVMSG #ops', events.Unrecognized()),
        (':srv 372 notify :motd', events.Unrecognized()),
        (':bob!b@h NOTICE #ops :hi', events.Unrecognized()),
    ],
)
def test_classify(line, expected):
    assert classify(line) == expected


def test_empty_events_are_distinct():
    assert events.WelcomeBanner() != events.Unrecognized()
    assert events.NickInUse() != events.WelcomeBanner()
    assert events.Unrecognized() == events.Unrecognized()
    assert len({events.WelcomeBanner(), events.NickInUse(), events.Unrecognized()}) == 3


def test_error_timed_out():
    assert classify('ERROR :Closing Link: x (Connection timed out)').timed_out
    assert not classify('ERROR :Closing Link: x (Killed)').timed_out


def test_every_event_type_is_listed():
    variants = [
        events.PingMessage('x'),
        events.ErrorMessage('x'),
        events.WelcomeBanner(),
        events.NickInUse(),
        events.KickNotice('#x'),
        events.ChannelMessage('n', 'i', 'h', '#x', 't'),
        events.CommandInvocation('n', 'i', 'h', '#x', 'c', ''),
        events.Unrecognized(),
        events.Disconnect(''),
    ]
    assert sorted(variant.type for variant in variants) == sorted(events.all)
