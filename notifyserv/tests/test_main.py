import logging

import pytest

from notifyserv import __main__ as cli


def test_defaults():
    args = cli.get_args(['-s', 'irc.example.net', '-c', '#ops'])
    assert args.server.host == 'irc.example.net'
    assert args.server.port == 6667
    assert args.channels == ['#ops']
    assert args.nick == 'notifyserv'
    assert args.ident == 'notifyserv'
    assert args.listen_address == 'localhost'
    assert args.listen_port == 8675
    assert not args.no_tcp
    assert args.unix_socket is None
    assert not args.foreground
    assert not args.retry_nick
    assert args.log_level == logging.INFO


def test_channels_merged_in_order():
    args = cli.get_args(
        ['-s', 'irc.example.net:6697', '-c', '#a,#b', '--channel', '#A', '-c', '#c']
    )
    assert args.server.port == 6697
    assert args.channels == ['#a', '#b', '#c']


def test_unix_only():
    args = cli.get_args(
        ['-s', 'irc.example.net', '-c', '#ops', '-d', '-u', '/tmp/notify.sock']
    )
    assert args.no_tcp
    assert args.unix_socket == '/tmp/notify.sock'


@pytest.mark.parametrize(
    'argv',
    [
        ['-c', '#ops'],
        ['-s', 'irc.example.net'],
        ['-s', 'irc.example.net', '-c', 'ops'],
        ['-s', 'irc.example.net', '-c', '#ops', '-p', '70000'],
        ['-s', 'irc.example.net:0', '-c', '#ops'],
        ['-s', 'irc.example.net', '-c', '#ops', '-d'],
    ],
)
def test_usage_errors(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.get_args(argv)
    assert exc_info.value.code == 2


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.get_args(['--version'])
    assert exc_info.value.code == 0
    assert capsys.readouterr().out.startswith('notifyserv ')


def test_listener_failure_exits_with_status_1(tmp_path):
    path = tmp_path / 'missing' / 'notify.sock'
    args = cli.get_args(['-s', 'irc.example.net', '-c', '#ops', '-d', '-u', str(path)])
    request = cli.run(args)
    assert request.status == 1
    assert not request.restart
