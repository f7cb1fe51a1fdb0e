"""
Command-line entry point.

Connects to one IRC server, joins the given channels and relays whatever
local processes write to the TCP and/or Unix-domain listeners.
"""

import argparse
import logging
import os

import jaraco.logging
import more_itertools

from . import VERSION_STRING
from . import strings
from .bot import NotifyBot, ServerSpec
from .listen import ListenerError
from .process import SignalWatcher, daemonize

log = logging.getLogger(__name__)

log_format = '%(asctime)s %(levelname)s %(name)s %(message)s'
log_datefmt = '%Y-%m-%d %H:%M:%S'


def port_number(text):
    """
    >>> port_number('8675')
    8675
    >>> port_number('0')
    Traceback (most recent call last):
    ...
    argparse.ArgumentTypeError: invalid port: '0'
    """
    try:
        port = int(text)
    except ValueError:
        port = 0
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError("invalid port: %r" % text)
    return port


def server_spec(text):
    try:
        return ServerSpec.parse(text)
    except ValueError as ex:
        raise argparse.ArgumentTypeError("invalid server %r: %s" % (text, ex))


def valid_channel(name):
    r"""
    >>> valid_channel('#ops')
    True
    >>> valid_channel('ops')
    False
    >>> valid_channel('#a\x07b')
    False
    """
    return strings.is_channel(name) and not any(
        char.isspace() or char == ',' or ord(char) < 32 for char in name
    )


def channel_list(values):
    """
    Flatten repeated and comma-separated channel options, keeping the
    first spelling of each channel.

    >>> channel_list(['#a,#b', '#A', '#c'])
    ['#a', '#b', '#c']
    """
    names = (
        name.strip() for value in values for name in value.split(',') if name.strip()
    )
    return list(more_itertools.unique_everseen(names, key=strings.lower))


def get_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='notifyserv',
        description="Relay lines written to local sockets into IRC channels.",
    )
    parser.add_argument(
        '-c',
        '--channel',
        dest='channels',
        action='append',
        default=[],
        metavar='CHANNELS',
        help="channel to join and relay to; repeat or separate with commas",
    )
    parser.add_argument(
        '-s', '--server', type=server_spec, metavar='HOST[:PORT]', help="IRC server"
    )
    parser.add_argument('-n', '--nick', default='notifyserv')
    parser.add_argument('-i', '--ident', default='notifyserv')
    parser.add_argument('-a', '--listen-address', default='localhost')
    parser.add_argument('-p', '--listen-port', type=port_number, default=8675)
    parser.add_argument(
        '-d', '--no-tcp', action='store_true', help="don't listen on TCP"
    )
    parser.add_argument(
        '-u', '--unix-socket', metavar='PATH', help="listen on a Unix domain socket"
    )
    parser.add_argument(
        '-f',
        '--foreground',
        action='store_true',
        help="don't daemonize; log to stderr",
    )
    parser.add_argument(
        '--log-file',
        default='notifyserv.log',
        metavar='PATH',
        help="log file when running as a daemon",
    )
    parser.add_argument(
        '--retry-nick',
        action='store_true',
        help="if the nick is taken, retry with an underscore appended",
    )
    parser.add_argument('-V', '--version', action='version', version=VERSION_STRING)
    jaraco.logging.add_arguments(parser)
    args = parser.parse_args(argv)

    if args.server is None:
        parser.error("no IRC server given")
    args.channels = channel_list(args.channels)
    if not args.channels:
        parser.error("no channel given")
    invalid = [name for name in args.channels if not valid_channel(name)]
    if invalid:
        parser.error("invalid channel name: %s" % ', '.join(invalid))
    if args.no_tcp and not args.unix_socket:
        parser.error("nothing to listen on: TCP is disabled and no Unix socket given")
    return args


def make_bot(args):
    return NotifyBot(
        args.server,
        args.channels,
        args.nick,
        ident=args.ident,
        retry_nick=args.retry_nick,
    )


def run(args):
    """
    Run one bot from start to shutdown. Returns the ShutdownRequest that
    ended it.
    """
    bot = make_bot(args)
    try:
        if not args.no_tcp:
            bot.listen_tcp(args.listen_address, args.listen_port)
        if args.unix_socket:
            bot.listen_unix(args.unix_socket)
    except ListenerError as ex:
        log.error("%s", ex)
        bot.reactor.stop(status=1, reason=str(ex))
        bot.cleanup()
        return bot.reactor.shutdown_request
    with SignalWatcher(bot.reactor):
        return bot.start()


def main(argv=None):
    args = get_args(argv)
    if args.unix_socket:
        args.unix_socket = os.path.abspath(args.unix_socket)
    args.log_file = os.path.abspath(args.log_file)

    if args.foreground:
        jaraco.logging.setup(args, format=log_format, datefmt=log_datefmt)
    else:
        daemonize()
        jaraco.logging.setup(
            args, format=log_format, datefmt=log_datefmt, filename=args.log_file
        )

    log.info("Starting %s", VERSION_STRING)
    try:
        while True:
            request = run(args)
            if not request.restart:
                break
            log.info("Restarting: %s", request.reason)
        log.info("Exiting: %s", request.reason or "done")
    finally:
        logging.shutdown()
    raise SystemExit(request.status)


if __name__ == '__main__':
    main()
