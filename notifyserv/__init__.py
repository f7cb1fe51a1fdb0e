import contextlib
from importlib import metadata

PRODUCT = 'notifyserv'


def _get_version():
    with contextlib.suppress(Exception):
        return metadata.version(PRODUCT)
    return 'unknown'


__version__ = _get_version()

VERSION_STRING = '{} {}'.format(PRODUCT, __version__)
"product name and version, as announced on IRC"
