from jaraco.text import FoldedCase


class IRCFoldedCase(FoldedCase):
    """
    A case-insensitive string using the RFC 1459 notion of case, in which
    ``[]\\^`` are the upper case forms of ``{}|~``.

    Nicks and channel names are compared this way throughout.

    >>> IRCFoldedCase('Notify^') == 'notify~'
    True

    >>> IRCFoldedCase('#[Ops]') == '#{ops}'
    True

    >>> IRCFoldedCase('#ops').lower()
    '#ops'
    """

    translation = dict(
        zip(
            map(ord, r"[]\^"),
            map(ord, r"{}|~"),
        )
    )

    def lower(self):
        return super().lower().translate(self.translation)

    def casefold(self):
        return super().casefold().translate(self.translation)

    def __setattr__(self, key, val):
        # FoldedCase caches these on the instance, hiding the overrides.
        if key in ('casefold', 'lower'):
            return
        return super().__setattr__(key, val)


def lower(str):
    return IRCFoldedCase(str).lower()


def same_nick(a, b):
    """
    >>> same_nick('Notify', 'notify')
    True
    >>> same_nick('notify', None)
    False
    """
    if a is None or b is None:
        return False
    return IRCFoldedCase(a) == IRCFoldedCase(b)


def is_channel(string):
    """
    Is ``string`` a usable channel name?  Only ``#`` channels are
    recognized, and a bare ``#`` is not a channel.

    >>> is_channel('#ops')
    True
    >>> is_channel('#')
    False
    >>> is_channel('ops')
    False
    >>> is_channel('')
    False
    """
    return len(string or '') > 1 and string.startswith('#')
