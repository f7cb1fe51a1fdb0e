from jaraco.collections import KeyTransformingDict

from . import strings


class IRCDict(KeyTransformingDict):
    """
    A dictionary keyed by nick or channel name, where keys compare
    according to the IRC case rules. Insertion order is kept.

    >>> joined = IRCDict()
    >>> joined['#Ops'] = True
    >>> joined['#alerts'] = True
    >>> '#OPS' in joined
    True
    >>> list(joined)
    ['#Ops', '#alerts']
    >>> del joined['#ops']
    >>> len(joined)
    1
    """

    @staticmethod
    def transform_key(key):
        if isinstance(key, str):
            key = strings.IRCFoldedCase(key)
        return key
