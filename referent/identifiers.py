# -*- encoding: utf-8
"""
Utilities for dealing with identifiers.
"""

from logging import getLogger
import os
import re

from referent.constants import PAIRTREE_ROOT
from referent.referent_exception import ConfigError


logger = getLogger(__name__)


class ReferentParser(object):
    """
    Rewrites a raw referent into the identifier we store images under.

    Each ingest source is a regex with a single capture group, e.g.
    ``^http://example\\.edu/images/(.+)\\.jpg$``.  The rules are applied in
    order, and a rule that matches replaces the working value with its
    captured text before the next rule is tried.  A referent that no rule
    matches is assumed to be canonical already.

    """
    def __init__(self, ingest_sources=None):
        if isinstance(ingest_sources, str):
            # Also accept a single space-separated string of patterns
            ingest_sources = ingest_sources.split()

        self.rules = []
        for source in ingest_sources or []:
            try:
                pattern = re.compile(source)
            except re.error as err:
                raise ConfigError(
                    'Invalid ingest source pattern %r: %s' % (source, err)
                )
            if pattern.groups != 1:
                logger.warning(
                    'Ingest source %r has %d capture groups; it will never '
                    'rewrite a referent', source, pattern.groups
                )
            self.rules.append(pattern)

    def canonicalize(self, referent):
        for pattern in self.rules:
            match = pattern.fullmatch(referent)
            if match and pattern.groups == 1 and match.group(1) is not None:
                referent = match.group(1)
                logger.debug('Matched ID: %s', referent)
            else:
                logger.debug('No match in %s for %s', pattern.pattern, referent)
        return referent


class PairtreeNamer(object):
    """
    Maps identifiers onto a pairtree under ``root``.

    The identifier is pairtree-encoded, split into two-character "shorties"
    to give the object directory, and the image is stored in that directory
    under the encoded identifier.  For example, with ``root='/data'``:

        ark:/13030/xt12t3
        -> /data/pairtree_root/ar/k+/=1/30/30/=x/t1/2t/3/ark+=13030=xt12t3

    See https://tools.ietf.org/html/draft-kunze-pairtree-01
    """
    _HEX_ESCAPED = frozenset('"*+,<=>?\\^|')
    _TO_PAIRTREE = str.maketrans('/:.', '=+,')
    _FROM_PAIRTREE = str.maketrans('=+,', '/:.')

    def __init__(self, root):
        self.root = root
        self.pairtree_root = os.path.join(root, PAIRTREE_ROOT)

    @classmethod
    def encode_id(cls, ident):
        chars = []
        for byte in ident.encode('utf8'):
            char = chr(byte)
            if byte < 0x21 or byte > 0x7e or char in cls._HEX_ESCAPED:
                chars.append('^%02x' % byte)
            else:
                chars.append(char)
        return ''.join(chars).translate(cls._TO_PAIRTREE)

    @classmethod
    def decode_id(cls, encoded):
        encoded = encoded.translate(cls._FROM_PAIRTREE)
        decoded = bytearray()
        i = 0
        while i < len(encoded):
            if encoded[i] == '^':
                decoded.append(int(encoded[i+1:i+3], 16))
                i += 3
            else:
                decoded.extend(encoded[i].encode('utf8'))
                i += 1
        return decoded.decode('utf8')

    def object_path(self, ident):
        encoded = self.encode_id(ident)
        shorties = [encoded[i:i+2] for i in range(0, len(encoded), 2)]
        return os.path.join(self.pairtree_root, *shorties)

    def file_path(self, ident):
        return os.path.join(self.object_path(ident), self.encode_id(ident))
