# -*- encoding: utf-8 -*-
"""
`caches` -- The tiers an identifier is looked up in
===================================================
"""
from collections import OrderedDict
from logging import getLogger
import os
import re
from threading import Lock
from urllib.parse import quote_plus

from referent.constants import JP2_FILE_PATTERN, PAIRTREE_ROOT, REMOTE_CACHE_SIZE
from referent.identifiers import PairtreeNamer
from referent.records import ImageRecord
from referent.utils import strip_ext


logger = getLogger(__name__)


class LocalIndex(object):
    """Images found by walking a directory tree, keyed by the quoted file
    name without its extension.

    The index is built once and only read afterwards; ``build()`` swaps in a
    complete new map, so readers never need a lock.  Two files with the same
    name in different directories collide, and the one scanned last wins.
    """

    def __init__(self, file_pattern=JP2_FILE_PATTERN):
        self.file_pattern = re.compile(file_pattern)
        self._images = {}

    def build(self, root_dir):
        images = {}

        def _log_walk_error(err):
            logger.warning('Could not scan %s: %s', err.filename, err)

        if not os.path.isdir(root_dir):
            logger.warning('%s couldn\'t be found', root_dir)
            self._images = images
            return self

        for dirpath, dirnames, filenames in os.walk(root_dir, onerror=_log_walk_error):
            # Images in the pairtree are looked up by PersistentCache
            dirnames[:] = [d for d in dirnames if d != PAIRTREE_ROOT]

            for filename in filenames:
                if not self.file_pattern.match(filename):
                    continue
                ident = quote_plus(strip_ext(filename))
                fp = os.path.abspath(os.path.join(dirpath, filename))
                if ident in images:
                    logger.warning('%s (%s) replaces %s', ident, fp, images[ident].file_path)
                else:
                    logger.debug('Loading %s (%s)', ident, fp)
                images[ident] = ImageRecord(identifier=ident, file_path=fp)

        self._images = images
        logger.info('Indexed %d images under %s', len(images), root_dir)
        return self

    def lookup(self, ident):
        return self._images.get(ident)

    def __contains__(self, ident):
        return ident in self._images

    def __len__(self):
        return len(self._images)


class PersistentCache(object):
    """Read-only view of the pairtree the migrator writes converted images
    into.

    Identifiers are taken as they were handed to the migrator, already
    percent-decoded; decoding again would look at a different path.
    """

    def __init__(self, root):
        self.namer = PairtreeNamer(root)

    def file_path(self, ident):
        return self.namer.file_path(ident)

    def lookup(self, ident):
        if not ident:
            return None

        fp = self.namer.file_path(ident)
        logger.debug('Checking in Pairtree cache: %s', fp)
        # A zero-length file is a failed conversion, not a cached image
        if os.path.isfile(fp) and os.path.getsize(fp) > 0:
            logger.debug('Source JP2 found in Pairtree cache: %s', fp)
            return ImageRecord(identifier=ident, file_path=os.path.abspath(fp))
        return None


class RemoteImageCache(object):
    """A dict-like, size-bounded cache of ImageRecords for converted remote
    images.  Once there are more than ``size`` entries the least recently
    used is dropped; the image itself stays in the pairtree, so a dropped
    identifier still resolves through PersistentCache.

    Note that not all dictionary methods are implemented; just ``get``, put
    (`instance[ident] = record`), delete, membership, and length.

    Slots:
        size (int): Max entries before we start popping (LRU).
        _dict (OrderedDict): The map.
        _lock (Lock): The lock.
    """
    __slots__ = ('size', '_dict', '_lock')

    def __init__(self, size=REMOTE_CACHE_SIZE):
        self.size = size
        self._dict = OrderedDict()
        self._lock = Lock()

    def get(self, ident):
        with self._lock:
            record = self._dict.get(ident)
            if record is not None:
                self._dict.move_to_end(ident)
            return record

    def __contains__(self, ident):
        with self._lock:
            return ident in self._dict

    def __getitem__(self, ident):
        record = self.get(ident)
        if record is None:
            raise KeyError(ident)
        return record

    def __setitem__(self, ident, record):
        if self.size <= 0:
            return
        with self._lock:
            self._dict[ident] = record
            self._dict.move_to_end(ident)
            while len(self._dict) > self.size:
                evicted, _ = self._dict.popitem(last=False)
                logger.debug('Evicted %s from remote images cache', evicted)

    def __delitem__(self, ident):
        with self._lock:
            del self._dict[ident]

    def discard(self, ident):
        with self._lock:
            self._dict.pop(ident, None)

    def __len__(self):
        return len(self._dict)
