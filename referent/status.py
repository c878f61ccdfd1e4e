# -*- encoding: utf-8 -*-

from logging import getLogger

from referent.constants import NOT_FOUND, PROCESSING, READY


logger = getLogger(__name__)


class StatusTracker(object):
    """Says whether an identifier can be served now, is being converted, or
    is unknown.  Only reads the tiers; a status may be stale by the time the
    caller acts on it.
    """

    def __init__(self, local_images, persistent_cache, remote_images, processing):
        self.local_images = local_images
        self.persistent_cache = persistent_cache
        self.remote_images = remote_images
        self.processing = processing

    def status(self, ident, index_key=None):
        if index_key is None:
            index_key = ident
        if (self._is_cached(self.remote_images.get(ident))
                or self._is_cached(self.local_images.lookup(index_key))
                or self.persistent_cache.lookup(ident) is not None):
            status = READY
        elif ident in self.processing:
            status = PROCESSING
        else:
            status = NOT_FOUND
        logger.debug('Status of %s: %s', ident, status)
        return status

    def _is_cached(self, record):
        return record is not None and record.exists()
