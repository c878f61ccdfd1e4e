# -*- encoding: utf-8 -*-
"""
`processing` -- Single-flight conversion of remote images
=========================================================
"""
from concurrent import futures
from logging import getLogger
import os
from threading import Lock

from referent.constants import MAX_WAIT
from referent.records import ImageRecord
from referent.referent_exception import (
    ConversionError,
    ConversionTimeout,
    ResolverException,
)


logger = getLogger(__name__)


class ProcessingSet(object):
    """The identifiers currently being converted.

    Each member maps to a Future that the converting request completes with
    the resulting ImageRecord (or exception), so that concurrent requests
    for the same identifier can wait on it instead of converting again.

    Slots:
        _futures (dict): identifier -> Future.
        _lock (Lock): The lock.
    """
    __slots__ = ('_futures', '_lock')

    def __init__(self):
        self._futures = {}
        self._lock = Lock()

    def claim(self, ident):
        """
        Returns:
            (Future, bool): the pending Future for ``ident``, and whether the
            caller now owns the conversion.  Only one caller at a time gets
            True for a given identifier.
        """
        with self._lock:
            future = self._futures.get(ident)
            if future is not None:
                return future, False
            future = futures.Future()
            self._futures[ident] = future
            return future, True

    def release(self, ident):
        with self._lock:
            self._futures.pop(ident, None)

    def __contains__(self, ident):
        with self._lock:
            return ident in self._futures

    def __len__(self):
        return len(self._futures)

    def snapshot(self):
        with self._lock:
            return frozenset(self._futures)


class ConversionCoordinator(object):
    """
    Gets remote images converted by the migrator, making sure that only one
    conversion per identifier runs at a time.

    The first request for an identifier claims it in the ProcessingSet and
    runs the conversion; any request for the same identifier that arrives
    meanwhile waits (up to ``max_wait`` seconds) for that conversion's
    outcome.  A waiter that times out gets a ConversionTimeout, but the
    conversion carries on and will be in the cache for later requests.
    """

    def __init__(self, migrator, remote_images, processing, max_wait=MAX_WAIT):
        self.migrator = migrator
        self.remote_images = remote_images
        self.processing = processing
        self.max_wait = max_wait

    def resolve_remote(self, ident, source_uri):
        record = self.cached_record(ident)
        if record is not None:
            logger.debug('Retrieving %s from remote images cache', ident)
            return record

        future, owner = self.processing.claim(ident)
        if not owner:
            return self._wait_for(ident, future)

        try:
            # Another request may have finished converting this between the
            # cache check and the claim.
            record = self.cached_record(ident)
            if record is None:
                record = self._convert(ident, source_uri)
        except ResolverException as err:
            self._finish(ident, future, exception=err)
            raise
        except BaseException:
            self._finish(
                ident, future,
                exception=ConversionError('Conversion of %s was interrupted' % ident)
            )
            raise
        self._finish(ident, future, result=record)
        return record

    def _finish(self, ident, future, result=None, exception=None):
        self.processing.release(ident)
        if exception is not None:
            future.set_exception(exception)
        else:
            future.set_result(result)

    def cached_record(self, ident):
        record = self.remote_images.get(ident)
        if record is not None and not record.exists():
            logger.warning('Cached image for %s is gone: %s', ident, record.file_path)
            self.remote_images.discard(ident)
            return None
        return record

    def _wait_for(self, ident, future):
        logger.debug('%s is already being converted; waiting up to %ss',
                     ident, self.max_wait)
        try:
            return future.result(timeout=self.max_wait)
        except futures.TimeoutError:
            logger.warning('Gave up waiting %ss for %s to be converted',
                           self.max_wait, ident)
            raise ConversionTimeout(
                'Timed out waiting for %s to be converted' % ident
            )

    def _convert(self, ident, source_uri):
        logger.debug('Converting %s from %s', ident, source_uri)
        try:
            fp = self.migrator.convert(ident, source_uri)
        except Exception as err:
            logger.error('Unable to access %s (%s)', ident, err, exc_info=True)
            raise ConversionError(
                'An error occurred processing %s: %s' % (source_uri, err)
            )

        if not fp or not os.path.isfile(fp) or os.path.getsize(fp) == 0:
            logger.error('Converting %s from %s gave an empty file: %s',
                         ident, source_uri, fp)
            self._discard_artifact(fp)
            raise ConversionError(
                'An error occurred processing file: %s' % source_uri
            )

        record = ImageRecord(
            identifier=ident,
            file_path=os.path.abspath(fp),
            source_uri=source_uri
        )
        self.remote_images[ident] = record
        logger.info('Converted %s to %s', source_uri, record.file_path)
        return record

    def _discard_artifact(self, fp):
        if fp and os.path.isfile(fp):
            try:
                os.unlink(fp)
            except OSError as err:
                logger.warning('Could not remove empty file %s: %s', fp, err)
