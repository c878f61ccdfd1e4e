"""
`resolver` -- Resolve Identifiers to Image Files
================================================
"""
from logging import getLogger
import re
from urllib.parse import unquote

from referent.caches import LocalIndex, PersistentCache, RemoteImageCache
from referent.constants import (
    JP2_FILE_PATTERN,
    MAX_WAIT,
    REMOTE_CACHE_SIZE,
    REMOTE_SCHEMES,
)
from referent.identifiers import ReferentParser
from referent.processing import ConversionCoordinator, ProcessingSet
from referent.referent_exception import (
    ConfigError,
    NotFoundError,
    ResolverException,
)
from referent.status import StatusTracker
from referent.utils import import_class


logger = getLogger(__name__)

DEFAULT_MIGRATOR = 'referent.migrator.HTTPMigrator'


class IdentifierResolver(object):
    '''
    Resolves an identifier to a JP2 on local disk.

    Identifiers that are http(s) URIs are rewritten by the configured ingest
    sources, then looked up in the remote images cache, the file system
    index and the pairtree, and failing all of those are handed to the
    migrator for conversion.  Anything else is looked up in the file system
    index and the pairtree only.

    The config dictionary MUST contain
     * `jp2_data_dir`, the directory holding source JP2s and, under
        `pairtree_root`, converted ones.

    The config dictionary MAY contain
     * `ingest_sources`, regexes that rewrite a URI into an identifier.
     * `ignore_fscache`, skip indexing `jp2_data_dir` at startup.
     * `file_pattern`, regex for the file names the index picks up.
     * `remote_cache_size`, how many converted images to remember.
     * `max_wait`, seconds to wait on a conversion another request started.
     * a `migrator` subsection, passed to the migrator; `impl` names its
        class.
    '''

    def __init__(self, config):
        self.config = config

        if not self.config.get('jp2_data_dir'):
            message = 'Configuration incomplete and cannot resolve. Missing setting for jp2_data_dir.'
            logger.error(message)
            raise ConfigError(message)
        self.jp2_data_dir = self.config['jp2_data_dir']

        self.ignore_fscache = self.config.get('ignore_fscache', False)
        self.parser = ReferentParser(self.config.get('ingest_sources', []))

        try:
            self.local_images = LocalIndex(self.config.get('file_pattern', JP2_FILE_PATTERN))
        except re.error as err:
            raise ConfigError('Invalid file_pattern: %s' % err)
        self.persistent_cache = PersistentCache(self.jp2_data_dir)
        self.remote_images = RemoteImageCache(
            self.config.get('remote_cache_size', REMOTE_CACHE_SIZE)
        )
        self.processing = ProcessingSet()

        self.migrator = self._load_migrator()
        self.coordinator = ConversionCoordinator(
            self.migrator,
            self.remote_images,
            self.processing,
            max_wait=self.config.get('max_wait', MAX_WAIT)
        )
        self.tracker = StatusTracker(
            self.local_images,
            self.persistent_cache,
            self.remote_images,
            self.processing
        )

        if not self.ignore_fscache:
            self.rescan()
        else:
            logger.debug('File system mapping disabled')

    def _load_migrator(self):
        migrator_config = dict(self.config.get('migrator', {}))
        migrator_config.setdefault('jp2_data_dir', self.jp2_data_dir)
        MigratorClass = import_class(migrator_config.get('impl', DEFAULT_MIGRATOR))
        return MigratorClass(migrator_config, processing=self.processing)

    def rescan(self, root_dir=None):
        self.local_images.build(root_dir or self.jp2_data_dir)

    def is_remote(self, ident):
        return ident.startswith(REMOTE_SCHEMES)

    def cache_keys(self, ident):
        '''
        Returns ``(index_key, ident)``: the key LocalIndex files the image
        under, and the decoded identifier the pairtree, the remote images
        cache and the in-flight set use.  Local identifiers arrive encoded
        the way LocalIndex keys are; remote URIs are decoded once, then
        canonicalized.
        '''
        decoded = unquote(ident)
        if self.is_remote(decoded):
            canonical = self.parser.canonicalize(decoded)
            return canonical, canonical
        return ident, decoded

    def resolve(self, ident):
        '''
        Args:
            ident (str):
                The identifier for the image, possibly percent-encoded.
        Returns:
            ImageRecord
        Raises:
            NotFoundError, ConversionError or ConversionTimeout, all of them
            ResolverExceptions.
        '''
        try:
            record = self._resolve(ident)
        except ResolverException:
            raise
        except Exception as err:
            logger.error('Unexpected error resolving %s', ident, exc_info=True)
            raise ResolverException('Unable to resolve %s: %s' % (ident, err))

        if record is None:
            message = 'Image not found for identifier: %r.' % (ident,)
            logger.info(message)
            raise NotFoundError(message)
        return record

    def resolve_referent(self, referent):
        ident = referent.identifier
        if not ident:
            raise NotFoundError('Referent has no identifying descriptor.')
        return self.resolve(ident)

    def status(self, ident):
        index_key, ident = self.cache_keys(ident)
        return self.tracker.status(ident, index_key)

    def _resolve(self, ident):
        index_key, key = self.cache_keys(ident)
        source_uri = unquote(ident)
        if not self.is_remote(source_uri):
            return self._cached_image(key, index_key)

        record = self.coordinator.cached_record(key)
        if record is None:
            record = self._cached_image(key, index_key)
        if record is None:
            record = self.coordinator.resolve_remote(key, source_uri)
        return record

    def _cached_image(self, ident, index_key):
        record = self.local_images.lookup(index_key)
        if record is not None:
            if record.exists():
                logger.debug('%s found in the local cache', ident)
                return record
            logger.warning('Indexed file for %s is gone: %s', ident, record.file_path)
        return self.persistent_cache.lookup(ident)
