# -*- encoding: utf-8 -*-
"""
`migrator` -- Fetch remote images and store them as JP2s
========================================================
"""
from contextlib import closing
from logging import getLogger
import os
from os.path import exists, getsize, join
import subprocess
import tempfile
from urllib.parse import urlsplit

from PIL import Image
import requests

from referent import constants
from referent.identifiers import PairtreeNamer
from referent.processing import ProcessingSet
from referent.referent_exception import ConfigError, MigratorException
from referent.utils import mkdir_p, safe_rename


logger = getLogger(__name__)


class _AbstractMigrator(object):
    """
    A migrator turns a remote image into a JP2 in the pairtree.

    The config dictionary MUST contain
     * `jp2_data_dir`, the directory the pairtree lives under.

    Which identifiers are being converted is tracked by the resolver's
    ProcessingSet; migrators answer ``is_processing()`` from that same set
    rather than keeping their own queue.
    """

    def __init__(self, config, processing=None):
        self.config = config
        if not self.config.get('jp2_data_dir'):
            message = 'Missing setting for jp2_data_dir.'
            logger.error(message)
            raise ConfigError(message)
        self.namer = PairtreeNamer(self.config['jp2_data_dir'])
        self.processing = processing if processing is not None else ProcessingSet()

    def is_processing(self, ident):
        return ident in self.processing

    def convert(self, ident, source_uri):
        """
        Fetch the image at ``source_uri`` and store it as a JP2 at the
        pairtree path for ``ident``.  Converting an identifier again is safe.

        Args:
            ident (str):
                The (decoded) identifier to store the image under.
            source_uri (str):
                Where to fetch the image from.
        Returns:
            str: The path of the JP2.
        Raises:
            MigratorException when something goes wrong...
        """
        cn = self.__class__.__name__
        raise NotImplementedError('convert() not implemented for %s' % (cn,))

    def target_path(self, ident):
        return self.namer.file_path(ident)


class HTTPMigrator(_AbstractMigrator):
    '''
    Downloads source images over HTTP(S) and converts anything that isn't
    already a JP2.

    The config dictionary MAY contain
     * `converter`, either `pillow` (the default) to convert with Pillow, or
       `command` to run `convert_cmd`.
     * `convert_cmd`, a command line with `%(input)s` and `%(output)s`
       placeholders, e.g. `kdu_compress -i %(input)s -o %(output)s -rate 0.5`.
     * `timeout`, seconds allowed for the download and for `convert_cmd`.
     * `tmp_dp`, where downloads are staged.
     * `user`, `pw`, `cert`, `key`, `ssl_check`, as for the HTTP request.
    '''
    JP2_MODES = ('L', 'LA', 'RGB', 'RGBA')

    def __init__(self, config, processing=None):
        super(HTTPMigrator, self).__init__(config, processing)

        self.converter = self.config.get('converter', 'pillow')
        self.convert_cmd = self.config.get('convert_cmd', None)
        self.timeout = self.config.get('timeout', 120)
        self.tmp_dp = self.config.get('tmp_dp', None)

        self.user = self.config.get('user', None)
        self.pw = self.config.get('pw', None)
        self.cert = self.config.get('cert', None)
        self.key = self.config.get('key', None)
        self.ssl_check = self.config.get('ssl_check', True)

        if self.converter not in ('pillow', 'command'):
            raise ConfigError(
                'migrator.converter=%r, expected one of pillow/command' % self.converter
            )
        if self.converter == 'command' and not self.convert_cmd:
            raise ConfigError('When converter=command, convert_cmd is required')

        if self.tmp_dp:
            mkdir_p(self.tmp_dp)

    def request_options(self):
        # parameters to pass to all requests
        options = {'timeout': self.timeout}
        if self.cert is not None and self.key is not None:
            options['cert'] = (self.cert, self.key)
        if self.user is not None and self.pw is not None:
            options['auth'] = (self.user, self.pw)
        options['verify'] = self.ssl_check
        return options

    def convert(self, ident, source_uri):
        target_fp = self.target_path(ident)
        if exists(target_fp) and getsize(target_fp) > 0:
            logger.info('Another process converted %s to %s', source_uri, target_fp)
            return target_fp

        mkdir_p(os.path.dirname(target_fp))

        with tempfile.TemporaryDirectory(dir=self.tmp_dp) as tmp:
            source_fp = self._download(source_uri, tmp)
            if source_fp.endswith('.jp2'):
                jp2_fp = source_fp
            else:
                jp2_fp = join(tmp, 'converted.jp2')
                self._to_jp2(source_fp, jp2_fp)
            safe_rename(jp2_fp, target_fp)

        logger.info('Stored %s as %s', source_uri, target_fp)
        return target_fp

    def source_extension(self, source_uri, response):
        content_type = response.headers.get('content-type', '')
        media_type = content_type.split(';')[0].strip().lower()
        if media_type in constants.FORMATS_BY_MEDIA_TYPE:
            return constants.FORMATS_BY_MEDIA_TYPE[media_type]
        if content_type:
            logger.warning('Unrecognised content-type %s for %s', content_type, source_uri)

        url_path = urlsplit(source_uri).path
        if url_path.rfind('.') != -1:
            extension = url_path.rsplit('.', 1)[-1].lower()
            if len(extension) < 5:
                return constants.EXTENSION_MAP.get(extension, extension)
        return 'img'

    def _download(self, source_uri, tmp):
        try:
            with closing(requests.get(source_uri, stream=True, **self.request_options())) as response:
                if not response.ok:
                    logger.warning(
                        'Source image not found at %s. Status code returned: %s.',
                        source_uri, response.status_code
                    )
                    raise MigratorException(
                        'Source image not found at %s. Status code returned: %s.'
                        % (source_uri, response.status_code)
                    )

                source_fp = join(tmp, 'source.' + self.source_extension(source_uri, response))
                with open(source_fp, 'wb') as f:
                    for chunk in response.iter_content(2048):
                        f.write(chunk)
        except requests.RequestException as err:
            raise MigratorException('Unable to fetch %s: %s' % (source_uri, err))

        logger.debug('Downloaded %s to %s', source_uri, source_fp)
        return source_fp

    def _to_jp2(self, source_fp, jp2_fp):
        if self.converter == 'command':
            self._to_jp2_with_command(source_fp, jp2_fp)
        else:
            self._to_jp2_with_pillow(source_fp, jp2_fp)

    def _to_jp2_with_pillow(self, source_fp, jp2_fp):
        try:
            with Image.open(source_fp) as im:
                if im.mode not in self.JP2_MODES:
                    im = im.convert('RGB')
                im.save(jp2_fp, 'JPEG2000')
        except (IOError, ValueError) as err:
            raise MigratorException('Pillow could not convert %s: %s' % (source_fp, err))

    def _to_jp2_with_command(self, source_fp, jp2_fp):
        paths = {'input': source_fp, 'output': jp2_fp}
        # Substitute per token so paths with spaces stay one argument
        cmd = [token % paths for token in self.convert_cmd.split()]
        logger.debug('Running %s', cmd)
        try:
            subprocess.run(
                cmd, check=True, timeout=self.timeout,
                stdout=subprocess.PIPE, stderr=subprocess.PIPE
            )
        except subprocess.CalledProcessError as e:
            msg = str(e)
            if e.stderr:
                msg = f'{msg}; stderr: {e.stderr.decode("utf8", errors="replace")}'
            raise MigratorException(msg)
        except (subprocess.TimeoutExpired, OSError) as e:
            raise MigratorException(str(e))
