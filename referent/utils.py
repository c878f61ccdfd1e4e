# -*- encoding: utf-8 -*-

import errno
import logging
import os
import shutil
import uuid

from referent.referent_exception import ConfigError


logger = logging.getLogger(__name__)


def mkdir_p(path):
    """Create a directory if it doesn't already exist."""
    try:
        os.makedirs(path)
    except OSError as err:
        if err.errno == errno.EEXIST:
            pass
        else:
            raise


def strip_ext(filename):
    """Drop the last extension from ``filename``, if it has one."""
    root, _ = os.path.splitext(filename)
    return root


def safe_rename(src, dst):
    """Rename a file from ``src`` to ``dst``.

    We use a custom version rather than the standard library because we
    have two requirements:

    *   Moves must be atomic.  Otherwise a request may pick up a partially
        converted image from the pairtree, and a zero-length or truncated
        JP2 looks like a cache hit.

    *   Moves must work across filesystems.  Often temp directories and the
        JP2 data directory live on different filesystems.  ``os.rename()``
        can throw errors if run across filesystems.

    So we try ``os.rename()``, but if we detect a cross-filesystem copy, we
    switch to ``shutil.copyfile()`` with some wrappers to make it atomic.
    """
    logger.debug('Renaming %r to %r', src, dst)
    try:
        os.rename(src, dst)
    except OSError as err:
        logger.debug('Calling os.rename(%r, %r) failed with %r', src, dst, err)

        if err.errno == errno.EXDEV:
            # Copy `<src>` next to the target as `<dst>.<ID>.tmp`, which may
            # not be atomic, then rename that onto `<dst>`, which is.  The
            # random ID keeps concurrent copies from overlapping.
            mole_id = uuid.uuid4()
            tmp_dst = shutil.copyfile(src, '%s.%s.tmp' % (dst, mole_id))

            os.rename(tmp_dst, dst)
            os.unlink(src)
        else:
            raise


def import_class(qname):
    '''Imports a class AND returns it (the class, not an instance).
    '''
    module_name = '.'.join(qname.split('.')[:-1])
    class_name = qname.split('.')[-1]
    try:
        module = __import__(module_name, fromlist=[class_name])
        klass = getattr(module, class_name)
    except (ImportError, AttributeError, ValueError) as err:
        raise ConfigError('Could not load %s: %s' % (qname, err))
    logger.debug('Imported %s', qname)
    return klass
