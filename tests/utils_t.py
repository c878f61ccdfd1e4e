# -*- encoding: utf-8

import errno
import os

import mock
import pytest

from referent import utils
from referent.referent_exception import ConfigError


class TestMkdirP:

    def test_creates_directory(self, tmpdir):
        path = str(tmpdir.join('test_creates_directory'))
        assert not os.path.exists(path)

        # If we create the directory, it springs into being
        utils.mkdir_p(path)
        assert os.path.exists(path)

        # If we try to create the directory a second time, we don't throw
        # an exception just because it already exists.
        utils.mkdir_p(path)

    def test_if_error_is_unexpected_then_is_raised(self, tmpdir):
        """
        If the error from ``os.makedirs()`` isn't because the directory
        already exists, we get an error.
        """
        path = str(tmpdir.join('test_if_error_is_unexpected_then_is_raised'))

        message = "Exception thrown in utils_t.py for TestMkdirP"

        m = mock.Mock(side_effect=OSError(-1, message))
        with mock.patch('referent.utils.os.makedirs', m):
            with pytest.raises(OSError):
                utils.mkdir_p(path)


class TestSafeRename:

    def test_renames_file(self, tmpdir):
        src = tmpdir.join('src.jp2')
        src.write_binary(b'jp2')
        dst = str(tmpdir.join('dst.jp2'))

        utils.safe_rename(str(src), dst)
        assert not src.exists()
        assert open(dst, 'rb').read() == b'jp2'

    def test_copies_across_filesystems(self, tmpdir):
        src = tmpdir.join('src.jp2')
        src.write_binary(b'jp2')
        dst = str(tmpdir.join('dst.jp2'))

        real_rename = os.rename
        calls = []

        def rename(a, b):
            calls.append((a, b))
            if len(calls) == 1:
                raise OSError(errno.EXDEV, 'Invalid cross-device link')
            return real_rename(a, b)

        with mock.patch('referent.utils.os.rename', side_effect=rename):
            utils.safe_rename(str(src), dst)

        assert len(calls) == 2
        assert not src.exists()
        assert open(dst, 'rb').read() == b'jp2'

    def test_other_errors_are_raised(self, tmpdir):
        with pytest.raises(OSError):
            utils.safe_rename(str(tmpdir.join('missing')), str(tmpdir.join('dst')))


@pytest.mark.parametrize('filename, expected', [
    ('image1.jp2', 'image1'),
    ('ms.1.jp2', 'ms.1'),
    ('image1', 'image1'),
])
def test_strip_ext(filename, expected):
    assert utils.strip_ext(filename) == expected


class TestImportClass:

    def test_imports_class(self):
        from referent.migrator import HTTPMigrator
        assert utils.import_class('referent.migrator.HTTPMigrator') is HTTPMigrator

    @pytest.mark.parametrize('qname', [
        'referent.migrator.NoSuchMigrator',
        'referent.no_such_module.HTTPMigrator',
        'HTTPMigrator',
    ])
    def test_bad_name_is_configerror(self, qname):
        with pytest.raises(ConfigError):
            utils.import_class(qname)
