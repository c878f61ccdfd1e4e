# -*- encoding: utf-8

from io import BytesIO
import os
import subprocess

import mock
from PIL import Image
import pytest
import requests
import responses

from referent.migrator import _AbstractMigrator, HTTPMigrator
from referent.processing import ProcessingSet
from referent.referent_exception import ConfigError, MigratorException


SOURCE_URI = 'http://sample.sample/images/0001'


def _png_bytes():
    buf = BytesIO()
    Image.new('RGB', (16, 16), color=(200, 30, 30)).save(buf, 'PNG')
    return buf.getvalue()


@pytest.fixture
def config(tmpdir):
    return {
        'jp2_data_dir': str(tmpdir.mkdir('jp2')),
        'tmp_dp': str(tmpdir.join('tmp')),
    }


class TestAbstractMigrator(object):

    def test_convert_is_notimplementederror(self, config):
        migrator = _AbstractMigrator(config)
        with pytest.raises(NotImplementedError):
            migrator.convert('0001', SOURCE_URI)

    def test_missing_jp2_data_dir_is_configerror(self):
        with pytest.raises(ConfigError):
            _AbstractMigrator({})

    def test_is_processing_reads_the_shared_set(self, config):
        processing = ProcessingSet()
        migrator = _AbstractMigrator(config, processing=processing)
        assert not migrator.is_processing('0001')
        processing.claim('0001')
        assert migrator.is_processing('0001')

    def test_target_path_is_in_the_pairtree(self, config):
        migrator = _AbstractMigrator(config)
        assert migrator.target_path('0001') == os.path.join(
            config['jp2_data_dir'], 'pairtree_root', '00', '01', '0001'
        )


class TestHTTPMigratorConfig(object):

    def test_unknown_converter_is_configerror(self, config):
        config['converter'] = 'magick'
        with pytest.raises(ConfigError) as err:
            HTTPMigrator(config)
        assert 'expected one of pillow/command' in str(err.value)

    def test_command_converter_needs_a_command(self, config):
        config['converter'] = 'command'
        with pytest.raises(ConfigError):
            HTTPMigrator(config)

    def test_creates_tmp_dir(self, config):
        HTTPMigrator(config)
        assert os.path.isdir(config['tmp_dp'])

    @pytest.mark.parametrize('extra, expected', [
        ({}, {'timeout': 120, 'verify': True}),
        ({'cert': '/home/cert.pem', 'key': '/home/key.pem'},
         {'timeout': 120, 'cert': ('/home/cert.pem', '/home/key.pem'), 'verify': True}),
        ({'user': 'referent', 'pw': 'l3mur'},
         {'timeout': 120, 'auth': ('referent', 'l3mur'), 'verify': True}),
        ({'user': 'referent'}, {'timeout': 120, 'verify': True}),
        ({'ssl_check': False, 'timeout': 5}, {'timeout': 5, 'verify': False}),
    ])
    def test_request_options(self, config, extra, expected):
        config.update(extra)
        assert HTTPMigrator(config).request_options() == expected


class TestHTTPMigrator(object):

    @responses.activate
    def test_jp2_is_stored_as_is(self, config):
        responses.add(responses.GET, SOURCE_URI, body=b'\x00\x00\x00\x0cjP  ', status=200,
                      content_type='image/jp2')
        migrator = HTTPMigrator(config)

        fp = migrator.convert('0001', SOURCE_URI)
        assert fp == migrator.target_path('0001')
        with open(fp, 'rb') as f:
            assert f.read() == b'\x00\x00\x00\x0cjP  '

    @responses.activate
    def test_other_formats_are_converted_with_pillow(self, config):
        responses.add(responses.GET, SOURCE_URI, body=_png_bytes(), status=200,
                      content_type='image/png')
        migrator = HTTPMigrator(config)

        fp = migrator.convert('0001', SOURCE_URI)
        with Image.open(fp) as im:
            assert im.format == 'JPEG2000'
            assert im.size == (16, 16)

    @responses.activate
    def test_unreadable_image_is_migratorexception(self, config):
        responses.add(responses.GET, SOURCE_URI, body=b'not an image', status=200,
                      content_type='image/png')
        with pytest.raises(MigratorException):
            HTTPMigrator(config).convert('0001', SOURCE_URI)

    @responses.activate
    def test_missing_source_is_migratorexception(self, config):
        responses.add(responses.GET, SOURCE_URI, status=404)
        with pytest.raises(MigratorException) as err:
            HTTPMigrator(config).convert('0001', SOURCE_URI)
        assert 'Status code returned: 404' in str(err.value)
        assert not os.path.exists(HTTPMigrator(config).target_path('0001'))

    @responses.activate
    def test_connection_error_is_migratorexception(self, config):
        responses.add(responses.GET, SOURCE_URI, body=requests.ConnectionError('refused'))
        with pytest.raises(MigratorException):
            HTTPMigrator(config).convert('0001', SOURCE_URI)

    @responses.activate
    def test_existing_image_is_not_fetched_again(self, config):
        migrator = HTTPMigrator(config)
        fp = migrator.target_path('0001')
        os.makedirs(os.path.dirname(fp))
        with open(fp, 'wb') as f:
            f.write(b'jp2')

        assert migrator.convert('0001', SOURCE_URI) == fp
        assert len(responses.calls) == 0

    @responses.activate
    def test_command_converter(self, config):
        responses.add(responses.GET, SOURCE_URI, body=b'tiff', status=200,
                      content_type='image/tiff')
        config['converter'] = 'command'
        config['convert_cmd'] = 'kdu_compress -i %(input)s -o %(output)s -rate 0.5'
        migrator = HTTPMigrator(config)

        def fake_run(cmd, **kwargs):
            with open(cmd[4], 'wb') as f:
                f.write(b'jp2 from kakadu')
            return subprocess.CompletedProcess(cmd, 0)

        with mock.patch('referent.migrator.subprocess.run', side_effect=fake_run) as run:
            fp = migrator.convert('0001', SOURCE_URI)

        cmd = run.call_args[0][0]
        assert cmd[0] == 'kdu_compress'
        assert cmd[2].endswith('source.tif')
        assert cmd[-2:] == ['-rate', '0.5']
        with open(fp, 'rb') as f:
            assert f.read() == b'jp2 from kakadu'

    @responses.activate
    def test_command_paths_with_spaces_stay_whole(self, config, tmpdir):
        responses.add(responses.GET, SOURCE_URI, body=b'tiff', status=200,
                      content_type='image/tiff')
        config['tmp_dp'] = str(tmpdir.join('tmp dir'))
        config['converter'] = 'command'
        config['convert_cmd'] = 'kdu_compress -i %(input)s -o %(output)s'
        migrator = HTTPMigrator(config)

        def fake_run(cmd, **kwargs):
            with open(cmd[4], 'wb') as f:
                f.write(b'jp2 from kakadu')
            return subprocess.CompletedProcess(cmd, 0)

        with mock.patch('referent.migrator.subprocess.run', side_effect=fake_run) as run:
            migrator.convert('0001', SOURCE_URI)

        cmd = run.call_args[0][0]
        assert len(cmd) == 5
        assert 'tmp dir' in cmd[2]
        assert cmd[2].endswith('source.tif')

    @responses.activate
    def test_failing_command_is_migratorexception(self, config):
        responses.add(responses.GET, SOURCE_URI, body=b'tiff', status=200,
                      content_type='image/tiff')
        config['converter'] = 'command'
        config['convert_cmd'] = 'kdu_compress -i %(input)s -o %(output)s'
        error = subprocess.CalledProcessError(1, 'kdu_compress', stderr=b'Kakadu Error: bad TIFF')

        with mock.patch('referent.migrator.subprocess.run', side_effect=error):
            with pytest.raises(MigratorException) as err:
                HTTPMigrator(config).convert('0001', SOURCE_URI)
        assert 'Kakadu Error: bad TIFF' in str(err.value)


class TestSourceExtension(object):

    @pytest.mark.parametrize('uri, content_type, expected', [
        ('http://sample.sample/0001', 'image/jp2', 'jp2'),
        ('http://sample.sample/0001', 'image/jpeg; charset=binary', 'jpg'),
        ('http://sample.sample/0001.TIFF', 'application/octet-stream', 'tif'),
        ('http://sample.sample/0001.png', None, 'png'),
        ('http://sample.sample/0001', None, 'img'),
    ])
    def test_source_extension(self, config, uri, content_type, expected):
        response = mock.Mock()
        response.headers = {'content-type': content_type} if content_type else {}
        assert HTTPMigrator(config).source_extension(uri, response) == expected
