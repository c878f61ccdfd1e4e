#!/usr/bin/env python
#-*- coding: utf-8 -*-
'''
webapp.py
=========
A thin WSGI front end over IdentifierResolver:

    GET /resolve?rft_id=<identifier>   the image file
    GET /status?rft_id=<identifier>    200 ready, 202 converting, 404 unknown
'''
from datetime import datetime, timezone
import os
from os import path
from urllib.parse import unquote, urlsplit

from configobj import ConfigObj
from werkzeug.http import http_date, parse_date
from werkzeug.wrappers import Request, Response

from referent import constants
from referent.log_config import configure_logging
from referent.referent_exception import (
    ConversionError,
    ConversionTimeout,
    NotFoundError,
)
from referent.resolver import IdentifierResolver


def _data_directory_path():
    return path.join(path.dirname(path.realpath(__file__)), 'data')


def default_config_file_path():
    return path.join(_data_directory_path(), 'referent.conf')


def get_debug_config():
    # read the default config, then log to the console and keep data in /tmp
    config = read_config(default_config_file_path())

    config['logging']['log_to'] = 'console'
    config['logging']['log_level'] = 'DEBUG'

    config['resolver']['jp2_data_dir'] = '/tmp/referent/jp2'
    config['resolver']['migrator']['tmp_dp'] = '/tmp/referent/tmp'

    return config


def create_app(debug=False, config_file_path=''):
    if debug:
        config = get_debug_config()
    else:
        config = read_config(config_file_path or default_config_file_path())

    return ReferentApp(config)


# Prompt strings are not meant for interpolation and are full of '$'
ENV_EXCLUDED = ('PS1', 'PS2')


def environment_defaults(environ=None):
    '''A copy of the environment, for ConfigObj's DEFAULT section.
    '''
    environ = os.environ if environ is None else environ
    return {key: val for (key, val) in environ.items() if key not in ENV_EXCLUDED}


def read_config(config_file_path):
    '''Parse referent.conf. Values may interpolate environment variables,
    e.g. ``jp2_data_dir = '${HOME}/jp2'``.
    '''
    config = ConfigObj(config_file_path, unrepr=True, interpolation='template')
    config['DEFAULT'] = environment_defaults()
    return config


class ReferentResponse(Response):
    def __init__(self, response=None, status=None, content_type=None):
        super(ReferentResponse, self).__init__(response=response, status=status, content_type=content_type)
        self.headers['Access-Control-Allow-Origin'] = '*'


class BadRequestResponse(ReferentResponse):
    def __init__(self, message=None):
        if message is None:
            message = "Invalid Request"
        status = 400
        message = 'Bad Request: %s (%d)' % (message, status)
        super(BadRequestResponse, self).__init__(message, status, 'text/plain')

class ForbiddenResponse(ReferentResponse):
    def __init__(self, message):
        status = 403
        message = 'Forbidden: %s (%d)' % (message, status)
        super(ForbiddenResponse, self).__init__(message, status, 'text/plain')

class NotFoundResponse(ReferentResponse):
    def __init__(self, message):
        status = 404
        message = 'Not Found: %s (%d)' % (message, status)
        super(NotFoundResponse, self).__init__(message, status, 'text/plain')

class ServerSideErrorResponse(ReferentResponse):
    def __init__(self, message):
        status = 500
        message = 'Server Side Error: %s (%d)' % (message, status)
        super(ServerSideErrorResponse, self).__init__(message, status, 'text/plain')

class ServiceUnavailableResponse(ReferentResponse):
    def __init__(self, message):
        status = 503
        message = 'Service Unavailable: %s (%d)' % (message, status)
        super(ServiceUnavailableResponse, self).__init__(message, status, 'text/plain')
        self.headers['Retry-After'] = '10'


class ReferentApp(object):

    def __init__(self, app_configs={}):
        '''The WSGI Application.
        Args:
            app_configs ({}):
                A dictionary of dictionaries that represents the
                referent.conf file.
        '''
        self.app_configs = app_configs
        self.logger = configure_logging(app_configs['logging'])
        self.logger.debug('Referent initialized with these settings:')
        [self.logger.debug('%s.%s=%s', key, sub_key, self.app_configs[key][sub_key])
            for key in self.app_configs if key != 'DEFAULT'
            for sub_key in self.app_configs[key]]

        _webapp_config = self.app_configs.get('webapp', {})
        self.allowed_hosts = _webapp_config.get('allowed_hosts', [])

        self.resolver = IdentifierResolver(self.app_configs['resolver'])

    def wsgi_app(self, environ, start_response):
        request = Request(environ)
        response = self.route(request)
        return response(environ, start_response)

    def __call__(self, environ, start_response):
        return self.wsgi_app(environ, start_response)

    def route(self, request):
        if request.path not in ('/', '/resolve', '/status'):
            return NotFoundResponse('no such resource %s' % (request.path,))

        ident = request.args.get('rft_id')
        if not ident:
            return BadRequestResponse()

        if not self.is_allowed(ident):
            self.logger.info('Refused %s: host not allowed', ident)
            return ForbiddenResponse('%s is not an allowed source' % (ident,))

        try:
            if request.path == '/status':
                return self.get_status(ident)
            return self.get_image(request, ident)
        except Exception as e:
            self.logger.error('Error handling %s: %s', ident, e, exc_info=True)
            return ServerSideErrorResponse(str(e))

    def is_allowed(self, ident):
        if not self.allowed_hosts:
            return True
        url = unquote(ident)
        if not url.startswith(('http', 'ftp')):
            return True
        return urlsplit(url).hostname in self.allowed_hosts

    def get_status(self, ident):
        status = self.resolver.status(ident)
        code = constants.STATUS_HTTP_CODES[status]
        self.logger.debug('Status for %s: %s (%d)', ident, status, code)
        return ReferentResponse('%s (%d)' % (status, code), code, 'text/plain')

    def get_image(self, request, ident):
        try:
            record = self.resolver.resolve(ident)
        except NotFoundError:
            self.logger.debug('RFT_ID (%s) not found', ident)
            return NotFoundResponse('%s not found' % (ident,))
        except ConversionTimeout as ct:
            return ServiceUnavailableResponse(str(ct))
        except ConversionError as ce:
            return ServerSideErrorResponse(str(ce))

        fp = record.file_path
        last_mod = parse_date(http_date(path.getmtime(fp)))
        ims = parse_date(request.headers.get('If-Modified-Since'))

        r = ReferentResponse()
        if ims and ims >= last_mod:
            self.logger.debug('Sent 304 for %s ', fp)
            r.status_code = 304
            return r

        extension = path.splitext(fp)[1][1:].lower()
        extension = constants.EXTENSION_MAP.get(extension, extension)
        # Images in the pairtree are stored without an extension
        r.content_type = constants.FORMATS_BY_EXTENSION.get(extension, 'image/jp2')
        r.status_code = 200
        r.last_modified = datetime.fromtimestamp(path.getmtime(fp), tz=timezone.utc)
        r.headers['Content-Length'] = path.getsize(fp)
        r.response = open(fp, 'rb')
        return r


if __name__ == '__main__':
    from werkzeug.serving import run_simple

    app = create_app(debug=True)

    run_simple('localhost', 5004, app, use_debugger=True, use_reloader=True, threaded=True)
