# log_config.py
#-*-coding:utf-8-*-
'''
Sets up the root logger from the ``[logging]`` section of referent.conf.

Conversions can run for minutes on a request thread, so everything goes
through the root logger and each line names the module that wrote it.
'''
import logging
from logging.handlers import RotatingFileHandler
import os
import sys

from referent.referent_exception import ConfigError


LOG_FILE = 'referent.log'

REQUIRED_SETTINGS = ('log_to', 'log_level', 'format')
FILE_SETTINGS = ('log_dir', 'max_size', 'max_backups')


class LevelRangeFilter(logging.Filter):
    '''Passes records whose level is within [low, high].
    '''
    def __init__(self, low=logging.NOTSET, high=logging.CRITICAL):
        super(LevelRangeFilter, self).__init__()
        self.low = low
        self.high = high

    def filter(self, record):
        return self.low <= record.levelno <= self.high


def _check_settings(config, keys, context):
    missing = [key for key in keys if key not in config]
    if missing:
        raise ConfigError('%s: missing %s' % (context, ', '.join(missing)))


def _file_handlers(config):
    fp = os.path.join(config['log_dir'], config.get('log_file', LOG_FILE))
    # opened on the first record
    return [RotatingFileHandler(
        fp,
        maxBytes=config['max_size'],
        backupCount=config['max_backups'],
        delay=True
    )]


def _console_handlers(config):
    # Warnings and errors to stderr, everything quieter to stdout
    err_handler = logging.StreamHandler(sys.__stderr__)
    err_handler.addFilter(LevelRangeFilter(low=logging.WARNING))
    out_handler = logging.StreamHandler(sys.__stdout__)
    out_handler.addFilter(LevelRangeFilter(high=logging.INFO))
    return [err_handler, out_handler]


HANDLER_FACTORIES = {
    'file': _file_handlers,
    'console': _console_handlers,
}


def log_level(config):
    '''The numeric level for ``log_level``, case-insensitively; DEBUG if
    the name isn't one logging knows.
    '''
    level = logging.getLevelName(str(config['log_level']).upper())
    return level if isinstance(level, int) else logging.DEBUG


def configure_logging(config):
    '''Configure the root logger.

    Safe to call once per app; handlers are only installed the first time,
    later calls just update the level.
    '''
    _check_settings(config, REQUIRED_SETTINGS, 'logging')
    if config['log_to'] not in HANDLER_FACTORIES:
        raise ConfigError('logging.log_to=%r, expected one of %s' % (
            config['log_to'], '/'.join(sorted(HANDLER_FACTORIES))))
    if config['log_to'] == 'file':
        _check_settings(config, FILE_SETTINGS, 'logging with log_to=file')

    logger = logging.getLogger()
    logger.setLevel(log_level(config))

    if not getattr(logger, 'handler_set', None):
        formatter = logging.Formatter(fmt=config['format'])
        for handler in HANDLER_FACTORIES[config['log_to']](config):
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.handler_set = True
    return logger
