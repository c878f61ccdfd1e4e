#!/usr/bin/env python
import os
import sys

from configobj import ConfigObj

from referent.webapp import default_config_file_path


WSGI_FILE_NAME = 'referent.wsgi'


def _get_default_config_content():
    with open(default_config_file_path(), 'rb') as f:
        return f.read().decode('utf8')


def _get_default_wsgi(config_file_path=None):
    content = '''#!/usr/bin/env python
from referent.webapp import create_app
application = create_app(config_file_path='%s')
''' % (config_file_path or default_config_file_path(),)
    return content


def _make_directories(config):
    referent_directories = [
        config['resolver']['jp2_data_dir'],
        config['resolver']['migrator']['tmp_dp'],
        config['logging']['log_dir'],
    ]
    for d in referent_directories:
        os.makedirs(d, exist_ok=True)


def display_default_config_file():
    print(_get_default_config_content())


def display_default_wsgi_file():
    print(_get_default_wsgi())


def create_default_files_and_directories(config=None, wsgi_dir=None):
    if not config:
        config = ConfigObj(default_config_file_path(), unrepr=True, interpolation=False)
    _make_directories(config)
    if wsgi_dir:
        os.makedirs(wsgi_dir, exist_ok=True)
        with open(os.path.join(wsgi_dir, WSGI_FILE_NAME), 'w') as f:
            f.write(_get_default_wsgi())


if __name__ == '__main__':
    commands = {
        'config': display_default_config_file,
        'wsgi': display_default_wsgi_file,
        'setup': create_default_files_and_directories,
    }
    if len(sys.argv) != 2 or sys.argv[1] not in commands:
        sys.stderr.write('usage: python -m referent.user_commands config|wsgi|setup\n')
        sys.exit(2)
    commands[sys.argv[1]]()
