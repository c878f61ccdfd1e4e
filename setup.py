#!/usr/bin/env python
# -*- coding: utf-8 -*-

from setuptools import setup
import os

import referent


VERSION = referent.__version__


def local_file(name):
    return os.path.relpath(os.path.join(os.path.dirname(__file__), name))


def _read(fname):
    with open(local_file(fname)) as f:
        return f.read()


# We use requirements.txt so we can provide a deterministic set of packages
# to be installed, not the latest version that happens to be available.
install_requires = _read('requirements.txt').split()
tests_require = _read('requirements_test.txt').split()


setup(
    name='Referent',
    description=('Resolves image identifiers to local JP2 files, converting '
                 'remote images on demand'),
    long_description=_read('README.md'),
    long_description_content_type='text/markdown',
    license='Simplified BSD',
    version=VERSION,
    packages=['referent'],
    package_data={'referent': ['data/*.conf']},
    python_requires='>=3.7',
    install_requires=install_requires,
    extras_require={'test': tests_require},
)
