import logging
import os

import pytest


@pytest.fixture
def reset_logger():
    """Reset the logger at the end of a test run."""
    yield
    logger = logging.getLogger()

    # Note: we wrap ``logger.handlers`` and ``logger.filters`` in calls to
    # ``list()`` because they change size mid-iteration, and we want to ensure
    # that we really do delete every handler and filter.
    for h in list(logger.handlers):
        logger.removeHandler(h)
    for f in list(logger.filters):
        logger.removeFilter(f)

    try:
        delattr(logger, 'handler_set')
    except AttributeError:
        pass

    assert len(logger.handlers) == 0
    assert len(logger.filters) == 0


@pytest.fixture
def jp2_data_dir(tmpdir):
    """A data directory holding ``image1.jp2`` and ``sub/image2.jp2``."""
    root = str(tmpdir.mkdir('jp2'))
    os.makedirs(os.path.join(root, 'sub'))
    for name in ('image1.jp2', os.path.join('sub', 'image2.jp2')):
        with open(os.path.join(root, name), 'wb') as f:
            f.write(b'jp2 bytes for %s' % name.encode('utf8'))
    return root


@pytest.fixture
def resolver_config(jp2_data_dir):
    return {
        'jp2_data_dir': jp2_data_dir,
        'ingest_sources': [r'^https?://example\.org/images/(.+)\.jpg$'],
        'migrator': {'impl': 'tests.fakes.FakeMigrator'},
    }
