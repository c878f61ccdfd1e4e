import os
import threading
import time

from referent.migrator import _AbstractMigrator
from referent.utils import mkdir_p


class FakeMigrator(_AbstractMigrator):
    """
    Writes ``payload`` into the pairtree rather than fetching anything.

    Tests can make conversions slow (``delay``), block them until an Event
    is set (``gate``), or fail them (``error``).  Every call is recorded in
    ``calls``.
    """

    def __init__(self, config, processing=None):
        super(FakeMigrator, self).__init__(config, processing)
        self.payload = config.get('payload', b'not really a jp2')
        self.delay = config.get('delay', 0)
        self.gate = config.get('gate', None)
        self.error = config.get('error', None)
        self.calls = []
        self._lock = threading.Lock()

    def convert(self, ident, source_uri):
        with self._lock:
            self.calls.append((ident, source_uri))
        if self.gate is not None:
            self.gate.wait(10)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error

        fp = self.target_path(ident)
        mkdir_p(os.path.dirname(fp))
        with open(fp, 'wb') as f:
            f.write(self.payload)
        return fp


def wait_until(predicate, timeout=5):
    deadline = time.time() + timeout
    while not predicate():
        if time.time() > deadline:
            raise AssertionError('Timed out waiting for %r' % predicate)
        time.sleep(0.01)
