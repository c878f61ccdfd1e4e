# constants.py
# -*- coding: utf-8 -*-

# Directory under the JP2 data dir that holds the pairtree store. The file
# system scan never descends into it.
PAIRTREE_ROOT = 'pairtree_root'

# Matches the source images picked up by the file system scan.
JP2_FILE_PATTERN = r'.*\.jp2$'

REMOTE_SCHEMES = ('http://', 'https://')

# Seconds a request waits on a conversion another request is running.
MAX_WAIT = 300

REMOTE_CACHE_SIZE = 1000

READY = 'READY'
PROCESSING = 'PROCESSING'
NOT_FOUND = 'NOT_FOUND'

STATUS_HTTP_CODES = {
    READY: 200,
    PROCESSING: 202,
    NOT_FOUND: 404,
}

__formats = (
    ('gif','image/gif'),
    ('jp2','image/jp2'),
    ('jpg','image/jpeg'),
    ('png','image/png'),
    ('tif','image/tiff'),
)

FORMATS_BY_EXTENSION = dict(__formats)

FORMATS_BY_MEDIA_TYPE = dict([(f[1],f[0]) for f in __formats])

#map 4-letter extensions to the 3-letter image format
EXTENSION_MAP = {
        'jpeg': 'jpg',
        'tiff': 'tif',
    }
