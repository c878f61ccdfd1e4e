# -*- encoding: utf-8

from os import path

import attr


def _non_empty(instance, attribute, value):
    if not value:
        raise ValueError('%s must be a non-empty string' % attribute.name)


@attr.s(slots=True, frozen=True)
class ImageRecord(object):
    """A resolved image: the identifier it was requested under, the file on
    local disk that holds it and, for converted remote images, where it
    came from.
    """
    identifier = attr.ib(validator=[attr.validators.instance_of(str), _non_empty])
    file_path = attr.ib(default=None)
    source_uri = attr.ib(default=None)

    def exists(self):
        return self.file_path is not None and path.isfile(self.file_path)


@attr.s(slots=True)
class Referent(object):
    """A structured referent descriptor, as handed over by a front end that
    understands some richer request format.  The first descriptor names the
    image.
    """
    descriptors = attr.ib(default=attr.Factory(list))

    @property
    def identifier(self):
        if not self.descriptors:
            return None
        return str(self.descriptors[0])
