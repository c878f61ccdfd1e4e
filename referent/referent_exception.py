# -*- encoding: utf-8 -*-

class ReferentException(Exception):
    """Base exception class for all errors raised by Referent."""
    pass


class ConfigError(ReferentException):
    """Raised for errors in the user config."""
    pass


class ResolverException(ReferentException):
    """An identifier could not be resolved to an image file."""
    pass


class NotFoundError(ResolverException):
    pass


class ConversionError(ResolverException):
    pass


class ConversionTimeout(ResolverException):
    """Gave up waiting on a conversion another request started."""
    pass


class MigratorException(ReferentException):
    pass
