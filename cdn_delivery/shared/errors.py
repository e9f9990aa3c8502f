# cdn_delivery/shared/errors.py
from __future__ import annotations


class DeliveryError(Exception):
    """Base class for errors raised while building delivery URLs."""


class ConfigurationError(DeliveryError):
    """Missing cloud name, unknown configuration source or key, bad value."""


class ConfigParseError(DeliveryError, ValueError):
    """Malformed JSON or connection string."""


class InvalidArgumentError(DeliveryError, ValueError):
    pass


class UnexpectedValueError(DeliveryError, ValueError):
    pass
