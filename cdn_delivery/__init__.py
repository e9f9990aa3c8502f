# cdn_delivery/__init__.py
from __future__ import annotations

__version__ = "0.1.0"

from .assets import BaseAsset, Cloudinary, File, Image, Media  # noqa: E402
from .shared.configuration import Configuration, instance, reset  # noqa: E402
from .shared.errors import (  # noqa: E402
    ConfigParseError,
    ConfigurationError,
    DeliveryError,
    InvalidArgumentError,
    UnexpectedValueError,
)
from .shared.tokens import AuthToken  # noqa: E402

__all__ = [
    "AuthToken",
    "BaseAsset",
    "Cloudinary",
    "ConfigParseError",
    "Configuration",
    "ConfigurationError",
    "DeliveryError",
    "File",
    "Image",
    "InvalidArgumentError",
    "Media",
    "UnexpectedValueError",
    "__version__",
    "instance",
    "reset",
]
