"""
Delivery assets: a public id plus the configuration needed to turn it
into a signed CDN URL.

    Image("folder/sample.png").sign_url().to_url()
    # https://<cloud>.media.cloudinary.net/s--XXXXXXXX--/v1/folder/sample.png
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional, Union

from .shared.configuration import (
    ConfigSource,
    Configuration,
    effective_configuration,
    merge_section,
)
from .shared.descriptor import AssetDescriptor, decode_json
from .shared.errors import DeliveryError, UnexpectedValueError
from .shared.logger import get_logger, make_slogger
from .shared.normalize import implode_url, redact_secrets
from .shared.schema import CloudConfig, LoggingConfig, UrlConfig
from .shared.tokens import AuthToken
from .shared.urls import DeliveryContext, build_delivery_url

AssetSource = Union["BaseAsset", AssetDescriptor, str, None]


class BaseAsset:
    """A deliverable file: descriptor + cloud/url/logging config + token."""

    def __init__(self, source: AssetSource, configuration: ConfigSource = None):
        if isinstance(source, BaseAsset):
            self.deep_copy(source)
            return

        if isinstance(source, AssetDescriptor):
            self.asset = source.copy_descriptor()
        else:
            self.asset = AssetDescriptor(source or "")

        self.configuration(configuration)

    def deep_copy(self, other: "BaseAsset") -> "BaseAsset":
        self.asset = other.asset.copy_descriptor()
        self.cloud = other.cloud.copy_section()
        self.url_config = other.url_config.copy_section()
        self.logging = other.logging.copy_section()
        self.auth_token = AuthToken(other.auth_token.config)
        return self

    def __copy__(self) -> "BaseAsset":
        return type(self)(self)

    def __deepcopy__(self, memo) -> "BaseAsset":
        return type(self)(self)

    # ---- configuration ----------------------------------------------------
    def configuration(self, configuration: ConfigSource = None) -> "BaseAsset":
        """
        Re-seed from the global default; sections present in `configuration`
        replace the default ones wholesale.
        """
        effective = effective_configuration(configuration)
        self.cloud = effective.cloud
        self.url_config = effective.url
        self.logging = effective.logging
        self.auth_token = AuthToken(effective.auth_token)
        return self

    def import_configuration(self, configuration: Configuration) -> "BaseAsset":
        """Key-by-key merge of cloud/url/logging from `configuration`."""
        merge_section(self.cloud, configuration.cloud)
        merge_section(self.url_config, configuration.url)
        merge_section(self.logging, configuration.logging)
        return self

    def _logger(self) -> logging.Logger:
        return get_logger("asset", self.logging)

    def _slogger(self):
        return make_slogger(
            self._logger(),
            ctx={"asset_type": type(self).__name__, "cloud": self.cloud.cloud_name},
        )

    # ---- descriptor -------------------------------------------------------
    def get_public_id(self, omit_extension: bool = False) -> str:
        return self.asset.public_id(omit_extension)

    def set_public_id(self, public_id: str) -> "BaseAsset":
        self.asset.set_public_id(public_id)
        return self

    def set_asset_property(self, name: str, value: Any) -> "BaseAsset":
        try:
            self.asset.set_asset_property(name, value)
        except UnexpectedValueError as e:
            _, slog_exc = self._slogger()
            slog_exc("asset_property", e, property_name=name, property_value=repr(value))
            raise
        return self

    def version(self, version: Union[int, str, None]) -> "BaseAsset":
        return self.set_asset_property("version", version)

    def location(self, location: Optional[str]) -> "BaseAsset":
        return self.set_asset_property("location", location)

    def filename(self, filename: Optional[str]) -> "BaseAsset":
        return self.set_asset_property("filename", filename)

    def extension(self, extension: Optional[str]) -> "BaseAsset":
        return self.set_asset_property("extension", extension)

    # ---- fluent cloud/url config -----------------------------------------
    def set_cloud_config(self, key: str, value: Any) -> "BaseAsset":
        self.cloud.set_config(key, value)
        return self

    def set_url_config(self, key: str, value: Any) -> "BaseAsset":
        self.url_config.set_config(key, value)
        return self

    def cloud_name(self, cloud_name: str) -> "BaseAsset":
        return self.set_cloud_config("cloud_name", cloud_name)

    def api_key(self, api_key: str) -> "BaseAsset":
        return self.set_cloud_config("api_key", api_key)

    def api_secret(self, api_secret: str) -> "BaseAsset":
        return self.set_cloud_config("api_secret", api_secret)

    def signature_algorithm(self, algorithm: str) -> "BaseAsset":
        return self.set_cloud_config("signature_algorithm", algorithm)

    def domain(self, domain: Optional[str]) -> "BaseAsset":
        return self.set_url_config("domain", domain)

    def shared_domain(self, shared_domain: str) -> "BaseAsset":
        return self.set_url_config("shared_domain", shared_domain)

    def sign_url(self, sign_url: Optional[bool] = True) -> "BaseAsset":
        return self.set_url_config("sign_url", sign_url)

    def long_url_signature(self, long_url_signature: bool = True) -> "BaseAsset":
        return self.set_url_config("long_url_signature", long_url_signature)

    def force_version(self, force_version: bool = True) -> "BaseAsset":
        return self.set_url_config("force_version", force_version)

    def analytics(self, analytics: bool = True) -> "BaseAsset":
        return self.set_url_config("analytics", analytics)

    # ---- URL --------------------------------------------------------------
    def finalize_transformation(self, with_transformation: Any = None, append: bool = True) -> str:
        return ""

    def to_url(self, with_transformation: Any = None, append: bool = True) -> str:
        slog, _ = self._slogger()
        ctx = DeliveryContext(
            asset=self.asset,
            cloud=self.cloud,
            url_config=self.url_config,
            auth_token=self.auth_token,
            transformation=self.finalize_transformation(with_transformation, append).strip("/"),
            slog=slog,
        )
        return build_delivery_url(ctx)

    def __str__(self) -> str:
        return self.to_url()

    # ---- (de)serialization -----------------------------------------------
    @classmethod
    def from_string(cls, string: str) -> "BaseAsset":
        raise NotImplementedError("Not Implemented")

    def import_string(self, string: str) -> "BaseAsset":
        raise NotImplementedError("Not Implemented")

    @classmethod
    def from_json(cls, payload: Union[str, bytes, Dict[str, Any]]) -> "BaseAsset":
        return cls("").import_json(payload)

    def import_json(self, payload: Union[str, bytes, Dict[str, Any]]) -> "BaseAsset":
        """
        Restore cloud, url, asset, access token and logging from JSON.
        Failures are logged at CRITICAL and re-raised; nothing is applied.
        """
        try:
            data = decode_json(payload)
            cloud = CloudConfig.from_json(data)
            url_config = UrlConfig.from_json(data)
            asset = AssetDescriptor.from_json(data)
            auth_token = AuthToken.from_json(data)
            logging_config = LoggingConfig.from_json(data)
        except (DeliveryError, ValueError) as e:
            _, slog_exc = self._slogger()
            slog_exc("import_json", e, msg="Error importing JSON", json=redact_secrets(payload))
            raise

        self.cloud = cloud
        self.url_config = url_config
        self.asset = asset
        self.auth_token = auth_token
        self.logging = logging_config
        return self

    def to_json(self, include_empty_keys: bool = False, include_empty_sections: bool = False) -> Dict[str, Any]:
        json_data = self.asset.to_json(include_empty_keys)
        for section in (self.cloud, self.url_config):
            part = section.to_json(False, include_empty_keys)
            if not include_empty_sections and not part[section.CONFIG_NAME]:
                continue
            json_data.update(part)
        return json_data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.get_public_id()!r})"


class File(BaseAsset):
    """Raw file: no transformation segment."""


class Media(BaseAsset):
    """
    Asset that carries a transformation. The transformation is opaque:
    any string, or any object whose str() is the path segment.
    """

    def __init__(self, source: AssetSource, configuration: ConfigSource = None):
        self.transformation: Any = None
        super().__init__(source, configuration)

    def deep_copy(self, other: BaseAsset) -> "Media":
        super().deep_copy(other)
        self.transformation = copy.deepcopy(getattr(other, "transformation", None))
        return self

    def set_transformation(self, transformation: Any) -> "Media":
        self.transformation = transformation
        return self

    def add_transformation(self, transformation: Any) -> "Media":
        if self.transformation is None:
            self.transformation = transformation
        else:
            self.transformation = implode_url([str(self.transformation), str(transformation)])
        return self

    def finalize_transformation(self, with_transformation: Any = None, append: bool = True) -> str:
        """
        The asset's transformation, with `with_transformation` appended
        (or substituted when append=False) for this one call.
        """
        if with_transformation is None:
            return str(self.transformation) if self.transformation is not None else ""
        if not append or self.transformation is None:
            return str(with_transformation)
        return implode_url([str(self.transformation), str(with_transformation)])


class Image(Media):
    pass


class Cloudinary:
    """Validated configuration plus factories for assets bound to it."""

    def __init__(self, config: ConfigSource = None):
        self.configuration = Configuration(config)
        self.configuration.validate()

    def image(self, public_id: AssetSource) -> Image:
        return self._create_with_configuration(public_id, Image)

    def media(self, public_id: AssetSource) -> Media:
        return self._create_with_configuration(public_id, Media)

    def raw(self, public_id: AssetSource) -> File:
        return self._create_with_configuration(public_id, File)

    def _create_with_configuration(self, public_id: AssetSource, asset_cls):
        if isinstance(public_id, asset_cls):
            instance = public_id
        else:
            instance = asset_cls(public_id, self.configuration)
        # an existing asset keeps its own keys unless this configuration sets them
        instance.import_configuration(self.configuration)
        return instance


__all__ = [
    "BaseAsset",
    "Cloudinary",
    "File",
    "Image",
    "Media",
]
