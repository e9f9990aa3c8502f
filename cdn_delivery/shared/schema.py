from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .normalize import normalize_acl

DEFAULT_SHARED_DOMAIN = "media.cloudinary.net"
DEFAULT_TOKEN_NAME = "__cld_token__"
DEFAULT_TOKEN_DURATION = 3600


class SignatureAlgorithm(str, Enum):
    SHA1 = "sha1"
    SHA256 = "sha256"

    @classmethod
    def resolve(cls, value: Any) -> "SignatureAlgorithm":
        """Case-insensitive lookup; anything unrecognized becomes SHA1."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        return cls.SHA1

    def new(self, data: bytes = b""):
        return hashlib.new(self.value, data)


class ConfigSection(BaseModel):
    """
    Common behaviour of the configuration sections.

    Keys form a closed set (extra="forbid"); assignment is validated so a
    typo such as `url.sign_ulr = True` fails instead of creating a field.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    CONFIG_NAME: ClassVar[str] = ""
    SENSITIVE_KEYS: ClassVar[FrozenSet[str]] = frozenset()

    @classmethod
    def from_json(cls, json_data: Optional[Dict[str, Any]]) -> "ConfigSection":
        """Build from a document holding this section under CONFIG_NAME."""
        section = cls()
        section.import_json((json_data or {}).get(cls.CONFIG_NAME))
        return section

    def import_json(self, body: Optional[Dict[str, Any]]) -> "ConfigSection":
        """Set every key of the section body, one validated key at a time."""
        if body is None:
            return self
        if not isinstance(body, dict):
            raise ConfigurationError(f"section '{self.CONFIG_NAME}' must be an object")
        for key, value in body.items():
            self.set_config(key, value)
        return self

    def set_config(self, key: str, value: Any) -> "ConfigSection":
        if key not in type(self).model_fields:
            raise ConfigurationError(
                f"unknown {self.CONFIG_NAME} configuration key '{key}'"
            )
        try:
            setattr(self, key, value)
        except ValidationError as e:
            raise ConfigurationError(
                f"invalid value for {self.CONFIG_NAME}.{key}: {value!r}"
            ) from e
        return self

    def to_json(self, include_sensitive: bool = True, include_empty_keys: bool = False) -> Dict[str, Any]:
        """
        {CONFIG_NAME: {...}}. Without include_empty_keys only keys that were
        explicitly set to a non-empty value are kept.
        """
        exclude = None if include_sensitive else set(self.SENSITIVE_KEYS)
        if include_empty_keys:
            body = self.model_dump(mode="json", exclude=exclude)
        else:
            body = self.model_dump(mode="json", exclude=exclude, exclude_unset=True, exclude_none=True)
            body = {k: v for k, v in body.items() if v not in ("", [])}
        return {self.CONFIG_NAME: body}

    def copy_section(self) -> "ConfigSection":
        return self.model_copy(deep=True)


class CloudConfig(ConfigSection):
    CONFIG_NAME: ClassVar[str] = "cloud"
    SENSITIVE_KEYS: ClassVar[FrozenSet[str]] = frozenset({"api_secret"})

    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    signature_algorithm: str = Field(default=SignatureAlgorithm.SHA1.value)
    private_cdn: bool = False

    @field_validator("cloud_name", "api_key", "api_secret", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def validate_cloud(self) -> None:
        if not self.cloud_name:
            raise ConfigurationError("Invalid configuration, please set up your environment")

    @property
    def algorithm(self) -> SignatureAlgorithm:
        return SignatureAlgorithm.resolve(self.signature_algorithm)


class UrlConfig(ConfigSection):
    CONFIG_NAME: ClassVar[str] = "url"

    domain: Optional[str] = None
    shared_domain: str = DEFAULT_SHARED_DOMAIN
    sign_url: bool = False
    long_url_signature: bool = False
    force_version: bool = True
    analytics: bool = True

    @field_validator("sign_url", "long_url_signature", "force_version", "analytics", mode="before")
    @classmethod
    def _none_is_false(cls, v: Any) -> Any:
        # sign_url(None) disables signing, mirroring an explicit False
        return False if v is None else v


class AuthTokenConfig(ConfigSection):
    CONFIG_NAME: ClassVar[str] = "auth_token"
    SENSITIVE_KEYS: ClassVar[FrozenSet[str]] = frozenset({"key"})

    key: Optional[str] = None
    name: str = DEFAULT_TOKEN_NAME
    start_time: Optional[int] = None
    duration: int = DEFAULT_TOKEN_DURATION
    expiration: Optional[int] = None
    acl: Optional[List[str]] = None
    ip: Optional[str] = None

    @field_validator("acl", mode="before")
    @classmethod
    def _normalize_acl(cls, v: Union[str, List[str], None]) -> Optional[List[str]]:
        return normalize_acl(v)


class LoggingConfig(ConfigSection):
    CONFIG_NAME: ClassVar[str] = "logging"

    level: Optional[str] = None
    file: Optional[str] = None
    console: Optional[bool] = None

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


SECTIONS = (CloudConfig, UrlConfig, AuthTokenConfig, LoggingConfig)


def section_for_key(key: str):
    """Route a flat configuration key to the one section that declares it."""
    for section_cls in SECTIONS:
        if key in section_cls.model_fields:
            return section_cls
    return None
