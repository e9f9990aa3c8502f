# shared/configuration.py
from __future__ import annotations

import copy
import threading
from typing import Any, Dict, Iterator, Optional, Union
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

from .config import connection_string_from_env, reset_settings
from .descriptor import decode_json
from .errors import ConfigParseError, ConfigurationError
from .logger import get_logger, make_slogger
from .normalize import format_query_value, parse_values, redact_secrets
from .schema import (
    AuthTokenConfig,
    CloudConfig,
    ConfigSection,
    LoggingConfig,
    UrlConfig,
    section_for_key,
)

CONNECTION_SCHEME = "cloudinary"
CONFIG_VERSION = 1

SECTION_CLASSES = {
    CloudConfig.CONFIG_NAME: CloudConfig,
    UrlConfig.CONFIG_NAME: UrlConfig,
    AuthTokenConfig.CONFIG_NAME: AuthTokenConfig,
    LoggingConfig.CONFIG_NAME: LoggingConfig,
}
CREDENTIAL_KEYS = ("cloud_name", "api_key", "api_secret")

ConfigSource = Union["Configuration", str, bytes, Dict[str, Any], None]


# ---------------------------------------------------------------------------
# Source normalization: every accepted shape becomes canonical nested JSON
# ---------------------------------------------------------------------------
def is_connection_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith(f"{CONNECTION_SCHEME}://")


def canonicalize(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Accept nested ({"cloud": {...}}) and flat ({"cloud_name": ...}) keys;
    return {section_name: body} for the sections that were mentioned.
    """
    out: Dict[str, Dict[str, Any]] = {}
    for key, value in data.items():
        if key == "version":
            continue
        if key in SECTION_CLASSES:
            if value is None:
                out.setdefault(key, {})
                continue
            if not isinstance(value, dict):
                raise ConfigurationError(f"section '{key}' must be an object")
            out.setdefault(key, {}).update(value)
            continue
        section_cls = section_for_key(key)
        if section_cls is None:
            raise ConfigurationError(f"unknown configuration key '{key}'")
        out.setdefault(section_cls.CONFIG_NAME, {})[key] = value
    return out


def parse_connection_string(value: str) -> Dict[str, Dict[str, Any]]:
    """
    cloudinary://<api_key>:<api_secret>@<cloud_name>[?key=value&...]
    """
    parts = urlsplit(value.strip())
    if parts.scheme.lower() != CONNECTION_SCHEME:
        raise ConfigParseError(f"not a {CONNECTION_SCHEME}:// connection string")
    creds, _, host = parts.netloc.rpartition("@")
    if not host:
        raise ConfigParseError("connection string is missing the cloud name")
    api_key, _, api_secret = creds.partition(":")

    query = parse_values(dict(parse_qsl(parts.query, keep_blank_values=True)))
    canonical = canonicalize(query)
    cloud = {"cloud_name": unquote(host)}
    if api_key:
        cloud["api_key"] = unquote(api_key)
    if api_secret:
        cloud["api_secret"] = unquote(api_secret)
    cloud.update(canonical.get(CloudConfig.CONFIG_NAME, {}))
    canonical[CloudConfig.CONFIG_NAME] = cloud
    return canonical


def normalize_source(source: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    if isinstance(source, dict):
        return canonicalize(source)
    if isinstance(source, bytes):
        source = source.decode("utf-8")
    if isinstance(source, str):
        if is_connection_string(source):
            return parse_connection_string(source)
        if source.strip().startswith("{"):
            return canonicalize(decode_json(source))
    raise ConfigurationError("Invalid configuration, please set up your environment")


# ---------------------------------------------------------------------------
# Configuration store
# ---------------------------------------------------------------------------
class Configuration:
    """
    Cloud, URL, access-token and logging sections plus import/serialize.

    Sources: None (CLOUDINARY_URL), a connection string, a JSON string or
    dict (nested or flat keys), or another Configuration.
    """

    def __init__(self, config: ConfigSource = None, include_sensitive: bool = True):
        self.init(config, include_sensitive)

    def init(self, config: ConfigSource = None, include_sensitive: bool = True) -> "Configuration":
        """Reset every section, then import `config`."""
        self.include_sensitive = include_sensitive
        self.cloud = CloudConfig()
        self.url = UrlConfig()
        self.auth_token = AuthTokenConfig()
        self.logging = LoggingConfig()
        return self.import_config(config)

    def sections(self) -> Iterator[ConfigSection]:
        for name in SECTION_CLASSES:
            yield getattr(self, name)

    # ---- import -----------------------------------------------------------
    def import_config(self, config: ConfigSource = None) -> "Configuration":
        if config is None:
            config = connection_string_from_env()
            if not config:
                return self
        if isinstance(config, Configuration):
            return self.import_configuration(config)
        try:
            canonical = normalize_source(config)
        except ConfigParseError as e:
            _, slog_exc = make_slogger(get_logger("configuration", self.logging))
            slog_exc("import", e, msg="Error importing configuration", payload=redact_secrets(config))
            raise
        return self._import_canonical(canonical)

    def import_json(self, json_data: Union[str, bytes, Dict[str, Any]]) -> "Configuration":
        if isinstance(json_data, (str, bytes)):
            json_data = decode_json(json_data)
        return self._import_canonical(canonicalize(json_data))

    def import_connection_string(self, value: str) -> "Configuration":
        return self._import_canonical(parse_connection_string(value))

    def import_configuration(self, other: "Configuration") -> "Configuration":
        """Key-by-key merge of every key `other` has explicitly set."""
        for name in SECTION_CLASSES:
            merge_section(getattr(self, name), getattr(other, name))
        return self

    def _import_canonical(self, canonical: Dict[str, Dict[str, Any]]) -> "Configuration":
        for name, body in canonical.items():
            getattr(self, name).import_json(body)
        return self

    @classmethod
    def from_json(cls, json_data: Union[str, bytes, Dict[str, Any]]) -> "Configuration":
        return cls({}).import_json(json_data)

    @classmethod
    def from_connection_string(cls, value: str) -> "Configuration":
        return cls({}).import_connection_string(value)

    # ---- validation -------------------------------------------------------
    def validate(self) -> None:
        self.cloud.validate_cloud()

    # ---- serialization ----------------------------------------------------
    def to_json(
        self,
        include_sensitive: Optional[bool] = None,
        include_empty_keys: bool = False,
        include_empty_sections: bool = False,
    ) -> Dict[str, Any]:
        if include_sensitive is None:
            include_sensitive = self.include_sensitive
        json_data: Dict[str, Any] = {"version": CONFIG_VERSION}
        for section in self.sections():
            part = section.to_json(include_sensitive, include_empty_keys)
            if not include_empty_sections and not part[section.CONFIG_NAME]:
                continue
            json_data.update(part)
        return json_data

    def to_connection_string(self) -> str:
        cloud = self.cloud
        userinfo = quote(cloud.api_key or "", safe="")
        if cloud.api_secret:
            userinfo = f"{userinfo}:{quote(cloud.api_secret, safe='')}"
        authority = f"{userinfo}@{cloud.cloud_name or ''}" if userinfo else (cloud.cloud_name or "")

        pairs = []
        for section in self.sections():
            body = section.to_json(self.include_sensitive)[section.CONFIG_NAME]
            for key, value in body.items():
                if key in CREDENTIAL_KEYS:
                    continue
                pairs.append((key, format_query_value(value)))
        query = urlencode(pairs, safe="/*!:,")
        return f"{CONNECTION_SCHEME}://{authority}" + (f"?{query}" if query else "")

    def __str__(self) -> str:
        return self.to_connection_string()

    def __repr__(self) -> str:
        return f"Configuration({self.to_json(include_sensitive=False)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return all(
            getattr(self, name).model_dump() == getattr(other, name).model_dump()
            for name in SECTION_CLASSES
        )

    # ---- copies -----------------------------------------------------------
    def copy(self) -> "Configuration":
        new = Configuration.__new__(Configuration)
        new.include_sensitive = self.include_sensitive
        for name in SECTION_CLASSES:
            setattr(new, name, getattr(self, name).copy_section())
        return new

    def __deepcopy__(self, memo) -> "Configuration":
        return self.copy()


def merge_section(target: ConfigSection, source: ConfigSection) -> ConfigSection:
    for key in source.model_fields_set:
        target.set_config(key, copy.deepcopy(getattr(source, key)))
    return target


# ---------------------------------------------------------------------------
# Process-wide default
# ---------------------------------------------------------------------------
_instance: Optional[Configuration] = None
_instance_lock = threading.Lock()


def instance(config: ConfigSource = None) -> Configuration:
    """
    The global default configuration, built on first use from `config`
    (or CLOUDINARY_URL). Later calls ignore `config`.
    """
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = Configuration(config)
        return _instance


def reset() -> None:
    """Drop the global default and cached settings; the next instance() call rebuilds both."""
    global _instance
    with _instance_lock:
        _instance = None
        reset_settings()


def effective_configuration(source: ConfigSource = None) -> Configuration:
    """
    Configuration owned by one asset: a deep copy of the global default in
    which every section named by `source` is replaced wholesale.
    """
    if isinstance(source, Configuration):
        return source.copy()
    base = instance().copy()
    if source is None:
        return base
    try:
        canonical = normalize_source(source)
    except ConfigParseError as e:
        _, slog_exc = make_slogger(get_logger("configuration", base.logging))
        slog_exc("import", e, msg="Error importing configuration", payload=redact_secrets(source))
        raise
    for name, body in canonical.items():
        setattr(base, name, SECTION_CLASSES[name]().import_json(body))
    return base
