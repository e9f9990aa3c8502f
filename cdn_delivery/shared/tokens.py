# shared/tokens.py
from __future__ import annotations

import binascii
import hashlib
import hmac
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ConfigurationError, UnexpectedValueError
from .normalize import ACL_SEPARATOR, escape_to_lower
from .schema import AuthTokenConfig

TOKEN_SEPARATOR = "~"
TOKEN_INNER_SEPARATOR = "="


def _now_ts() -> int:
    return int(time.time())


def digest(message: str, key: str) -> str:
    """HMAC-SHA256 of message keyed with the hex-decoded key, lowercase hex."""
    try:
        bin_key = binascii.unhexlify(key)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError("auth_token.key must be a hex-encoded string") from e
    return hmac.new(bin_key, message.encode("utf-8"), hashlib.sha256).hexdigest()


class AuthToken:
    """
    Time-boxed, HMAC-signed capability token scoped to a path or ACL.

    Output: <name>=[ip=<ip>~]st=<start>~exp=<exp>[~acl=<acl>]~hmac=<hex>
    """

    def __init__(self, config: Union[AuthTokenConfig, Dict[str, Any], None] = None):
        if isinstance(config, AuthTokenConfig):
            self.config = config.copy_section()
        else:
            self.config = AuthTokenConfig().import_json(config)

    @classmethod
    def from_json(cls, json_data: Optional[Dict[str, Any]]) -> "AuthToken":
        return cls(AuthTokenConfig.from_json(json_data))

    def is_enabled(self) -> bool:
        return bool(self.config.key)

    def lifetime(self) -> Tuple[int, int]:
        """(start, expiration); expiration wins over start + duration."""
        start = self.config.start_time if self.config.start_time is not None else _now_ts()
        if self.config.expiration is not None:
            return start, int(self.config.expiration)
        return start, start + int(self.config.duration)

    def signable_parts(self, path: Optional[str] = None) -> Tuple[List[str], List[str]]:
        """
        (token_parts, to_sign). The path only enters to_sign, and only
        when no ACL scopes the token.
        """
        acl = self.config.acl
        if not path and not acl:
            raise UnexpectedValueError("AuthToken must contain either acl or url property")

        start, expiration = self.lifetime()
        token_parts: List[str] = []
        if self.config.ip:
            token_parts.append(f"ip={self.config.ip}")
        token_parts.append(f"st={start}")
        token_parts.append(f"exp={expiration}")
        if acl:
            token_parts.append(f"acl={escape_to_lower(ACL_SEPARATOR.join(acl))}")

        to_sign = list(token_parts)
        if path and not acl:
            to_sign.append(f"url={escape_to_lower(path)}")
        return token_parts, to_sign

    def generate(self, path: Optional[str] = None) -> Optional[str]:
        """
        Token for `path` (or the configured ACL), None when no key is set.
        An unscoped request fails even without a key.
        """
        token_parts, to_sign = self.signable_parts(path)
        if not self.is_enabled():
            return None
        auth = digest(TOKEN_SEPARATOR.join(to_sign), self.config.key)
        token_parts.append(f"hmac={auth}")
        return f"{self.config.name}{TOKEN_INNER_SEPARATOR}{TOKEN_SEPARATOR.join(token_parts)}"

    def to_json(self, include_sensitive: bool = True, include_empty_keys: bool = False) -> Dict[str, Any]:
        return self.config.to_json(include_sensitive, include_empty_keys)

    def __deepcopy__(self, memo) -> "AuthToken":
        return AuthToken(self.config)
