from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional, Tuple

from .analytics import QUERY_KEY as ANALYTICS_QUERY_KEY, sdk_analytics_signature
from .descriptor import AssetDescriptor
from .errors import ConfigurationError
from .normalize import (
    build_query_string,
    decode_source,
    implode_url,
    is_absolute_url,
    parse_query_string,
    smart_escape,
    starts_with_version,
)
from .schema import CloudConfig, SignatureAlgorithm, UrlConfig
from .tokens import AuthToken

PROTOCOL_HTTPS = "https"
SHORT_URL_SIGNATURE_LENGTH = 8
LONG_URL_SIGNATURE_LENGTH = 32
DEFAULT_FORCED_VERSION = "1"


@dataclass(frozen=True)
class UrlParts:
    """Accumulated pieces of a delivery URL, in output order."""

    distribution: str = ""
    signature: str = ""
    transformation: str = ""
    version: str = ""
    source: str = ""
    query: Dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return "/" + implode_url([self.signature, self.transformation, self.version, self.source])

    def to_url(self) -> str:
        query = build_query_string(self.query)
        return f"{self.distribution}{self.path}" + (f"?{query}" if query else "")


@dataclass
class DeliveryContext:
    """Everything a stage may read; stages never mutate it."""

    asset: AssetDescriptor
    cloud: CloudConfig
    url_config: UrlConfig
    auth_token: AuthToken
    transformation: str = ""
    slog: Optional[Callable[..., None]] = None

    def log(self, event: str, msg: Optional[str] = None, **fields) -> None:
        if self.slog:
            self.slog(event, msg, **fields)


# -----------------------------------------------------------------------------
# Path stages
# -----------------------------------------------------------------------------
def finalize_distribution(ctx: DeliveryContext) -> str:
    """https://<domain> when a domain is configured, else <cloud>.<shared_domain>."""
    if ctx.url_config.domain:
        host = ctx.url_config.domain
    else:
        host = f"{ctx.cloud.cloud_name}.{ctx.url_config.shared_domain}"
    ctx.log("distribution", host=host)
    return f"{PROTOCOL_HTTPS}://{host}"


def finalize_source(ctx: DeliveryContext) -> str:
    source = ctx.asset.public_id(omit_extension=True)
    if not is_absolute_url(source):
        source = decode_source(source)
    source = smart_escape(source)
    if ctx.asset.extension:
        source = f"{source}.{ctx.asset.extension}"
    return source


def finalize_version(ctx: DeliveryContext) -> str:
    version = ctx.asset.version
    public_id = ctx.asset.public_id()
    if (
        version in (None, "")
        and ctx.url_config.force_version
        and ctx.asset.location
        and not is_absolute_url(public_id)
        and not starts_with_version(public_id)
    ):
        version = DEFAULT_FORCED_VERSION
    return f"v{version}" if version not in (None, "") else ""


def signature_algorithm(ctx: DeliveryContext) -> SignatureAlgorithm:
    if ctx.url_config.long_url_signature:
        return SignatureAlgorithm.SHA256
    return ctx.cloud.algorithm


def sign(content: str, secret: str, algorithm: SignatureAlgorithm) -> str:
    """base64url(hash(content + secret)), padding kept."""
    raw = algorithm.new((content + secret).encode("utf-8")).digest()
    return base64.urlsafe_b64encode(raw).decode("ascii")


def format_simple_signature(signature: str, length: int) -> str:
    return f"s--{signature[:length]}--"


def finalize_simple_signature(ctx: DeliveryContext) -> str:
    """s--XXXXXXXX-- (or 32 chars); empty when unsigned or token-signed."""
    if not ctx.url_config.sign_url or ctx.auth_token.is_enabled():
        return ""
    if not ctx.cloud.api_secret:
        raise ConfigurationError("Must supply api_secret to sign delivery URLs")

    to_sign = implode_url([ctx.transformation, ctx.asset.public_id(omit_extension=True)])
    algorithm = signature_algorithm(ctx)
    length = LONG_URL_SIGNATURE_LENGTH if ctx.url_config.long_url_signature else SHORT_URL_SIGNATURE_LENGTH
    ctx.log("signature", algorithm=algorithm.value, length=length)
    return format_simple_signature(sign(to_sign, ctx.cloud.api_secret, algorithm), length)


# -----------------------------------------------------------------------------
# Query stages (order matters: token before analytics)
# -----------------------------------------------------------------------------
def finalize_with_auth_token(ctx: DeliveryContext, parts: UrlParts) -> UrlParts:
    if not ctx.url_config.sign_url or not ctx.auth_token.is_enabled():
        return parts
    token = ctx.auth_token.generate(parts.path)
    query = dict(parts.query)
    query.update({k: v for k, v in parse_query_string(token).items() if v})
    ctx.log("auth_token", path=parts.path)
    return replace(parts, query=query)


def finalize_with_analytics(ctx: DeliveryContext, parts: UrlParts) -> UrlParts:
    if not ctx.url_config.analytics:
        return parts
    # public ids carrying their own query string are left untouched
    if parts.query or "?" in ctx.asset.public_id():
        return parts
    query = dict(parts.query)
    query[ANALYTICS_QUERY_KEY] = sdk_analytics_signature()
    return replace(parts, query=query)


QUERY_STAGES: Tuple[Callable[[DeliveryContext, UrlParts], UrlParts], ...] = (
    finalize_with_auth_token,
    finalize_with_analytics,
)


def prepare_url_parts(ctx: DeliveryContext) -> UrlParts:
    return UrlParts(
        distribution=finalize_distribution(ctx),
        signature=finalize_simple_signature(ctx),
        transformation=ctx.transformation.strip("/"),
        version=finalize_version(ctx),
        source=finalize_source(ctx),
    )


def build_delivery_url(ctx: DeliveryContext) -> str:
    """
    https://<authority>/[s--sig--/][<transformation>/][v<version>/]<source>[?query]

    Fails with ConfigurationError before anything is built when the cloud
    name is missing.
    """
    ctx.cloud.validate_cloud()
    parts = prepare_url_parts(ctx)
    for stage in QUERY_STAGES:
        parts = stage(ctx, parts)
    return parts.to_url()
