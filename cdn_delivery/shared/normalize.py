# shared/normalize.py
from __future__ import annotations
import json
import re
from typing import Any, Iterable, List, Optional, Union
from urllib.parse import unquote

# -------- escaping constants --------
# Characters that survive a delivery-URL source escape untouched.
SOURCE_SAFE_RE = re.compile(r"%[0-9A-Fa-f]{2}|([^A-Za-z0-9_.\-/:]+)")
# Characters escaped inside access-token ACL/URL material.
TOKEN_UNSAFE_RE = re.compile(r"([ \"#%&'/:;<=>?@\[\\\]^`{|}~]+)")
ABSOLUTE_URL_RE = re.compile(r"^https?:/", re.IGNORECASE)
VERSION_SEGMENT_RE = re.compile(r"^v\d+")
# Credentials that never reach a log record.
USERINFO_RE = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*://)[^@/?#\s'\"]*@")
SECRET_FIELD_RE = re.compile(r"""(["'](?:api_secret|key)["']\s*:\s*)(["'])(?:(?!\2).)*\2""")
SECRET_PARAM_RE = re.compile(r"([?&](?:api_secret|key)=)[^&#\s]*")

ACL_SEPARATOR = "!"


# -------- tiny helpers --------
def _percent_encode(chunk: str) -> str:
    return "".join(f"%{b:02X}" for b in chunk.encode("utf-8"))


def implode_filtered(glue: str, parts: Iterable[Any]) -> str:
    """Join the non-empty parts with glue (no naked separators)."""
    return glue.join(str(p) for p in parts if p not in (None, ""))


def implode_url(parts: Iterable[Any]) -> str:
    return implode_filtered("/", parts)


def is_absolute_url(value: Optional[str]) -> bool:
    return bool(value) and bool(ABSOLUTE_URL_RE.match(value))


def starts_with_version(value: Optional[str]) -> bool:
    return bool(value) and bool(VERSION_SEGMENT_RE.match(value))


# -------- public APIs --------
def smart_escape(source: str) -> str:
    """
    Percent-encode everything outside [A-Za-z0-9_.-/:].
    Existing %XX sequences are left alone, so escaping twice is a no-op.
    """
    def _repl(m: re.Match[str]) -> str:
        unsafe = m.group(1)
        return _percent_encode(unsafe) if unsafe else m.group(0)

    return SOURCE_SAFE_RE.sub(_repl, source)


def decode_source(source: str) -> str:
    """rawurldecode counterpart: '+' is kept literal."""
    return unquote(source)


def escape_to_lower(value: str) -> str:
    """
    Escape token material and lowercase the hex digits of every %XX
    sequence (the CDN compares the lowercase form).
    """
    escaped = TOKEN_UNSAFE_RE.sub(lambda m: _percent_encode(m.group(1)), value)
    return re.sub(r"%[0-9A-F]{2}", lambda m: m.group(0).lower(), escaped)


def parse_bool(value: Any) -> Any:
    """'true'/'false' (any case) → bool; everything else passes through."""
    if not isinstance(value, str):
        return value
    low = value.strip().lower()
    if low in ("true", "false"):
        return low == "true"
    return value


def parse_values(params: dict) -> dict:
    """Recursively coerce connection-string query values."""
    out = {}
    for k, v in params.items():
        if isinstance(v, dict):
            out[k] = parse_values(v)
        elif v == "[]":
            out[k] = []
        else:
            out[k] = parse_bool(v)
    return out


def normalize_acl(value: Union[str, Iterable[str], None]) -> Optional[List[str]]:
    """
    Accept a single pattern, a '!'-joined string or any iterable and
    return a list of non-empty patterns (None when nothing is left).
    """
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(ACL_SEPARATOR)
    else:
        items = [str(v) for v in value]
    out = [s.strip() for s in items if s and s.strip()]
    return out or None


def format_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ACL_SEPARATOR.join(str(v) for v in value)
    return str(value)


def parse_query_string(query: Optional[str]) -> dict:
    """
    Split 'a=1&b=2' into an ordered dict without decoding values; a
    token value such as 'st=1~exp=2~hmac=..' keeps its inner '='.
    """
    out: dict = {}
    if not query:
        return out
    for pair in query.split("&"):
        if not pair:
            continue
        key, sep, value = pair.partition("=")
        out[key] = value if sep else ""
    return out


def build_query_string(params: dict) -> str:
    return "&".join(f"{k}={v}" if v != "" else k for k, v in params.items() if k)


def redact_secrets(payload: Any) -> str:
    """
    Text form of a configuration payload for logging, with connection
    string userinfo and api_secret/key values (JSON fields or query
    parameters) masked as ***.
    """
    if isinstance(payload, bytes):
        text = payload.decode("utf-8", errors="replace")
    elif isinstance(payload, str):
        text = payload
    else:
        try:
            text = json.dumps(payload, default=str)
        except (TypeError, ValueError):
            text = repr(payload)
    text = USERINFO_RE.sub(r"\1***@", text)
    text = SECRET_PARAM_RE.sub(r"\1***", text)
    return SECRET_FIELD_RE.sub(r"\1\2***\2", text)
