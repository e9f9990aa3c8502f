from __future__ import annotations

import platform
from functools import lru_cache
from typing import Optional

QUERY_KEY = "_a"
ALGO_VERSION = "B"
SDK_CODE = "Y"
FEATURE_FLAG = "0"

CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
BITS_PER_CHAR = 6


def encode_version(version: str) -> str:
    """
    Pack 'major.minor[.patch]' into base64-alphabet characters.

    Parts are zero-padded to two digits and read in reverse order as one
    decimal number ('1.24.0' -> 002401), whose binary form is padded to
    6 bits per part and cut into 6-bit characters.
    """
    parts = [p for p in str(version).split(".") if p != ""]
    if not parts:
        raise ValueError(f"invalid version: {version!r}")
    number = int("".join(p.zfill(2) for p in reversed(parts)))
    width = len(parts) * BITS_PER_CHAR
    binary = format(number, f"0{width}b")
    if len(binary) > width:
        raise ValueError(f"version {version!r} does not fit in {width} bits")
    return "".join(
        CHARS[int(binary[i:i + BITS_PER_CHAR], 2)]
        for i in range(0, width, BITS_PER_CHAR)
    )


def tech_version() -> str:
    major, minor, _ = platform.python_version_tuple()
    return f"{major}.{minor}"


@lru_cache(maxsize=None)
def sdk_analytics_signature(sdk_version: Optional[str] = None, python_version: Optional[str] = None) -> str:
    """Value of the `_a` query parameter."""
    if sdk_version is None:
        from .. import __version__ as sdk_version
    return "".join(
        [
            ALGO_VERSION,
            SDK_CODE,
            encode_version(sdk_version),
            encode_version(python_version or tech_version()),
            FEATURE_FLAG,
        ]
    )
