from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigParseError, InvalidArgumentError, UnexpectedValueError
from .normalize import implode_filtered

MAX_FILE_EXTENSION_LEN = 5


def split_path_filename_extension(full_path: Optional[str]) -> Tuple[Optional[str], str, Optional[str]]:
    """
    Split 'folder/sub/name.ext' into ('folder/sub', 'name', 'ext').

    An "extension" longer than MAX_FILE_EXTENSION_LEN characters is treated
    as part of the filename: 'v1.2.3-release' keeps its dots,
    'sample.png?q=a' stays whole.
    """
    if not full_path:
        return None, "", None

    location, _, basename = full_path.rpartition("/")
    stem, dot, extension = basename.rpartition(".")
    if not dot:
        stem, extension = basename, ""

    if len(extension) > MAX_FILE_EXTENSION_LEN:
        return location or None, basename, None
    return location or None, stem, extension or None


def decode_json(payload: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(payload, dict):
        return payload
    try:
        decoded = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ConfigParseError(f"JsonException : {e}") from e
    if not isinstance(decoded, dict):
        raise ConfigParseError("JsonException : expected a JSON object")
    return decoded


class AssetDescriptor(BaseModel):
    """
    version/location/filename/extension of one asset.

    `public_id` is derived: location/filename[.extension]. Property
    assignment is validated against this closed set of fields.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    version: Optional[Union[int, str]] = None
    location: Optional[str] = None
    filename: Optional[str] = None
    extension: Optional[str] = None

    def __init__(self, public_id: Optional[str] = None, /, **data: Any):
        if public_id is not None and not data:
            location, filename, extension = split_path_filename_extension(public_id)
            data = {"location": location, "filename": filename, "extension": extension}
        super().__init__(**data)

    @field_validator("version", mode="before")
    @classmethod
    def _blank_version(cls, v: Any) -> Any:
        return None if v in ("", 0) else v

    # ---- public id ---------------------------------------------------------
    def set_public_id(self, public_id: Optional[str]) -> "AssetDescriptor":
        self.location, self.filename, self.extension = split_path_filename_extension(public_id)
        return self

    def public_id(self, omit_extension: bool = False) -> str:
        return implode_filtered(
            ".",
            [
                implode_filtered("/", [self.location, self.filename]),
                None if omit_extension else self.extension,
            ],
        )

    def set_asset_property(self, name: str, value: Any) -> "AssetDescriptor":
        if name not in type(self).model_fields:
            raise UnexpectedValueError(f"Unknown asset property '{name}'")
        try:
            setattr(self, name, value)
        except ValidationError as e:
            raise UnexpectedValueError(f"Invalid value for asset property '{name}': {value!r}") from e
        return self

    # ---- (de)serialization -------------------------------------------------
    @classmethod
    def from_string(cls, string: str) -> "AssetDescriptor":
        raise NotImplementedError("Not Implemented")

    def import_string(self, string: str) -> "AssetDescriptor":
        raise NotImplementedError("Not Implemented")

    @classmethod
    def from_json(cls, payload: Union[str, bytes, Dict[str, Any]]) -> "AssetDescriptor":
        return cls("").import_json(payload)

    def import_json(self, payload: Union[str, bytes, Dict[str, Any]]) -> "AssetDescriptor":
        data = decode_json(payload)
        asset = data.get("asset")
        if not isinstance(asset, dict) or "filename" not in asset:
            raise InvalidArgumentError("Invalid asset JSON")
        try:
            for key in ("version", "location", "filename", "extension"):
                setattr(self, key, asset.get(key))
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid asset JSON: {e}") from e
        return self

    def to_json(self, include_empty_keys: bool = False) -> Dict[str, Any]:
        body = {
            "version": self.version,
            "location": self.location,
            "filename": self.filename,
            "extension": self.extension,
        }
        if not include_empty_keys:
            body = {k: v for k, v in body.items() if v not in (None, "")}
        return {"asset": body}

    def __str__(self) -> str:
        return self.public_id()

    def copy_descriptor(self) -> "AssetDescriptor":
        return self.model_copy(deep=True)
