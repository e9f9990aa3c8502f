from __future__ import annotations

import pytest

from cdn_delivery.shared.descriptor import (
    AssetDescriptor,
    decode_json,
    split_path_filename_extension,
)
from cdn_delivery.shared.errors import (
    ConfigParseError,
    InvalidArgumentError,
    UnexpectedValueError,
)


class TestSplitPublicId:
    @pytest.mark.parametrize(
        "public_id, expected",
        [
            ("sample", (None, "sample", None)),
            ("sample.png", (None, "sample", "png")),
            ("folder/sub/sample.png", ("folder/sub", "sample", "png")),
            ("archive.tar.gz", (None, "archive.tar", "gz")),
            ("folder/file.toolongext", ("folder", "file.toolongext", None)),
            ("", (None, "", None)),
            (None, (None, "", None)),
        ],
    )
    def test_split(self, public_id, expected):
        assert split_path_filename_extension(public_id) == expected

    def test_query_in_public_id_is_not_an_extension(self):
        assert split_path_filename_extension("sample.png?q=a") == (None, "sample.png?q=a", None)


class TestAssetDescriptor:
    @pytest.mark.parametrize(
        "public_id",
        ["sample", "sample.png", "folder/sample.jpeg", "a/b/c/d.webp", "my file.png", "doc.v1.2.3-release"],
    )
    def test_public_id_round_trip(self, public_id):
        assert AssetDescriptor(public_id).public_id() == public_id

    def test_long_extension_stays_in_filename(self):
        asset = AssetDescriptor("folder/file.toolongext")
        assert asset.filename == "file.toolongext"
        assert asset.extension is None

    def test_omit_extension(self):
        assert AssetDescriptor("folder/sample.png").public_id(omit_extension=True) == "folder/sample"

    def test_set_public_id_replaces_parts(self):
        asset = AssetDescriptor("folder/sample.png")
        asset.set_public_id("other")
        assert (asset.location, asset.filename, asset.extension) == (None, "other", None)

    def test_keyword_construction(self):
        asset = AssetDescriptor(version=123, location="f", filename="s", extension="jpg")
        assert asset.public_id() == "f/s.jpg"
        assert asset.version == 123

    @pytest.mark.parametrize("blank", ["", 0, None])
    def test_blank_version_is_none(self, blank):
        asset = AssetDescriptor("sample")
        asset.version = blank
        assert asset.version is None

    def test_set_asset_property(self):
        asset = AssetDescriptor("sample").set_asset_property("version", "1486020273")
        assert asset.version == "1486020273"

    def test_unknown_property_rejected(self):
        with pytest.raises(UnexpectedValueError):
            AssetDescriptor("sample").set_asset_property("bogus", 1)

    def test_invalid_property_value_rejected(self):
        with pytest.raises(UnexpectedValueError):
            AssetDescriptor("sample").set_asset_property("location", ["not", "a", "string"])

    def test_str_is_public_id(self):
        assert str(AssetDescriptor("folder/sample.png")) == "folder/sample.png"

    def test_copy_is_independent(self):
        asset = AssetDescriptor("folder/sample.png")
        clone = asset.copy_descriptor()
        clone.filename = "other"
        assert asset.filename == "sample"

    def test_from_string_not_implemented(self):
        with pytest.raises(NotImplementedError, match="Not Implemented"):
            AssetDescriptor.from_string("https://res.example.com/image/upload/sample.png")
        with pytest.raises(NotImplementedError):
            AssetDescriptor("sample").import_string("sample.png")


class TestDescriptorJson:
    def test_to_json_skips_empty(self):
        assert AssetDescriptor("sample.png").to_json() == {"asset": {"filename": "sample", "extension": "png"}}

    def test_to_json_with_empty_keys(self):
        assert AssetDescriptor("sample").to_json(include_empty_keys=True) == {
            "asset": {"version": None, "location": None, "filename": "sample", "extension": None}
        }

    def test_json_round_trip(self):
        asset = AssetDescriptor(version=5, location="folder", filename="sample", extension="png")
        restored = AssetDescriptor.from_json(asset.to_json())
        assert restored.model_dump() == asset.model_dump()

    def test_import_json_string(self):
        asset = AssetDescriptor.from_json('{"asset": {"location": "f", "filename": "s", "extension": "gif"}}')
        assert asset.public_id() == "f/s.gif"

    def test_missing_filename_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Invalid asset JSON"):
            AssetDescriptor.from_json({"asset": {"location": "f"}})

    def test_missing_asset_rejected(self):
        with pytest.raises(InvalidArgumentError):
            AssetDescriptor.from_json({"cloud": {}})

    def test_malformed_json(self):
        with pytest.raises(ConfigParseError, match="JsonException"):
            decode_json("{not json")

    def test_non_object_json(self):
        with pytest.raises(ConfigParseError):
            decode_json("[1, 2]")
