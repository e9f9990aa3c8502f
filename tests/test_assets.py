from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from cdn_delivery import Cloudinary, Configuration, File, Image, Media
from cdn_delivery.shared.errors import (
    ConfigParseError,
    ConfigurationError,
    InvalidArgumentError,
    UnexpectedValueError,
)

BASE = "https://test123.media.cloudinary.net"


class TestConstruction:
    def test_defaults_from_global(self):
        image = Image("sample.png")
        assert image.cloud.cloud_name == "test123"
        assert image.url_config.analytics is False

    def test_str_is_url(self):
        image = Image("folder/sample.png")
        assert str(image) == image.to_url() == f"{BASE}/v1/folder/sample.png"

    def test_configuration_does_not_leak_into_global(self):
        Image("sample.png").cloud_name("other").sign_url()
        assert Image("sample.png").to_url() == f"{BASE}/sample.png"

    def test_explicit_configuration(self):
        image = Image("sample.png", "cloudinary://k:s@demo?analytics=false")
        assert image.to_url() == "https://demo.media.cloudinary.net/sample.png"

    def test_configuration_reseeds(self):
        image = Image("sample.png").cloud_name("other")
        image.configuration({"cloud": {"cloud_name": "demo"}})
        assert image.cloud.cloud_name == "demo"
        assert image.url_config.analytics is False

    def test_import_configuration_merges(self):
        image = Image("sample.png").import_configuration(Configuration({"cloud_name": "demo"}))
        assert image.cloud.cloud_name == "demo"
        assert image.cloud.api_secret == "secret"


class TestCopy:
    def test_copy_constructor_is_deep(self):
        original = Image("folder/sample.png").set_transformation("c_scale,w_300").version(5)
        clone = Image(original)
        clone.cloud_name("other").location("elsewhere").set_transformation("e_sepia")
        clone.auth_token.config.key = "00ff"

        assert original.to_url() == f"{BASE}/c_scale,w_300/v5/folder/sample.png"
        assert original.auth_token.config.key is None
        assert clone.to_url() == "https://other.media.cloudinary.net/e_sepia/v5/elsewhere/sample.png"

    def test_copy_module(self):
        original = Image("sample.png")
        clone = copy.deepcopy(original)
        clone.cloud_name("other")
        assert original.cloud.cloud_name == "test123"
        assert type(clone) is Image

    def test_conversion_drops_transformation(self):
        image = Image("sample.png").set_transformation("c_scale,w_300")
        assert File(image).to_url() == f"{BASE}/sample.png"

    def test_conversion_keeps_transformation(self):
        image = Image("sample.png").set_transformation("c_scale,w_300")
        assert Media(image).to_url() == f"{BASE}/c_scale,w_300/sample.png"


class TestFluentSetters:
    def test_setters_return_asset(self):
        image = Image("sample.png")
        assert image.location("folder").filename("other").extension("jpg") is image
        assert image.get_public_id() == "folder/other.jpg"
        assert image.get_public_id(omit_extension=True) == "folder/other"

    def test_set_public_id(self):
        assert Image("sample.png").set_public_id("a/b.gif").to_url() == f"{BASE}/v1/a/b.gif"

    def test_unknown_config_key(self):
        with pytest.raises(ConfigurationError):
            Image("sample.png").set_url_config("sign_ulr", True)

    def test_bad_asset_property_is_logged(self, caplog):
        with caplog.at_level(logging.CRITICAL, logger="cdn_delivery"):
            with pytest.raises(UnexpectedValueError):
                Image("sample.png").set_asset_property("size", 10)
        record = caplog.records[-1]
        assert record.levelno == logging.CRITICAL
        assert record.property_name == "size"


class TestJson:
    def test_to_json(self):
        assert Image("sample.png").to_json() == {
            "asset": {"filename": "sample", "extension": "png"},
            "cloud": {"cloud_name": "test123", "api_key": "key"},
            "url": {"analytics": False},
        }

    def test_to_json_never_has_secret(self):
        doc = Image("sample.png").to_json(include_empty_keys=True)
        assert "api_secret" not in doc["cloud"]
        assert "auth_token" not in doc

    def test_round_trip(self):
        image = Image("folder/sample.png").version(7).domain("cdn.example.com")
        restored = Image.from_json(json.dumps(image.to_json()))
        assert restored.to_url() == image.to_url() == "https://cdn.example.com/v7/folder/sample.png"

    def test_import_json_restores_auth_token(self):
        image = Image("x").import_json(
            {
                "asset": {"version": 1486020273, "filename": "sample", "extension": "jpg"},
                "cloud": {"cloud_name": "test123"},
                "url": {"sign_url": True, "analytics": False},
                "auth_token": {"key": "00112233FF99", "start_time": 11111111, "duration": 300},
            }
        )
        assert image.to_url().endswith(
            "?__cld_token__=st=11111111~exp=11111411~"
            "hmac=f5913793fa99a520c5afa9d31c1e13f9975630d3666d30e4751312d86e6cf002"
        )

    def test_malformed_json_logged_and_raised(self, caplog):
        image = Image("sample.png")
        with caplog.at_level(logging.CRITICAL, logger="cdn_delivery"):
            with pytest.raises(ConfigParseError):
                image.import_json("{broken")
        record = caplog.records[-1]
        assert "Error importing JSON" in record.getMessage()
        assert record.json == "{broken"
        assert image.get_public_id() == "sample.png"

    def test_missing_filename(self, caplog):
        with caplog.at_level(logging.CRITICAL, logger="cdn_delivery"):
            with pytest.raises(InvalidArgumentError):
                Image.from_json({"asset": {}, "cloud": {"cloud_name": "demo"}})
        assert "Error importing JSON" in caplog.records[-1].getMessage()

    def test_import_log_hides_secret(self, caplog):
        with caplog.at_level(logging.CRITICAL, logger="cdn_delivery"):
            with pytest.raises(InvalidArgumentError):
                Image.from_json({"asset": {}, "cloud": {"cloud_name": "demo", "api_secret": "hush"}})
        record = caplog.records[-1]
        assert "hush" not in record.json
        assert '"api_secret": "***"' in record.json

    def test_from_string_not_implemented(self):
        with pytest.raises(NotImplementedError):
            Image.from_string(f"{BASE}/sample.png")
        with pytest.raises(NotImplementedError):
            Image("sample.png").import_string(f"{BASE}/sample.png")


class TestCloudinary:
    def test_factories(self):
        cld = Cloudinary("cloudinary://k:s@demo?analytics=false")
        assert cld.image("sample.png").to_url() == "https://demo.media.cloudinary.net/sample.png"
        assert isinstance(cld.media("sample.mp4"), Media)
        assert type(cld.raw("doc.pdf")) is File

    def test_defaults_to_environment(self):
        assert Cloudinary().image("sample.png").to_url() == f"{BASE}/sample.png"

    def test_invalid_configuration(self):
        with pytest.raises(ConfigurationError):
            Cloudinary({})

    def test_existing_asset_is_rebound(self):
        image = Image("sample.png")
        bound = Cloudinary("cloudinary://k:s@demo").image(image)
        assert bound is image
        assert bound.cloud.cloud_name == "demo"

    def test_assets_do_not_share_config(self):
        cld = Cloudinary("cloudinary://k:s@demo?analytics=false")
        first = cld.image("sample.png").cloud_name("other")
        assert cld.image("sample.png").cloud.cloud_name == "demo"
        assert first.cloud.cloud_name == "other"


class TestRepeatedDelivery:
    def test_to_url_does_not_reread_settings(self, tmp_path):
        (tmp_path / "local.settings.json").write_text(
            json.dumps({"Values": {"CDN_DELIVERY_LOG_LEVEL": "INFO"}})
        )
        Image("folder/sample.png").to_url()

        original = Path.read_text
        with patch.object(Path, "read_text", autospec=True, side_effect=original) as read_text:
            for _ in range(3):
                assert Image("folder/sample.png").to_url() == f"{BASE}/v1/folder/sample.png"
        assert read_text.call_count == 0

    def test_other_asset_leaves_logging_alone(self):
        debug = Image("x.png", {"logging": {"level": "DEBUG"}})
        debug.to_url()
        logger = debug._logger()

        Image("y.png").to_url()

        assert debug._logger() is logger
        assert logger.level == logging.DEBUG
        assert Image("y.png")._logger().level == logging.WARNING

    def test_log_files_stay_per_asset(self, tmp_path):
        first_path = tmp_path / "a.jsonl"
        second_path = tmp_path / "b.jsonl"
        first = Image("a.png", {"logging": {"level": "DEBUG", "file": str(first_path)}})
        second = Image("b.png", {"logging": {"level": "DEBUG", "file": str(second_path)}})

        first.to_url()
        second.to_url()
        first.to_url()

        def distributions(path):
            lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
            return [line for line in lines if line["event"] == "distribution"]

        assert len(distributions(first_path)) == 2
        assert len(distributions(second_path)) == 1
