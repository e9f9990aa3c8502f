import json
from functools import lru_cache
from pathlib import Path

#pydantic-settings
from pydantic import Field, ConfigDict
from pydantic_settings import BaseSettings

CLOUDINARY_URL_ENV_VAR = "CLOUDINARY_URL"
LOCAL_SETTINGS_FILE = "local.settings.json"


def _load_local_settings() -> dict:
    p = Path.cwd().resolve()
    for cand_dir in (p, *p.parents[:5]):
        cand = cand_dir / LOCAL_SETTINGS_FILE
        if cand.exists():
            try:
                data = json.loads(cand.read_text())
            except ValueError:
                return {}
            return data.get("Values", {}) or {}
    return {}


class EnvSettings(BaseSettings):
    model_config = ConfigDict(
        case_sensitive=True,
        env_file=None,  # disable .env
        extra="ignore",
    )

    CLOUDINARY_URL: str = Field(default="")
    CDN_DELIVERY_LOG_LEVEL: str = Field(default="")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Custom settings loader: init → env → local.settings.json"""
        return (
            init_settings,                      # values passed directly to EnvSettings()
            env_settings,                       # values from os.environ
            lambda _settings=None: _load_local_settings(),  # fallback to local.settings.json
        )


@lru_cache(maxsize=1)
def settings() -> EnvSettings:
    """Process settings, read once; reset_settings() forces a re-read."""
    return EnvSettings()


def reset_settings() -> None:
    settings.cache_clear()


def get(key: str, default=None):
    value = getattr(settings(), key, default)
    return value if value not in (None, "") else default


def connection_string_from_env() -> str:
    """Connection string from CLOUDINARY_URL, or "" when unset."""
    return get(CLOUDINARY_URL_ENV_VAR, "") or ""
