import os
from dataclasses import asdict, dataclass, fields
from typing import Dict, Mapping, Optional

ENV_PREFIX = "SCHOLARFLOW_"


@dataclass
class BaseConfig:
    DEBUG: bool = False
    TESTING: bool = False
    SECRET_KEY: str = "change-me"
    LOG_LEVEL: str = "INFO"
    # None keeps whatever path storage.sqlite.database already points at
    SQLITE_PATH: Optional[str] = "storage/sqlite/scholarflow.db"
    STORAGE_NAMESPACE: str = "stellaris_vault_v1"
    STORAGE_CAPACITY_BYTES: int = 5 * 1024 * 1024
    MAX_MANUSCRIPT_BYTES: int = 10 * 1024 * 1024
    SAVE_MAX_ATTEMPTS: int = 3
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_ANALYSIS_MODEL: str = "gemini-2.5-pro"
    CORS_ORIGINS: str = "http://localhost:5173"


@dataclass
class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"


@dataclass
class TestingConfig(BaseConfig):
    TESTING: bool = True
    SQLITE_PATH: Optional[str] = None


CONFIG_MAP = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": BaseConfig
}


def _coerce(raw: str, current: object) -> object:
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    return raw


def load_config(name: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, object]:
    """Config class defaults for ``name``, overridden by ``SCHOLARFLOW_<KEY>`` environment variables."""
    environ = os.environ if environ is None else environ
    config_class = CONFIG_MAP.get(name, BaseConfig)
    config = asdict(config_class())
    for item in fields(config_class):
        raw = environ.get(f"{ENV_PREFIX}{item.name}")
        if raw is not None:
            config[item.name] = _coerce(raw, config[item.name])
    return config
