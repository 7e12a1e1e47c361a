import importlib
import logging
import os
from types import ModuleType

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_settings_module() -> str:
    # APP_ENV chọn module cấu hình, mặc định là development
    env = os.getenv("APP_ENV", "development").lower()
    if env in {"prod", "production"}:
        return "config.production"
    if env in {"test", "testing"}:
        return "config.testing"
    return "config.development"


def load_settings(*, configure_logging: bool = True) -> ModuleType:
    """Read .env, import the settings module for APP_ENV and set up root logging from LOG_LEVEL."""
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    if configure_logging:
        logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"), format=LOG_FORMAT)
    return settings
