"""
Nara Configuration - TOML-based settings for the plugin system.

Example usage:
    from nara.config import load_settings

    settings = load_settings(Path("config/nara.toml"))
    print(settings.plugins_dir)
"""

from nara.config.schema import ConfigField, SchemaError, ValidationError
from nara.config.settings import (
    DEFAULT_CONFIG_FILE,
    PLUGIN_SETTINGS_SCHEMA,
    PluginSettings,
    load_settings,
    write_default_settings,
)
from nara.config.toml_handler import TOMLError

__all__ = [
    "ConfigField",
    "DEFAULT_CONFIG_FILE",
    "PLUGIN_SETTINGS_SCHEMA",
    "PluginSettings",
    "SchemaError",
    "TOMLError",
    "ValidationError",
    "load_settings",
    "write_default_settings",
]
