"""
Plugin System Settings.

Declares the [plugins] table of the host settings file and loads it into a
PluginSettings object.

Example config/nara.toml:

    [plugins]
    plugins_dir = "./plugins"
    registry_type = "npm"
    timeout = 10.0
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from nara.config.schema import ConfigField, ValidationError, merge_with_defaults
from nara.config.toml_handler import generate_toml_from_schema, read_toml, write_toml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("config/nara.toml")
SECTION = "plugins"

PLUGIN_SETTINGS_SCHEMA: dict[str, ConfigField] = {
    "plugins_dir": ConfigField(str, "./plugins", "Plugin store directory", min=1),
    "registry_type": ConfigField(
        str, "npm", "Remote registry type", choices=["npm", "custom"]
    ),
    "registry_url": ConfigField(str, "", "Registry base URL (empty for the type default)"),
    "timeout": ConfigField(float, 10.0, "Network timeout in seconds", min=0.1),
    "scope": ConfigField(str, "@nara-plugin", "Package scope of plugin packages", min=2),
    "status_file": ConfigField(
        str, ".plugin-status.json", "Installation status file, relative to plugins_dir", min=1
    ),
}


@dataclass
class PluginSettings:
    """Validated [plugins] settings."""

    plugins_dir: str = "./plugins"
    registry_type: str = "npm"
    registry_url: str = ""
    timeout: float = 10.0
    scope: str = "@nara-plugin"
    status_file: str = ".plugin-status.json"

    @property
    def plugins_path(self) -> Path:
        return Path(self.plugins_dir).expanduser()

    @property
    def status_path(self) -> Path:
        return self.plugins_path / self.status_file


def load_settings(config_file: Path | None = None) -> PluginSettings:
    """
    Load plugin settings from a TOML file.

    A missing file or missing [plugins] table yields the defaults.

    Raises:
        TOMLError: If the file cannot be parsed
        ValidationError: If the [plugins] table is invalid
    """
    config_file = config_file or DEFAULT_CONFIG_FILE
    if not config_file.exists():
        logger.debug(f"Settings file {config_file} not found, using defaults")
        return PluginSettings()

    table = read_toml(config_file).get(SECTION, {})
    if not isinstance(table, dict):
        raise ValidationError(f"[{SECTION}] in {config_file} must be a table")

    return PluginSettings(**merge_with_defaults(table, PLUGIN_SETTINGS_SCHEMA))


def write_default_settings(config_file: Path, settings: PluginSettings | None = None) -> None:
    """Write a commented [plugins] table to config_file."""
    values = asdict(settings) if settings else None
    write_toml(config_file, generate_toml_from_schema(SECTION, PLUGIN_SETTINGS_SCHEMA, values))
    logger.info(f"Wrote plugin settings to {config_file}")
