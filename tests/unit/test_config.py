"""
Tests for Configuration System.

This test suite covers:
1. Schema field validation (type mismatch, constraint violation)
2. Merging partial tables over defaults
3. TOML generation from schema (with comments)
4. Loading plugin settings from files
"""

import tempfile
import tomllib
from pathlib import Path

import pytest

from nara.config import (
    PLUGIN_SETTINGS_SCHEMA,
    ConfigField,
    PluginSettings,
    SchemaError,
    TOMLError,
    ValidationError,
    load_settings,
    write_default_settings,
)
from nara.config.schema import merge_with_defaults
from nara.config.toml_handler import generate_toml_from_schema, read_toml, write_toml


class TestSchemaValidation:
    """Test schema field validation."""

    def test_field_default_type_mismatch(self):
        """ConfigField should reject a default that doesn't match its type."""
        with pytest.raises(SchemaError, match="does not match type"):
            ConfigField(int, "not an int", "Bad default")

    def test_field_min_max_constraints(self):
        """Numbers outside min/max should fail validation."""
        field = ConfigField(float, 10.0, "Timeout", min=0.1, max=60.0)

        field.validate(0.1)
        field.validate(60.0)

        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate(0.0)
        with pytest.raises(ValidationError, match="greater than maximum"):
            field.validate(61.0)

    def test_field_string_length(self):
        """String min/max should constrain length."""
        field = ConfigField(str, "./plugins", "Directory", min=1)

        field.validate("x")
        with pytest.raises(ValidationError, match="less than minimum"):
            field.validate("")

    def test_field_choices(self):
        """Values outside choices should fail validation."""
        field = ConfigField(str, "npm", "Registry type", choices=["npm", "custom"])

        field.validate("custom")
        with pytest.raises(ValidationError, match="not in allowed choices"):
            field.validate("pypi")

    def test_field_default_must_be_in_choices(self):
        """A default outside choices should be rejected."""
        with pytest.raises(SchemaError, match="not in choices"):
            ConfigField(str, "pypi", "Registry type", choices=["npm", "custom"])

    def test_bool_is_not_a_number(self):
        """Booleans should not pass as numbers."""
        with pytest.raises(ValidationError, match="Expected type"):
            ConfigField(int, 1).validate(True)

    def test_float_accepts_int(self):
        """Integer TOML values should be accepted for float fields."""
        field = ConfigField(float, 10.0)
        assert field.coerce(5) == 5.0
        assert isinstance(field.coerce(5), float)


class TestMergeDefaults:
    """Test merging partial tables."""

    def test_partial_table(self):
        """Missing fields should take schema defaults."""
        merged = merge_with_defaults({"timeout": 3}, PLUGIN_SETTINGS_SCHEMA)

        assert merged["timeout"] == 3.0
        assert merged["plugins_dir"] == "./plugins"
        assert merged["registry_type"] == "npm"

    def test_unknown_field(self):
        """Unknown fields should be rejected."""
        with pytest.raises(ValidationError, match="Unknown configuration field"):
            merge_with_defaults({"colour": "blue"}, PLUGIN_SETTINGS_SCHEMA)

    def test_invalid_field(self):
        """Invalid values should name the field."""
        with pytest.raises(ValidationError, match="Field 'registry_type'"):
            merge_with_defaults({"registry_type": "pypi"}, PLUGIN_SETTINGS_SCHEMA)


class TestTOMLHandler:
    """Test TOML file I/O operations."""

    def test_generate_from_schema(self):
        """Generated TOML should carry descriptions and constraints as comments."""
        text = generate_toml_from_schema("plugins", PLUGIN_SETTINGS_SCHEMA)

        assert "[plugins]" in text
        assert "# Network timeout in seconds" in text
        assert "# Constraints: choices: ['npm', 'custom']" in text
        assert tomllib.loads(text)["plugins"]["timeout"] == 10.0

    def test_write_and_read(self):
        """Written documents should read back."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "nara.toml"
            write_toml(path, {"plugins": {"timeout": 2.5}})

            assert read_toml(path) == {"plugins": {"timeout": 2.5}}

    def test_read_missing(self):
        """Missing files should raise TOMLError."""
        with pytest.raises(TOMLError, match="not found"):
            read_toml(Path("/nonexistent/nara.toml"))

    def test_read_invalid(self):
        """Malformed TOML should raise TOMLError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.toml"
            path.write_text("[plugins\ntimeout = ")

            with pytest.raises(TOMLError, match="Failed to parse"):
                read_toml(path)


class TestPluginSettings:
    """Test loading the [plugins] table."""

    def test_defaults_without_file(self):
        """A missing file should yield defaults."""
        settings = load_settings(Path("/nonexistent/nara.toml"))
        assert settings == PluginSettings()
        assert settings.status_path == Path("plugins") / ".plugin-status.json"

    def test_load_settings(self):
        """Values from the file should override defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nara.toml"
            path.write_text(
                '[plugins]\nplugins_dir = "/srv/plugins"\nregistry_type = "custom"\ntimeout = 30\n'
            )

            settings = load_settings(path)

            assert settings.plugins_path == Path("/srv/plugins")
            assert settings.registry_type == "custom"
            assert settings.timeout == 30.0
            assert settings.scope == "@nara-plugin"

    def test_other_tables_ignored(self):
        """Tables other than [plugins] should be ignored."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nara.toml"
            path.write_text('[server]\nport = 8080\n')

            assert load_settings(path) == PluginSettings()

    def test_invalid_settings(self):
        """Invalid values should raise ValidationError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nara.toml"
            path.write_text("[plugins]\ntimeout = 0.0\n")

            with pytest.raises(ValidationError, match="timeout"):
                load_settings(path)

    def test_write_default_settings(self):
        """Written defaults should load back unchanged."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config" / "nara.toml"
            custom = PluginSettings(plugins_dir="/opt/plugins", timeout=5.0)

            write_default_settings(path, custom)

            assert load_settings(path) == custom
