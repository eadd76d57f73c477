"""
Unit tests for configuration loading and validation.
"""
import unittest
import tempfile
import os
import shutil
from datetime import timedelta

from kubecred.models.config import Config, ConfigValidationError, ConfigValidationResult
from kubecred.services.config_service import ConfigService


class TestConfig(unittest.TestCase):
    """Test cases for the Config model."""

    def test_defaults(self):
        """Test default settings."""
        config = Config()
        self.assertEqual(config.cert_validity, timedelta(days=365))
        self.assertEqual(config.rotation_threshold, timedelta(days=182))
        self.assertEqual(config.key_size, 2048)
        self.assertEqual(config.database_url, "sqlite:///data/kubecred.db")

    def test_database_url_passthrough(self):
        """Test that full database URLs are used as given."""
        config = Config(database_path="postgresql://user@db/kubecred")
        self.assertEqual(config.database_url, "postgresql://user@db/kubecred")

    def test_invalid_values(self):
        """Test type validation in __post_init__."""
        with self.assertRaises(ValueError):
            Config(cert_validity_days=0)
        with self.assertRaises(ValueError):
            Config(rotation_threshold_days=-1)
        with self.assertRaises(ValueError):
            Config(api_port=70000)
        with self.assertRaises(ValueError):
            Config(log_level="VERBOSE")


class TestConfigService(unittest.TestCase):
    """Test cases for ConfigService."""

    def setUp(self):
        """Set up test fixtures."""
        self.config_service = ConfigService()
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, content):
        config_path = os.path.join(self.temp_dir, "kubecred.properties")
        with open(config_path, 'w') as f:
            f.write(content)
        return config_path

    def test_load_config(self):
        """Test loading every section of a configuration file."""
        config_path = self._write(f"""
[database]
path = {self.temp_dir}/kubecred.db

[certificates]
validity_days = 90
rotation_threshold_days = 30
key_size = 4096

[api]
host = 127.0.0.1
port = 8443

[app]
log_level = debug
log_file_path = {self.temp_dir}/kubecred.log
""")
        config = self.config_service.load_config(config_path)

        self.assertEqual(config.database_path, f"{self.temp_dir}/kubecred.db")
        self.assertEqual(config.cert_validity_days, 90)
        self.assertEqual(config.rotation_threshold_days, 30)
        self.assertEqual(config.key_size, 4096)
        self.assertEqual(config.api_host, "127.0.0.1")
        self.assertEqual(config.api_port, 8443)
        self.assertEqual(config.log_level, "DEBUG")
        self.assertIs(self.config_service.get_config(), config)

    def test_missing_file(self):
        """Test loading a configuration file that does not exist."""
        with self.assertRaises(FileNotFoundError):
            self.config_service.load_config(os.path.join(self.temp_dir, "missing.properties"))

    def test_get_config_before_load(self):
        """Test that get_config requires a loaded configuration."""
        with self.assertRaises(ValueError):
            self.config_service.get_config()

    def test_invalid_integer(self):
        """Test a non-numeric integer setting."""
        config_path = self._write("[certificates]\nvalidity_days = forever\n")
        with self.assertRaises(ValueError) as ctx:
            self.config_service.load_config(config_path)
        self.assertIn("certificates.validity_days", str(ctx.exception))

    def test_threshold_not_shorter_than_validity(self):
        """Test that a threshold at least as long as validity is rejected."""
        config_path = self._write("[certificates]\nvalidity_days = 30\nrotation_threshold_days = 30\n")
        with self.assertRaises(ValueError) as ctx:
            self.config_service.load_config(config_path)
        self.assertIn("rotation_threshold_days", str(ctx.exception))

    def test_small_key_size_rejected(self):
        """Test that keys below 2048 bits are rejected."""
        result = self.config_service.validate_config(Config(key_size=1024, log_file_path=""))
        self.assertFalse(result.is_valid)
        self.assertEqual([e.field for e in result.errors], ["key_size"])

    def test_missing_directories_are_warnings(self):
        """Test warnings for directories that do not exist."""
        result = self.config_service.validate_config(Config(
            database_path=os.path.join(self.temp_dir, "nope", "kubecred.db"),
            log_file_path=os.path.join(self.temp_dir, "nope", "kubecred.log")
        ))
        self.assertTrue(result.is_valid)
        self.assertEqual(sorted(w.field for w in result.warnings), ["database_path", "log_file_path"])

    def test_create_default_config_file(self):
        """Test that the default configuration file loads."""
        config_path = os.path.join(self.temp_dir, "conf", "kubecred.properties")
        self.config_service.create_default_config_file(config_path)

        config = self.config_service.load_config(config_path)
        self.assertEqual(config.cert_validity_days, 365)
        self.assertEqual(config.rotation_threshold_days, 182)
        self.assertEqual(config.api_port, 5000)


class TestConfigValidationResult(unittest.TestCase):
    """Test cases for ConfigValidationResult."""

    def test_errors_and_warnings_are_separated(self):
        result = ConfigValidationResult(
            is_valid=False,
            errors=[
                ConfigValidationError("a", "bad"),
                ConfigValidationError("b", "meh", "warning"),
            ],
            warnings=[]
        )
        self.assertTrue(result.has_errors())
        self.assertTrue(result.has_warnings())
        self.assertIn("ERROR: a - bad", result.get_error_summary())
        self.assertIn("WARNING: b - meh", result.get_error_summary())


if __name__ == '__main__':
    unittest.main()
