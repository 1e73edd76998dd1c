import os
import unittest
from unittest.mock import patch

from config import AppConfig
from container import Container
from discord_sync import MessageRenderer
from null_telemetry import NullTelemetry


class TestAppConfig(unittest.TestCase):
    """Test the centralized AppConfig model."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = AppConfig(_env_file=None)

        self.assertEqual(config.discord_token, "")
        self.assertEqual(config.command_prefix, "!")
        self.assertEqual(config.content_separator, "\n")
        self.assertEqual(config.sync_max_tries, 3)
        self.assertEqual(config.otel_service_name, "embedtree")

    def test_environment_variables(self):
        env = {
            "DISCORD_TOKEN": "token",
            "COMMAND_PREFIX": "?",
            "SYNC_MAX_TRIES": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AppConfig(_env_file=None)

        self.assertEqual(config.discord_token, "token")
        self.assertEqual(config.command_prefix, "?")
        self.assertEqual(config.sync_max_tries, 5)

    def test_blank_prefix_rejected(self):
        with self.assertRaises(ValueError) as cm:
            AppConfig(_env_file=None, command_prefix="  ")
        self.assertIn("COMMAND_PREFIX must not be blank", str(cm.exception))

    def test_sync_max_tries_validation(self):
        with self.assertRaises(ValueError) as cm:
            AppConfig(_env_file=None, sync_max_tries=0)
        self.assertIn("SYNC_MAX_TRIES must be positive", str(cm.exception))


class TestContainer(unittest.TestCase):
    def test_wires_renderer_from_config(self):
        config = AppConfig(_env_file=None, content_separator=" ", sync_max_tries=2)
        telemetry = NullTelemetry()

        container = Container(config=config, telemetry=telemetry)

        self.assertIs(container.config, config)
        self.assertIs(container.telemetry, telemetry)
        self.assertIsInstance(container.message_renderer, MessageRenderer)
        self.assertEqual(container.message_renderer.content_separator, " ")
        self.assertEqual(container.message_renderer.max_tries, 2)
        self.assertIs(container.message_renderer.telemetry, telemetry)


if __name__ == '__main__':
    unittest.main()
