import unittest
import os
import yaml
from unittest.mock import patch, mock_open
from core.config_loader import load_config, AppConfig, MediaConfig


class TestConfigLoader(unittest.TestCase):

    def setUp(self):
        self.sample_config = {
            "storage": {"data_root": "/srv/wave"},
            "notifications": {"client_url": "https://wave.example", "async_push": False},
            "sms": {"enabled": True, "max_per_minute": 30},
            "media": {"pool_size": 2, "max_width": 1280},
            "worker": {"groups": ["family"], "interval_seconds": 300},
        }
        self.config_yaml = yaml.dump(self.sample_config)
        # Keep real deployment secrets out of the assertions
        self.env = patch.dict(os.environ, {}, clear=True)
        self.env.start()

    def tearDown(self):
        self.env.stop()

    def test_load_config_from_yaml(self):
        with patch("builtins.open", mock_open(read_data=self.config_yaml)):
            with patch("os.path.exists", return_value=True):
                config = load_config("dummy_path.yaml")
                self.assertIsInstance(config, AppConfig)
                self.assertEqual(config.storage.data_root, "/srv/wave")
                self.assertEqual(config.notifications.client_url, "https://wave.example")
                self.assertFalse(config.notifications.async_push)
                self.assertTrue(config.sms.enabled)
                self.assertEqual(config.sms.max_per_minute, 30)
                self.assertEqual(config.media.pool_size, 2)
                self.assertEqual(config.worker.groups, ["family"])

    def test_section_defaults(self):
        with patch("builtins.open", mock_open(read_data=self.config_yaml)):
            with patch("os.path.exists", return_value=True):
                config = load_config("dummy_path.yaml")
                # Unset keys fall back to the pydantic defaults
                self.assertEqual(config.sms.min_interval_seconds, 1.0)
                self.assertEqual(config.sms.max_message_length, 160)
                self.assertEqual(config.media.max_height, 1080)
                self.assertEqual(config.media.thumbnail_size, 128)
                self.assertEqual(config.assistant.model, "gpt-4o-mini")
                self.assertIsNone(config.push.vapid_private_key)

    def test_empty_file(self):
        with patch("builtins.open", mock_open(read_data="")):
            with patch("os.path.exists", return_value=True):
                config = load_config("dummy_path.yaml")
                self.assertEqual(config.storage.data_root, ".")
                self.assertEqual(config.media, MediaConfig())

    def test_env_var_override_secrets(self):
        env = {
            "TWILIO_ACCOUNT_SID": "AC1",
            "TWILIO_AUTH_TOKEN": "tok",
            "TWILIO_PHONE_NUMBER": "+15550000000",
            "VAPID_PRIVATE_KEY": "vapid",
            "OPENAI_API_KEY": "sk-test",
        }
        with patch("builtins.open", mock_open(read_data=self.config_yaml)):
            with patch("os.path.exists", return_value=True):
                with patch.dict(os.environ, env):
                    config = load_config("dummy_path.yaml")
                    self.assertEqual(config.sms.account_sid, "AC1")
                    self.assertEqual(config.sms.auth_token, "tok")
                    self.assertEqual(config.sms.from_number, "+15550000000")
                    self.assertEqual(config.push.vapid_private_key, "vapid")
                    self.assertEqual(config.assistant.api_key, "sk-test")
                    # Untouched keys of the same section survive
                    self.assertEqual(config.sms.max_per_minute, 30)

    def test_env_var_override_creates_missing_section(self):
        minimal_yaml = yaml.dump({"storage": {"data_root": "."}})
        with patch("builtins.open", mock_open(read_data=minimal_yaml)):
            with patch("os.path.exists", return_value=True):
                with patch.dict(os.environ, {"CLIENT_URL": "https://env.example", "WAVE_DATA_ROOT": "/data"}):
                    config = load_config("dummy")
                    self.assertEqual(config.notifications.client_url, "https://env.example")
                    self.assertEqual(config.storage.data_root, "/data")

    def test_missing_file_uses_defaults(self):
        with patch("os.path.exists", return_value=False):
            config = load_config("nowhere.yaml")
            self.assertEqual(config.notifications.push_title, "New activity in WAVE!")
            self.assertEqual(config.worker.interval_seconds, 900)


if __name__ == "__main__":
    unittest.main()
