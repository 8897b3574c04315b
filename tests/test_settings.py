import tempfile
import unittest
from pathlib import Path


class TestSettings(unittest.TestCase):
    def test_missing_token_fails_fast(self) -> None:
        from linkguard.kernel.settings import ConfigError, load_settings

        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError) as ctx:
                load_settings(home=Path(td), environ={})
            self.assertIn("TG_BOT_TOKEN", str(ctx.exception))

    def test_defaults_from_env_token(self) -> None:
        from linkguard.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            s = load_settings(home=Path(td), environ={"TG_BOT_TOKEN": " 123:abc "})
            self.assertEqual(s.token, "123:abc")
            self.assertEqual(s.store_path, Path(td) / "store.json")
            self.assertEqual(s.log_level, "INFO")
            self.assertEqual(s.api_timeout, 15.0)

    def test_yaml_file_and_env_overrides(self) -> None:
        from linkguard.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            home = Path(td)
            (home / "settings.yaml").write_text(
                "token_env: MY_BOT_TOKEN\nstore_path: /tmp/links.json\nlog_level: debug\napi_timeout: 5\n",
                encoding="utf-8",
            )
            s = load_settings(
                home=home,
                environ={"MY_BOT_TOKEN": "t0k", "TG_BOT_TOKEN": "ignored", "LINKGUARD_LOG_LEVEL": "warning"},
            )
            self.assertEqual(s.token, "t0k")
            self.assertEqual(s.store_path, Path("/tmp/links.json"))
            self.assertEqual(s.log_level, "WARNING")
            self.assertEqual(s.api_timeout, 5.0)

            s = load_settings(home=home, environ={"MY_BOT_TOKEN": "t0k", "LINKGUARD_STORE": "/tmp/other.json"})
            self.assertEqual(s.store_path, Path("/tmp/other.json"))

    def test_invalid_yaml_is_a_config_error(self) -> None:
        from linkguard.kernel.settings import ConfigError, load_settings

        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "settings.yaml").write_text("- just\n- a list\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_settings(home=Path(td), environ={"TG_BOT_TOKEN": "x"})

    def test_zero_api_timeout_is_rejected(self) -> None:
        from linkguard.kernel.settings import ConfigError, load_settings

        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "settings.yaml").write_text("api_timeout: 0\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_settings(home=Path(td), environ={"TG_BOT_TOKEN": "x"})

    def test_zero_poll_timeout_means_short_polling(self) -> None:
        from linkguard.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "settings.yaml").write_text("poll_timeout: 0\n", encoding="utf-8")
            s = load_settings(home=Path(td), environ={"TG_BOT_TOKEN": "x"})
            self.assertEqual(s.poll_timeout, 0)

    def test_token_optional_for_offline_commands(self) -> None:
        from linkguard.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            s = load_settings(home=Path(td), environ={}, require_token=False)
            self.assertEqual(s.token, "")


if __name__ == "__main__":
    unittest.main()
