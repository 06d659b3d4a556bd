import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from config import AppConfig, load_config


_ENV_NAMES = (
    "TJAPLAY_CONFIG_PATH",
    "TJAPLAY_NOTE_SPEED",
    "TJAPLAY_LOG_LEVEL",
    "TJAPLAY_JUDGE_PERFECT_MS",
    "TJAPLAY_JUDGE_GOOD_MS",
    "TJAPLAY_JUDGE_BAD_MS",
)


class TestLoadConfig(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        clean_env = {key: value for key, value in os.environ.items() if key not in _ENV_NAMES}
        env_patcher = patch.dict(os.environ, clean_env, clear=True)
        env_patcher.start()
        self.addCleanup(env_patcher.stop)

    def write_config(self, payload):
        config_path = Path(self.temp_dir.name) / "tjaplay_config.json"
        text = payload if isinstance(payload, str) else json.dumps(payload)
        config_path.write_text(text, encoding="utf-8")
        return config_path

    def test_defaults_without_a_file(self):
        with patch("config._resolve_config_path", return_value=None):
            config, resolved_path = load_config()

        self.assertIsNone(resolved_path)
        self.assertEqual(config, AppConfig())
        self.assertEqual(config.judge_windows.bad_ms, 150.0)
        self.assertEqual(config.special_notes.default_balloon_hits, 5)

    def test_file_values_are_validated(self):
        config_path = self.write_config({"playfield": {"note_speed": 1.5}, "logging": {"level": "warn"}})

        config, resolved_path = load_config(config_path)

        self.assertEqual(resolved_path, config_path)
        self.assertEqual(config.playfield.note_speed, 1.5)
        self.assertEqual(config.logging.level, "WARNING")

    def test_environment_overrides_file(self):
        config_path = self.write_config({"playfield": {"note_speed": 1.5}})
        os.environ["TJAPLAY_NOTE_SPEED"] = "3"
        os.environ["TJAPLAY_JUDGE_PERFECT_MS"] = "30"

        config, _resolved_path = load_config(config_path)

        self.assertEqual(config.playfield.note_speed, 3.0)
        self.assertEqual(config.judge_windows.perfect_ms, 30.0)

    def test_config_path_from_environment(self):
        config_path = self.write_config({"scoring": {"perfect_points": 1200}})
        os.environ["TJAPLAY_CONFIG_PATH"] = str(config_path)

        config, resolved_path = load_config()

        self.assertEqual(resolved_path, config_path)
        self.assertEqual(config.scoring.perfect_points, 1200)

    def test_unordered_windows_are_rejected(self):
        config_path = self.write_config({"judge_windows": {"perfect_ms": 120, "good_ms": 100}})

        with self.assertRaises(ValueError):
            load_config(config_path)

    def test_invalid_json_is_rejected(self):
        config_path = self.write_config("{not json")

        with self.assertRaises(ValueError):
            load_config(config_path)

    def test_non_object_root_is_rejected(self):
        config_path = self.write_config([1, 2, 3])

        with self.assertRaises(ValueError):
            load_config(config_path)

    def test_missing_explicit_file_raises(self):
        with self.assertRaises(FileNotFoundError):
            load_config(Path(self.temp_dir.name) / "absent.json")


if __name__ == "__main__":
    unittest.main()
