"""
config.py

Typed configuration loading and validation for tjaplay.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If TJAPLAY_CONFIG_PATH is set, that file is used.
- Otherwise tjaplay searches these paths in order and uses the first one that exists:
  1) ./tjaplay_config.json (current working directory)
  2) <user config dir>/tjaplay/tjaplay/tjaplay_config.json
  3) <user config dir>/tjaplay/tjaplay/config.json
- With no file found, the built-in defaults are used.

Example config file (tjaplay_config.json)
{
  "judge_windows": {
    "perfect_ms": 50,
    "good_ms": 100,
    "bad_ms": 150
  },
  "playfield": {
    "note_speed": 1.0
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class JudgeWindowConfig(BaseModel):
    perfect_ms: float = Field(default=50.0, gt=0, description="Max |delta| for PERFECT.")
    good_ms: float = Field(default=100.0, gt=0, description="Max |delta| for GOOD.")
    bad_ms: float = Field(default=150.0, gt=0, description="Max |delta| for BAD; also the input match window.")
    miss_ms: float = Field(default=150.0, gt=0, description="Lateness after which an unhit note is a MISS.")

    @model_validator(mode="after")
    def validate_ordering(self) -> "JudgeWindowConfig":
        if not (self.perfect_ms <= self.good_ms <= self.bad_ms):
            raise ValueError("judge windows must satisfy perfect_ms <= good_ms <= bad_ms")
        return self


class PlayfieldConfig(BaseModel):
    note_speed: float = Field(default=1.0, gt=0, description="Note speed multiplier.")
    look_ahead_seconds: float = Field(default=3.0, gt=0, description="Visible window ahead, before note speed.")
    look_behind_seconds: float = Field(default=0.5, ge=0, description="Visible window behind the judge line.")
    judge_line_x: float = Field(default=120.0, description="Judge line x coordinate.")
    hit_effect_y: float = Field(default=100.0, description="y coordinate where hit projectiles spawn.")
    scroll_pixels_per_second: float = Field(default=300.0, gt=0, description="Base scroll speed before note speed.")
    auto_hit_window_seconds: float = Field(default=0.05, gt=0, description="Preview auto-hit window, before note speed.")


class SpecialNoteConfig(BaseModel):
    activation_lead_seconds: float = Field(default=0.1, ge=0, description="Rolls and balloons open this early.")
    roll_hit_interval_ms: float = Field(default=50.0, ge=0, description="Minimum gap between accepted roll hits.")
    balloon_hit_interval_ms: float = Field(default=10.0, ge=0, description="Minimum gap between accepted balloon hits.")
    default_balloon_hits: int = Field(default=5, ge=1, description="Used when BALLOON metadata is missing.")
    roll_hit_points: int = Field(default=100, ge=0)
    balloon_hit_points: int = Field(default=100, ge=0)
    balloon_pop_bonus: int = Field(default=500, ge=0)


class ScoringConfig(BaseModel):
    perfect_points: int = Field(default=1000, ge=0)
    good_points: int = Field(default=500, ge=0)
    bad_points: int = Field(default=100, ge=0)
    combo_bonus_per_hit: int = Field(default=10, ge=0, description="Points per combo step on PERFECT and GOOD.")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="CRITICAL, ERROR, WARNING, INFO or DEBUG")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        if normalized == "WARN":
            normalized = "WARNING"
        allowed = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
        if normalized not in allowed:
            raise ValueError("level must be one of: CRITICAL, ERROR, WARNING, INFO, DEBUG")
        return normalized


class AppConfig(BaseModel):
    judge_windows: JudgeWindowConfig = Field(default_factory=JudgeWindowConfig)
    playfield: PlayfieldConfig = Field(default_factory=PlayfieldConfig)
    special_notes: SpecialNoteConfig = Field(default_factory=SpecialNoteConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# (environment variable, config section, field, parser)
_ENVIRONMENT_OVERRIDES: Tuple[Tuple[str, str, str, Callable[[str], Any]], ...] = (
    ("TJAPLAY_NOTE_SPEED", "playfield", "note_speed", float),
    ("TJAPLAY_LOG_LEVEL", "logging", "level", str),
    ("TJAPLAY_JUDGE_PERFECT_MS", "judge_windows", "perfect_ms", float),
    ("TJAPLAY_JUDGE_GOOD_MS", "judge_windows", "good_ms", float),
    ("TJAPLAY_JUDGE_BAD_MS", "judge_windows", "bad_ms", float),
)


def _candidate_config_paths() -> List[Path]:
    user_directory = Path(user_config_dir("tjaplay", "tjaplay"))
    return [
        Path.cwd() / "tjaplay_config.json",
        user_directory / "tjaplay_config.json",
        user_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    """Explicit TJAPLAY_CONFIG_PATH first, then the first candidate that exists, else None."""
    explicit_text = os.environ.get("TJAPLAY_CONFIG_PATH", "").strip()
    if explicit_text:
        return Path(explicit_text)
    return next((path for path in _candidate_config_paths() if path.exists()), None)


def _load_json_object(config_path: Path) -> Dict[str, Any]:
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Could not read tjaplay config {config_path}: {exception}") from exception

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"tjaplay config {config_path} is not valid JSON: {exception}") from exception

    if not isinstance(document, dict):
        raise ValueError(f"tjaplay config {config_path} must contain a JSON object at the top level")
    return document


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of config_dict with TJAPLAY_* environment values merged in.

    Blank variables are skipped, and so are values the parser rejects; validation of the merged
    result still happens in AppConfig.
    """
    merged: Dict[str, Any] = {
        key: dict(value) if isinstance(value, dict) else value for key, value in config_dict.items()
    }
    for env_name, section_name, field_name, parse in _ENVIRONMENT_OVERRIDES:
        raw_value = os.environ.get(env_name, "").strip()
        if not raw_value:
            continue
        try:
            parsed_value = parse(raw_value)
        except ValueError:
            continue
        section = merged.get(section_name)
        if not isinstance(section, dict):
            section = {}
            merged[section_name] = section
        section[field_name] = parsed_value
    return merged


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    """Load, merge and validate configuration. Returns the config and the file it came from."""
    source_path = config_path if config_path is not None else _resolve_config_path()
    raw_config = _load_json_object(source_path) if source_path is not None else {}

    try:
        config = AppConfig.model_validate(_apply_environment_overrides(raw_config))
    except ValidationError as exception:
        source_text = str(source_path) if source_path is not None else "built-in defaults"
        raise ValueError(f"Invalid tjaplay config ({source_text}):\n{exception}") from exception

    return config, source_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def main() -> int:
    """Print the effective configuration as JSON."""
    try:
        config, source_path = load_config()
    except (OSError, ValueError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    print(
        json.dumps(
            {
                "ok": True,
                "config_path": str(source_path) if source_path is not None else None,
                "config": config.model_dump(),
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
