"""
Configuration management with immutable snapshots.

Loads from: environment variables > settings.json > defaults
Provides immutable snapshots so a running session never sees config edits.
"""

from pathlib import Path
import json
import os

from .types import ConfigSnapshot


# Defaults
DEFAULT_CONFIG = {
    # Transcription
    "language": "de",
    "transcription_model": "whisper-large-v3",

    # Input
    "toggle_key": "f9",
    "stop_key": "esc",

    # Audio
    "sample_rate": 16000,
    "input_device": "",

    # Detection
    "echo_window_seconds": 60.0,  # Own output is ignored as a "selection" this long
    "detection_debounce_ms": 10.0,
    "copy_settle_ms": 30.0,  # Time for the OS copy action to land on the clipboard
    "artifact_patterns": [r"/var/folders/.*screencaptureui"],

    # Retry policy
    "max_attempts": 3,
    "backoff_seconds": 0.5,
    "temperature_step": 0.3,
    "max_temperature": 1.0,

    # Silence policy (empirical, tune per microphone)
    "min_duration_ms": 300.0,
    "frame_ms": 100.0,
    "rms_threshold": 0.01,
    "max_silent_ratio": 0.8,
    "max_upload_bytes": 25 * 1024 * 1024,

    # Command processing
    "cache_ttl_seconds": 300.0,
    "cache_prefix_chars": 200,
    "rewrite_providers": ["groq", "gemini"],
    "editing_prompt": "",
}

# Keys the user is expected to edit; written back by save_settings()
USER_KEYS = ("language", "toggle_key", "stop_key", "input_device", "rewrite_providers", "editing_prompt")


class Config:
    """
    Single source of truth for all settings.

    Usage:
        config = Config.load()
        snapshot = config.snapshot()  # Immutable copy for the engine
    """

    def __init__(self):
        for key, default in DEFAULT_CONFIG.items():
            setattr(self, key, list(default) if isinstance(default, list) else default)

        # API Keys
        self.groq_api_key: str = ""
        self.gemini_api_key: str = ""

        # Paths
        self.data_dir: Path = Path.home() / ".meinwort"
        self.metrics_file: Path = self.data_dir / "metrics.jsonl"
        self.settings_file: Path = self.data_dir / "settings.json"
        self.env_file: Path = self.data_dir / ".env"

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from all sources."""
        config = cls()
        config._ensure_data_dir()
        config._load_env()
        config._load_settings()
        return config

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load_env(self) -> None:
        """Load API keys from .env files and environment."""
        env_file = Path(".env")
        if env_file.exists():
            self._parse_env_file(env_file)

        if self.env_file.exists():
            self._parse_env_file(self.env_file)

        # Environment variables override file values
        self.groq_api_key = os.getenv("GROQ_API_KEY", self.groq_api_key)
        self.gemini_api_key = os.getenv("GEMINI_API_KEY", self.gemini_api_key)

    def _parse_env_file(self, env_file: Path) -> None:
        """Parse a .env file and extract API keys."""
        try:
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip("'\"")

                    if key == "GROQ_API_KEY":
                        self.groq_api_key = value
                    elif key == "GEMINI_API_KEY":
                        self.gemini_api_key = value
        except OSError as e:
            print(f"Error loading {env_file}: {e}")

    def _load_settings(self) -> None:
        """Load settings from settings.json."""
        project_settings = Path("settings.json")
        if project_settings.exists():
            self._apply_settings_file(project_settings)

        # ~/.meinwort/settings.json overrides the project file
        if self.settings_file.exists():
            self._apply_settings_file(self.settings_file)

    def _apply_settings_file(self, settings_file: Path) -> None:
        """Apply settings from a JSON file, coercing to the default's type."""
        try:
            with open(settings_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error loading {settings_file}: {e}")
            return

        for key, default in DEFAULT_CONFIG.items():
            if key not in data:
                continue
            try:
                setattr(self, key, type(default)(data[key]))
            except (TypeError, ValueError) as e:
                print(f"Ignoring invalid setting {key}={data[key]!r}: {e}")

    def save_settings(self) -> None:
        """Save user-editable settings to settings.json."""
        data = {key: getattr(self, key) for key in USER_KEYS}

        self._ensure_data_dir()
        with open(self.settings_file, "w") as f:
            json.dump(data, f, indent=2)

    def snapshot(self) -> ConfigSnapshot:
        """Return a copy for the engine."""
        return ConfigSnapshot(
            language=self.language,
            transcription_model=self.transcription_model,
            groq_api_key=self.groq_api_key,
            gemini_api_key=self.gemini_api_key,
            sample_rate=self.sample_rate,
            input_device=self.input_device,
            echo_window_seconds=self.echo_window_seconds,
            detection_debounce_ms=self.detection_debounce_ms,
            copy_settle_ms=self.copy_settle_ms,
            artifact_patterns=list(self.artifact_patterns),
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            temperature_step=self.temperature_step,
            max_temperature=self.max_temperature,
            min_duration_ms=self.min_duration_ms,
            frame_ms=self.frame_ms,
            rms_threshold=self.rms_threshold,
            max_silent_ratio=self.max_silent_ratio,
            max_upload_bytes=self.max_upload_bytes,
            cache_ttl_seconds=self.cache_ttl_seconds,
            cache_prefix_chars=self.cache_prefix_chars,
            rewrite_providers=list(self.rewrite_providers),
            editing_prompt=self.editing_prompt,
        )


def default_snapshot(**overrides) -> ConfigSnapshot:
    """Snapshot built from defaults only (no files, no environment)."""
    config = Config()
    for key, value in overrides.items():
        setattr(config, key, value)
    return config.snapshot()
