"""
Podcast configuration - credentials from the environment, tunables from an optional JSON file
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from podcast_helpers import ValidationResult, console, validate_environment_variables

logger = logging.getLogger("podcast_config")

REQUIRED_VARS = ("NEWSAPI_KEY", "OPENAI_API_KEY", "ELEVENLABS_API_KEY")
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"


@dataclass(frozen=True)
class PodcastConfig:
    newsapi_key: str = ""
    openai_api_key: str = ""
    elevenlabs_api_key: str = ""
    voice_id: str = DEFAULT_VOICE_ID

    # news_settings
    country: str = "us"
    category: str = "technology"
    page_size: int = 5

    # api_settings
    openai_model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 500
    request_timeout: Optional[float] = 30.0
    max_attempts: int = 1
    backoff_seconds: float = 1.0

    # audio_settings
    tts_model_id: str = "eleven_monolingual_v1"
    stability: float = 0.5
    similarity_boost: float = 0.5

    # output_settings
    output_directory: str = "output"
    script_filename: str = "podcast_script.txt"
    audio_prefix: str = "podcast"
    audio_extension: str = "mp3"

    def credentials(self) -> Dict[str, str]:
        """Map each required configuration name to its current value."""
        return {
            "NEWSAPI_KEY": self.newsapi_key,
            "OPENAI_API_KEY": self.openai_api_key,
            "ELEVENLABS_API_KEY": self.elevenlabs_api_key,
        }

    def validate(self, required=REQUIRED_VARS) -> ValidationResult:
        return validate_environment_variables(required, self.credentials())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "PodcastConfig":
        env = os.environ if environ is None else environ
        return cls(
            newsapi_key=env.get("NEWSAPI_KEY", ""),
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            elevenlabs_api_key=env.get("ELEVENLABS_API_KEY", ""),
            voice_id=env.get("ELEVENLABS_VOICE_ID") or DEFAULT_VOICE_ID,
            **overrides,
        )

    @classmethod
    def load(cls, config_path: Optional[str] = "config.json", environ: Optional[Mapping[str, str]] = None) -> "PodcastConfig":
        """Load ``.env`` into the process environment, then merge the JSON tunables."""
        if environ is None:
            load_dotenv()
        settings = _load_settings(config_path) if config_path else {}
        return cls.from_env(environ, **_flatten_settings(settings))


SETTINGS_FIELDS = {
    "news_settings": ("country", "category", "page_size"),
    "api_settings": ("openai_model", "temperature", "max_tokens", "request_timeout", "max_attempts", "backoff_seconds"),
    "audio_settings": ("tts_model_id", "stability", "similarity_boost"),
    "output_settings": ("output_directory", "script_filename", "audio_prefix", "audio_extension"),
}


def _load_settings(config_path: str) -> Dict:
    """Read the JSON tunables file; a missing file means defaults."""
    path = Path(config_path)
    if not path.exists():
        logger.info("No config file at %s; using defaults", config_path)
        return {}
    try:
        logger.debug("Loading configuration file: %s", config_path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError:
        console.print(f"[red]Invalid JSON in config file {config_path}[/red]")
        logger.exception("Invalid JSON in config file: %s", config_path)
        raise
    logger.info("Configuration loaded | sections=%s", ",".join(sorted(data)))
    return data


def _flatten_settings(settings: Dict) -> Dict:
    flat = {}
    for section, names in SETTINGS_FIELDS.items():
        values = settings.get(section) or {}
        for name in names:
            if name in values:
                flat[name] = values[name]
    unknown = set(settings) - set(SETTINGS_FIELDS)
    if unknown:
        logger.warning("Ignoring unknown config sections: %s", ", ".join(sorted(unknown)))
    return flat
