"""Configuration defaults, .env loading, and the injectable Settings value.

WHY: API keys, feature flags, and tool paths all come from the environment.
Reading os.environ deep inside business logic makes components hard to test
and hides their real inputs. Instead the environment is read once, at
assembly time, into a Settings value that is handed to each component.

HOW: python-dotenv loads the .env file on import. Module-level constants
hold the defaults. Settings.from_env() reads every key and returns a frozen
dataclass; the CLI and the HTTP server build their components from it.

RULES:
- Only Settings.from_env() reads the environment
- API keys are never hardcoded; a missing Groq key raises ConfigError only
  when a transcription client is actually built
- Booleans accept "true"/"false" (case-insensitive)
- Font size is clamped to FONT_SIZE_RANGE
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from captionburn.errors import ConfigError

# Load .env from the working directory (where the app is started)
load_dotenv()

# ---------------------------------------------------------------------------
# Provider defaults
# ---------------------------------------------------------------------------

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
WHISPER_MODEL = "whisper-large-v3-turbo"
WHISPER_LANGUAGE = "en"
TRANSCRIPTION_TIMEOUT_S = 60.0

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-2.0-flash-exp"

# ---------------------------------------------------------------------------
# Processing defaults
# ---------------------------------------------------------------------------

DEFAULT_FONT_SIZE = 22
FONT_SIZE_RANGE = (12, 48)
"""Inclusive bounds accepted for the caption font size."""

MAX_FILE_SIZE_MB = 100
FFMPEG_TIMEOUT_S = 30 * 60  # 30 minutes per ffmpeg invocation
DEFAULT_PORT = 3001

WORKSPACE_ROOT = Path("./temp")
UPLOAD_DIR = Path("./uploads")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError("{} must be an integer, got {!r}".format(name, raw))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError("{} must be a number, got {!r}".format(name, raw))


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def clamp_font_size(size: int) -> int:
    """Clamp a font size into FONT_SIZE_RANGE."""
    low, high = FONT_SIZE_RANGE
    return max(low, min(high, size))


@dataclass(frozen=True)
class Settings:
    """Every configurable value the application needs, read once.

    WHY: Components take explicit configuration instead of looking it up,
    so tests can build them with any values and nothing depends on the
    process environment at call time.

    RULES:
    - Frozen: settings never change after startup
    - Optional keys are None when unset
    - use_ai_styling only takes effect when gemini_api_key is also set
    """

    groq_api_key: Optional[str] = None
    groq_base_url: str = GROQ_BASE_URL
    whisper_model: str = WHISPER_MODEL
    whisper_language: str = WHISPER_LANGUAGE
    transcription_timeout_s: float = TRANSCRIPTION_TIMEOUT_S
    gemini_api_key: Optional[str] = None
    gemini_model: str = GEMINI_MODEL
    use_ai_styling: bool = False
    enable_video_scaling: bool = True
    default_font_size: int = DEFAULT_FONT_SIZE
    max_file_size_mb: int = MAX_FILE_SIZE_MB
    port: int = DEFAULT_PORT
    workspace_root: Path = WORKSPACE_ROOT
    upload_dir: Path = UPLOAD_DIR
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    ffmpeg_timeout_s: float = FFMPEG_TIMEOUT_S

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables (after .env loading)."""
        return cls(
            groq_api_key=_env_str("GROQ_API_KEY"),
            groq_base_url=os.getenv("GROQ_BASE_URL", GROQ_BASE_URL),
            whisper_model=os.getenv("WHISPER_MODEL", WHISPER_MODEL),
            whisper_language=os.getenv("WHISPER_LANGUAGE", WHISPER_LANGUAGE),
            transcription_timeout_s=_env_float(
                "TRANSCRIPTION_TIMEOUT_S", TRANSCRIPTION_TIMEOUT_S
            ),
            gemini_api_key=_env_str("GEMINI_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", GEMINI_MODEL),
            use_ai_styling=_env_bool("USE_AI_STYLING", False),
            enable_video_scaling=_env_bool("ENABLE_VIDEO_SCALING", True),
            default_font_size=clamp_font_size(
                _env_int("DEFAULT_FONT_SIZE", DEFAULT_FONT_SIZE)
            ),
            max_file_size_mb=_env_int("MAX_FILE_SIZE_MB", MAX_FILE_SIZE_MB),
            port=_env_int("PORT", DEFAULT_PORT),
            workspace_root=Path(os.getenv("WORKSPACE_ROOT", str(WORKSPACE_ROOT))),
            upload_dir=Path(os.getenv("UPLOAD_DIR", str(UPLOAD_DIR))),
            ffmpeg_path=_env_str("FFMPEG_PATH"),
            ffprobe_path=_env_str("FFPROBE_PATH"),
            ffmpeg_timeout_s=_env_float("FFMPEG_TIMEOUT_S", FFMPEG_TIMEOUT_S),
        )

    @property
    def ai_styling_available(self) -> bool:
        """True when AI styling is both requested and has a credential."""
        return self.use_ai_styling and bool(self.gemini_api_key)

    def require_groq_key(self) -> str:
        """Return the Groq API key or raise ConfigError.

        RULES:
        - Raises ConfigError if the key is missing or empty
        - Never returns a default/placeholder value
        """
        if not self.groq_api_key:
            raise ConfigError(
                "Groq API key not configured. "
                "Add GROQ_API_KEY to the .env file or the environment."
            )
        return self.groq_api_key
