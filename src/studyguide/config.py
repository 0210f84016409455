# configuration settings for the study guide generator
import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

# load .env from the working directory, real environment variables win
load_dotenv(override=False)

# upload limits shared by the api and the cli
MAX_FILE_SIZE_MB = 50
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

ALLOWED_MIME_TYPES = {"application/pdf", "image/png", "text/markdown", "text/plain"}
ALLOWED_EXTENSIONS = {".pdf", ".png", ".md", ".txt"}

# conservative limit so the prompt stays inside the model context
MAX_CONTENT_CHARS = 12000
TRUNCATION_MARKER = "\n\n[Content truncated due to length...]"

# models tried in order of preference
DEFAULT_MODELS = (
    "gpt-4.1-nano-2025-04-14",
    "gpt-4o-mini",
    "gpt-3.5-turbo",
    "gpt-4o",
)

SYSTEM_PROMPT = (
    "You are an expert educational assistant that creates high-quality study materials. "
    "Your responses should be well-formatted, accurate, and pedagogically sound."
)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_models() -> Tuple[str, ...]:
    raw = os.getenv("OPENAI_MODELS", "")
    models = tuple(m.strip() for m in raw.split(",") if m.strip())
    return models or DEFAULT_MODELS


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    models: Tuple[str, ...] = field(default_factory=_env_models)
    timeout_sec: float = float(os.getenv("OPENAI_TIMEOUT_SEC", "120"))
    max_tokens: int = int(os.getenv("STUDYGUIDE_MAX_TOKENS", "2000"))
    temperature: float = float(os.getenv("STUDYGUIDE_TEMPERATURE", "0.7"))
    upload_dir: str = os.getenv("STUDYGUIDE_UPLOAD_DIR", "uploads")
    tesseract_cmd: str = os.getenv("TESSERACT_CMD", "")
    debug: bool = field(default_factory=lambda: _env_bool("STUDYGUIDE_DEBUG"))


settings = Settings()
