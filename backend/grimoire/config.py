"""Settings for the grimoire service, read from environment variables."""

from __future__ import annotations

from pathlib import Path
import os


def get_env(name: str, default: str = "") -> str:
    """Resolve environment value with optional *_FILE fallback."""
    value = os.getenv(name)
    if value is not None and value != "":
        return value

    file_path = (os.getenv(f"{name}_FILE") or "").strip()
    if file_path:
        try:
            secret = Path(file_path).read_text(encoding="utf-8").strip()
        except OSError:
            return default
        if secret:
            return secret

    return default


def _env_csv(name: str) -> list[str]:
    raw = os.getenv(name, "")
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


DATA_DIR: str = os.getenv("GRIMOIRE_DATA_DIR", "./data")
EXPORT_DIR: str = os.getenv("GRIMOIRE_EXPORT_DIR", "./exports")
CORS_ORIGINS: list[str] = _env_csv("CORS_ORIGINS")
SEARCH_HISTORY_LIMIT: int = int(os.getenv("SEARCH_HISTORY_LIMIT", "10"))

# Lore (OpenAI-compatible chat completions)
LLM_BASE_URL: str = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
LLM_API_KEY: str = get_env("LLM_API_KEY", "")
LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# Images (OpenAI-compatible image generations)
IMAGE_BASE_URL: str = os.getenv("IMAGE_BASE_URL", LLM_BASE_URL)
IMAGE_API_KEY: str = get_env("IMAGE_API_KEY", LLM_API_KEY)
IMAGE_MODEL: str = os.getenv("IMAGE_MODEL", "dall-e-3")
IMAGE_SIZE: str = os.getenv("IMAGE_SIZE", "1024x1024")
IMAGE_TIMEOUT_SECONDS: float = float(os.getenv("IMAGE_TIMEOUT_SECONDS", "120"))

# Report export
REPORT_TITLE: str = os.getenv("REPORT_TITLE", "My Esoteric Herb Grimoire")
REPORT_PAGE_SIZE: str = os.getenv("REPORT_PAGE_SIZE", "a4")
REPORT_MARGIN_PT: float = float(os.getenv("REPORT_MARGIN_PT", "40"))
REPORT_DPI: int = int(os.getenv("REPORT_DPI", "144"))
REPORT_ASSET_TIMEOUT_SECONDS: float = float(os.getenv("REPORT_ASSET_TIMEOUT_SECONDS", "5"))
REPORT_FONT_FILES: list[str] = _env_csv("REPORT_FONT_FILES")
# Hosts that stored favorites may reference remote images from; anything else must be a data: URI
REPORT_IMAGE_HOSTS: list[str] = [host.lower() for host in _env_csv("REPORT_IMAGE_HOSTS")]
