from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[3]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
APP_NAME = os.getenv("APP_NAME", "School Timetable Manager")
APP_DATA_DIR = Path(os.getenv("APP_DATA_DIR", str(DOCUMENTS_PATH / APP_NAME))).expanduser()

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IMPORT_MODEL = "gemini-3-pro-preview"
DEFAULT_CHAT_MODEL = "gemini-3-flash-preview"
DEFAULT_ADMIN_PASSWORD = "closed"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str = APP_NAME
    database_path: Path = APP_DATA_DIR / "timetable.db"
    gemini_api_key: str = ""
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    import_model: str = DEFAULT_IMPORT_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    ai_timeout_seconds: float = 120.0
    import_thinking_budget: int = 1000
    admin_password: str = DEFAULT_ADMIN_PASSWORD
    log_level: str = "INFO"
    log_json: bool = False

    def __repr__(self) -> str:
        # The API key never ends up in logs.
        return (
            f"Settings(app_name={self.app_name}, "
            f"database_path={self.database_path}, "
            f"gemini_base_url={self.gemini_base_url}, "
            f"import_model={self.import_model}, "
            f"chat_model={self.chat_model}, "
            f"ai_timeout_seconds={self.ai_timeout_seconds}, "
            f"has_api_key={bool(self.gemini_api_key)}, "
            f"log_level={self.log_level}, "
            f"log_json={self.log_json})"
        )


def load_settings() -> Settings:
    """Build a settings object from the current environment."""

    return Settings(
        app_name=APP_NAME,
        database_path=Path(os.getenv("DATABASE_PATH", str(APP_DATA_DIR / "timetable.db"))).expanduser(),
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "",
        gemini_base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL).rstrip("/"),
        import_model=os.getenv("IMPORT_MODEL", DEFAULT_IMPORT_MODEL),
        chat_model=os.getenv("CHAT_MODEL", DEFAULT_CHAT_MODEL),
        ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "120")),
        import_thinking_budget=int(os.getenv("IMPORT_THINKING_BUDGET", "1000")),
        admin_password=os.getenv("ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_flag("LOG_JSON"),
    )


settings = load_settings()


def refresh_settings() -> Settings:
    """Rebuild the module-level settings after the environment changed."""

    global settings  # noqa: PLW0603 - module-level singleton

    load_dotenv(ENV_PATH, override=True)
    settings = load_settings()
    return settings
