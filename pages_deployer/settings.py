# settings.py
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    STUDENT_SECRET: str = ""
    GITHUB_TOKEN: str = ""
    GITHUB_USERNAME: str = ""
    GITHUB_API_BASE: str = "https://api.github.com"
    GITHUB_PAGES_BASE: Optional[str] = None

    LLM_API_KEY: str = ""
    LLM_API_URL: str = "https://aipipe.org/openrouter/v1/chat/completions"
    LLM_MODEL: str = "openai/gpt-4o-mini"
    LLM_MAX_TOKENS: int = 4000
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: float = 30
    ATTACHMENT_PREVIEW_CHARS: int = Field(500, ge=0)
    REVISE_CONTEXT_CHARS: int = Field(1500, ge=0)

    WORK_DIR: str = "temp-repos"
    SETTLE_DELAY_SECONDS: float = 10
    REPORT_TIMEOUT_SECONDS: float = 10
    MAX_CONCURRENT_TASKS: int = Field(2, ge=1)
    KEEP_ALIVE_INTERVAL_SECONDS: int = 30

    LOG_FILE_PATH: str = "logs/app.log"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    def pages_base_for(self, owner: str) -> str:
        """Root URL of the Pages sites published under ``owner``."""
        if self.GITHUB_PAGES_BASE:
            return self.GITHUB_PAGES_BASE.rstrip("/")
        return f"https://{owner.lower()}.github.io"


@lru_cache
def get_settings() -> Settings:
    return Settings()
