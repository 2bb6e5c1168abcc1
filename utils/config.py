import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from utils.errors import ConfigurationError


DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_MODEL = "deepseek-chat"
DEFAULT_PORT = 5050


class Settings(BaseModel):
    """Service settings read from the environment (and an optional .env file)"""

    # Model
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.3

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Material fetching
    fetch_timeout: Optional[float] = None

    # Logging
    log_file: str = "logs/app.log"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(override=True)

        timeout = os.getenv("FETCH_TIMEOUT")
        origins = os.getenv("CORS_ORIGINS", "*")

        return cls(
            api_key=os.getenv("DEEPSEEK_API_KEY", ""),
            base_url=os.getenv("DEEPSEEK_BASE_URL") or DEFAULT_BASE_URL,
            model=os.getenv("DEEPSEEK_MODEL") or DEFAULT_MODEL,
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT") or DEFAULT_PORT),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            fetch_timeout=float(timeout) if timeout else None,
            log_file=os.getenv("LOG_FILE", "logs/app.log"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate_config(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Missing DEEPSEEK_API_KEY")

    @property
    def normalized_base_url(self) -> str:
        return self.base_url.rstrip("/")
