import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: Optional[str] = None
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    port: int = 5000
    environment: str = "development"
    cors_origins: Tuple[str, ...] = ("*",)

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def expose_errors(self) -> bool:
        return self.environment != "production"


def _split_origins(value: str) -> Tuple[str, ...]:
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


def load_settings() -> Settings:
    load_dotenv(dotenv_path=ENV_PATH)

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

    return Settings(
        database_url=database_url,
        jwt_secret=os.getenv("JWT_SECRET"),
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
        port=int(os.getenv("PORT", "5000")),
        environment=os.getenv("ENVIRONMENT", "development"),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
    )
