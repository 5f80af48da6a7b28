# asmr_studio/core/config.py
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# ================== ENV ==================

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env", override=True)

logger = logging.getLogger("asmr-studio.config")


def env(*names: str, default: Optional[str] = None) -> str:
    for n in names:
        v = os.environ.get(n)
        if v is not None and str(v).strip() != "":
            return v
    if default is not None:
        return default
    raise KeyError(f"Missing required env var. Tried: {', '.join(names)}")


def _flag(*names: str, default: str = "false") -> bool:
    return env(*names, default=default).strip().lower() in {"1", "true", "yes"}


# ================== JWT ==================
# Tokens are issued by the hosted auth backend; we only verify them.

JWT_SECRET = env("SUPABASE_JWT_SECRET", "JWT_SECRET", default="default_secret_key")
JWT_ALGORITHM = "HS256"

# ================== DATABASE ==================

DATABASE_URL = os.environ.get("DATABASE_URL", "")


def get_database_url() -> str:
    """Get database URL - hosted Postgres (asyncpg) or local SQLite."""
    if DATABASE_URL:
        return DATABASE_URL

    db_path = ROOT_DIR / "asmr_studio" / "asmr_studio.db"
    return f"sqlite+aiosqlite:///{db_path}"


# ================== PAYMENTS (Creem) ==================

class PaymentEnvironment(str, Enum):
    TEST = "test"
    PRODUCTION = "production"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "PaymentEnvironment":
        if (value or "").strip().lower() == cls.PRODUCTION.value:
            return cls.PRODUCTION
        return cls.TEST


API_BASE_URLS = {
    PaymentEnvironment.TEST: "https://test-api.creem.io/v1",
    PaymentEnvironment.PRODUCTION: "https://api.creem.io/v1",
}

DEFAULT_PAYMENT_URLS = {
    PaymentEnvironment.TEST: "https://test.creem.io/checkout",
    PaymentEnvironment.PRODUCTION: "https://creem.io/checkout",
}


@dataclass(frozen=True)
class PaymentConfig:
    environment: PaymentEnvironment
    api_key: str
    payment_url: str
    trial_product_id: str = ""
    basic_product_id: str = ""
    pro_product_id: str = ""
    webhook_secret: str = ""

    @property
    def api_base_url(self) -> str:
        return API_BASE_URLS[self.environment]

    @property
    def is_production(self) -> bool:
        return self.environment is PaymentEnvironment.PRODUCTION

    def looks_like_test_credentials(self) -> bool:
        return "test" in self.payment_url or "test" in self.api_key


def get_payment_environment() -> PaymentEnvironment:
    return PaymentEnvironment.from_value(os.environ.get("PAYMENT_ENV"))


def is_production_payment() -> bool:
    return get_payment_environment() is PaymentEnvironment.PRODUCTION


def get_payment_config() -> PaymentConfig:
    environment = get_payment_environment()
    prefix = "CREEM_PROD_" if environment is PaymentEnvironment.PRODUCTION else "CREEM_TEST_"

    def pick(name: str, default: str = "") -> str:
        return env(f"{prefix}{name}", f"CREEM_{name}", default=default)

    config = PaymentConfig(
        environment=environment,
        api_key=pick("API_KEY"),
        payment_url=pick("PAYMENT_URL", DEFAULT_PAYMENT_URLS[environment]),
        trial_product_id=pick("TRIAL_PRODUCT_ID"),
        basic_product_id=pick("BASIC_PRODUCT_ID"),
        pro_product_id=pick("PRO_PRODUCT_ID"),
        webhook_secret=pick("WEBHOOK_SECRET"),
    )
    if config.is_production and config.looks_like_test_credentials():
        logger.warning("PAYMENT_ENV=production but the Creem key or payment URL looks like a test one")
    return config


# ================== OBJECT STORAGE (R2) ==================

@dataclass(frozen=True)
class StorageConfig:
    account_id: str
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    public_endpoint: str
    region: str = "auto"
    s3_endpoint: str = ""

    @property
    def endpoint_url(self) -> str:
        if self.s3_endpoint:
            return self.s3_endpoint
        return f"https://{self.account_id}.r2.cloudflarestorage.com"

    @property
    def is_complete(self) -> bool:
        return all([self.access_key_id, self.secret_access_key, self.bucket_name])

    def public_url(self, key: str) -> str:
        return f"{self.public_endpoint.rstrip('/')}/{key.lstrip('/')}"


def get_storage_config() -> StorageConfig:
    return StorageConfig(
        account_id=env("R2_ACCOUNT_ID", default=""),
        access_key_id=env("R2_ACCESS_KEY_ID", default=""),
        secret_access_key=env("R2_SECRET_ACCESS_KEY", default=""),
        bucket_name=env("R2_BUCKET_NAME", "R2_BUCKET", default=""),
        public_endpoint=env("R2_ENDPOINT", "R2_PUBLIC_BASE_URL", default=""),
        region=env("R2_REGION", default="auto"),
        s3_endpoint=env("R2_S3_ENDPOINT", default=""),
    )


# ================== MEDIA ==================

DOWNLOAD_TIMEOUT_SECONDS = 5 * 60


@dataclass(frozen=True)
class MediaConfig:
    temp_dir: Path
    download_timeout_seconds: float = DOWNLOAD_TIMEOUT_SECONDS
    ffmpeg_path: str = "ffmpeg"
    thumbnail_timestamp: str = "00:00:01"
    thumbnail_size: str = "400x300"
    video_credit_cost: int = 20
    provider: str = "kie-runway"
    callback_secret: str = ""


def is_production_app() -> bool:
    return env("APP_ENV", "NODE_ENV", default="development").strip().lower() == "production"


def default_temp_dir() -> Path:
    if is_production_app():
        return Path(tempfile.gettempdir())
    return ROOT_DIR / "temp"


def get_media_config() -> MediaConfig:
    temp_dir = os.environ.get("MEDIA_TEMP_DIR")
    return MediaConfig(
        temp_dir=Path(temp_dir) if temp_dir else default_temp_dir(),
        download_timeout_seconds=float(env("DOWNLOAD_TIMEOUT_SECONDS", default=str(DOWNLOAD_TIMEOUT_SECONDS))),
        ffmpeg_path=env("FFMPEG_PATH", default="ffmpeg"),
        video_credit_cost=int(env("VIDEO_CREDIT_COST", default="20")),
        provider=env("VIDEO_PROVIDER", default="kie-runway"),
        callback_secret=env("KIE_CALLBACK_SECRET", default=""),
    )


# ================== SETTINGS ==================

@dataclass(frozen=True)
class Settings:
    payment: PaymentConfig
    storage: StorageConfig
    media: MediaConfig
    frontend_url: str
    test_mode: bool = False


@lru_cache
def get_settings() -> Settings:
    """Built once per process; routers and clients receive it explicitly."""
    return Settings(
        payment=get_payment_config(),
        storage=get_storage_config(),
        media=get_media_config(),
        frontend_url=env("FRONTEND_URL", default="http://localhost:3000").rstrip("/"),
        test_mode=_flag("TEST_MODE"),
    )
