import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        currency_code: str,
        cache_ttl_secs: float,
        cache_version: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.currency_code = currency_code
        self.cache_ttl_secs = cache_ttl_secs
        self.cache_version = cache_version


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "Asia/Manila")
    csrf_secret = os.getenv(
        "BUDGET_CSRF_SECRET",
        "5c1d0b7e9a4f2e8c3b6a1d7f0e9c8b2a4d6f1e3c5b7a9d0e2f4c6b8a1d3e5f70",
    )
    currency_code = os.getenv("BUDGET_CURRENCY", "PHP")
    cache_ttl_secs = float(os.getenv("BUDGET_CACHE_TTL_SECS", "300"))
    cache_version = os.getenv("BUDGET_CACHE_VERSION", "1.0")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        csrf_secret=csrf_secret,
        currency_code=currency_code,
        cache_ttl_secs=cache_ttl_secs,
        cache_version=cache_version,
    )
