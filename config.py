import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        port: int,
        auth_secret: str,
        token_max_age_hours: int,
        date_filter_mode: str,
        top_categories_limit: int,
        store_timeout_secs: float,
        cors_origins: list[str],
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.port = port
        self.auth_secret = auth_secret
        self.token_max_age_hours = token_max_age_hours
        self.date_filter_mode = date_filter_mode
        self.top_categories_limit = top_categories_limit
        self.store_timeout_secs = store_timeout_secs
        self.cors_origins = cors_origins
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("EXPENSES_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_ensure_data_dir() / 'expenses.db'}"
    port = int(os.getenv("PORT", "5000"))
    auth_secret = os.getenv(
        "EXPENSES_AUTH_SECRET",
        "4f0c2d6a9e13b87c5a2f41d09e6b3c7a18d5e2f90b4c6a3d7e1f28b5c9a04d6e",
    )
    token_max_age_hours = int(os.getenv("EXPENSES_TOKEN_MAX_AGE_HOURS", "720"))
    date_filter_mode = os.getenv("EXPENSES_DATE_FILTER_MODE", "permissive").lower()
    top_categories_limit = int(os.getenv("EXPENSES_TOP_CATEGORIES_LIMIT", "5"))
    store_timeout_secs = float(os.getenv("EXPENSES_STORE_TIMEOUT_SECS", "5"))
    cors_origins = _split_origins(os.getenv("EXPENSES_CORS_ORIGINS", "*"))
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        port=port,
        auth_secret=auth_secret,
        token_max_age_hours=token_max_age_hours,
        date_filter_mode=date_filter_mode,
        top_categories_limit=top_categories_limit,
        store_timeout_secs=store_timeout_secs,
        cors_origins=cors_origins,
        log_level=log_level,
    )
