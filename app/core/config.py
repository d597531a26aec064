import os
from pathlib import Path

from dotenv import load_dotenv


# A local .env in the backend folder is authoritative for development.
env_path = Path(__file__).resolve().parents[2] / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)


def _env_bool(name: str, default: str = "0") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Lightweight settings loader using environment variables.

    Values are read once at import time; tests set the environment before
    importing the app.
    """

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-to-a-secure-random-string")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 12)))
    # refresh token lifetime in days
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", str(14)))

    # Be resilient to an accidental repeated prefix like "DATABASE_URL=DATABASE_URL=..."
    raw_db = os.getenv("DATABASE_URL", "sqlite:///./pdv.db")
    if isinstance(raw_db, str) and raw_db.startswith("DATABASE_URL="):
        raw_db = raw_db.split("=", 1)[1]
    DATABASE_URL: str = raw_db

    APP_ENV: str = os.getenv("APP_ENV", os.getenv("ENV", "development")).lower()
    _default_pool_size = 5 if APP_ENV == "development" else 10
    _default_max_overflow = 2 if APP_ENV == "development" else 20
    _default_pool_recycle = 900 if APP_ENV == "development" else 1800

    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", str(_default_pool_size)))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", str(_default_max_overflow)))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", str(_default_pool_recycle)))  # seconds

    # Logging and monitoring controls
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    REQUEST_LOG_EVERY_N: int = int(os.getenv("REQUEST_LOG_EVERY_N", "100"))
    DB_LOG_EVERY_N: int = int(os.getenv("DB_LOG_EVERY_N", "50"))
    REQUEST_LOG_VERBOSE: bool = _env_bool("REQUEST_LOG_VERBOSE")
    REQUEST_LOG_INCLUDE_PREFIXES: str = os.getenv(
        "REQUEST_LOG_INCLUDE_PREFIXES",
        "/orders,/caixa,/products,/clients,/fornecedores,/financeiro,/rpc,/stats"
    )

    CORS_ORIGINS: str = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:8080,http://127.0.0.1:8080,http://localhost:5173,http://127.0.0.1:5173"
    )

    # Seeds for the singleton financial rows, created on first read
    DEFAULT_BUDGET_MONTHLY_REVENUE: float = float(os.getenv("DEFAULT_BUDGET_MONTHLY_REVENUE", "15000.00"))
    DEFAULT_BUDGET_MONTHLY_EXPENSES: float = float(os.getenv("DEFAULT_BUDGET_MONTHLY_EXPENSES", "8000.00"))
    DEFAULT_BUDGET_PROFIT_MARGIN: float = float(os.getenv("DEFAULT_BUDGET_PROFIT_MARGIN", "0.30"))
    DEFAULT_BALANCE_EQUIPMENT: float = float(os.getenv("DEFAULT_BALANCE_EQUIPMENT", "8000.00"))
    DEFAULT_BALANCE_LOANS: float = float(os.getenv("DEFAULT_BALANCE_LOANS", "3000.00"))

    @property
    def cors_origins(self) -> list:
        return [o.strip() for o in (self.CORS_ORIGINS or "").split(",") if o.strip()]


settings = Settings()
