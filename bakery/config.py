import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    return [x.strip() for x in os.getenv(name, default).split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./bakery.db"
    sql_echo: bool = False
    strict_totals: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("BAKERY_DATABASE_URL", cls.database_url).strip(),
            sql_echo=_env_bool("BAKERY_SQL_ECHO"),
            strict_totals=_env_bool("BAKERY_STRICT_TOTALS"),
            cors_origins=_env_list("BAKERY_CORS_ORIGINS", "*"),
            log_level=os.getenv("BAKERY_LOG_LEVEL", cls.log_level).strip().upper(),
        )
