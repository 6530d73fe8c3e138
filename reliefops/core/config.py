from pydantic_settings import BaseSettings
from functools import lru_cache
from decimal import Decimal
from typing import Optional

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "ReliefOps"
    APP_PORT: int = 9300
    DEBUG: bool = False
    
    # Database
    DB_DRIVER: str = "sqlite"  # sqlite | postgresql
    SQLITE_PATH: str = "reliefops.db"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "reliefops"
    POSTGRES_PORT: int = 5432
    
    # Remote store for local <-> remote sync
    REMOTE_DATABASE_URL: Optional[str] = None
    SYNC_ENABLED: bool = False
    SYNC_INTERVAL_MINUTES: int = 5  # 0 = auto-sync off
    
    # Ledger rules
    DEFAULT_MAX_CAPACITY: int = 1000
    LOW_BUDGET_WARNING: Decimal = Decimal("1000")
    BALANCE_CACHE_TTL_SECONDS: int = 900
    
    # Audit read paths
    AUDIT_QUERY_LIMIT: int = 100
    AUDIT_QUERY_MAX_LIMIT: int = 1000
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    
    @property
    def DATABASE_URL(self) -> str:
        if self.DB_DRIVER == "postgresql":
            return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        return f"sqlite:///{self.SQLITE_PATH}"
    
    class Config:
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
