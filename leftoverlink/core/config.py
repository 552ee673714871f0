# leftoverlink/core/config.py
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # storage: in-memory unless USE_MONGO=1
    use_mongo: bool = False
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "leftoverlink"

    jwt_secret: str = "dev"
    jwt_alg: str = "HS256"
    access_ttl_min: int = 60

    # expiry sweep
    sweep_enabled: bool = True
    sweep_interval_seconds: int = 60

    # search defaults
    default_radius_km: float = 10.0
    default_page_size: int = 20

    cors_origins: List[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
